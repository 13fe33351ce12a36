from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from .admin import health as admin_health
from .auction.countdown import derive_countdown
from .auction.formatting import format_price, format_relative_time
from .auction.models import Auction, Bid
from .bidding.coordinator import Accepted, BidOutcome
from .config import ClientConfig, get_client_config
from .storage import AuctionStore, build_store
from .transport.timestamps import format_timestamp
from .views.detail import AuctionDetailSession, DetailSettings
from .views.feed import AuctionFeed
from .views.state import FeedState, ViewError, ViewErrorKind


@asynccontextmanager
async def lifespan(app: FastAPI):
    client_config = get_client_config()
    store = build_store(client_config)

    app.state.client_config = client_config
    app.state.store = store
    app.state.sessions = {}
    app.state.start_time = datetime.now(timezone.utc)

    yield

    for session in list(app.state.sessions.values()):
        await session.unmount()
    app.state.sessions.clear()
    await store.close()


app = FastAPI(
    title="bidflow view host",
    version="1.0.0",
    docs_url="/docs",
    lifespan=lifespan,
)

app.include_router(admin_health.router)


# Dependency helpers ---------------------------------------------------------


def get_client_settings(request: Request) -> ClientConfig:
    return request.app.state.client_config


def get_store(request: Request) -> AuctionStore:
    return request.app.state.store


def get_sessions(request: Request) -> dict[str, AuctionDetailSession]:
    return request.app.state.sessions


def get_session(
    view_id: str,
    sessions: dict[str, AuctionDetailSession] = Depends(get_sessions),
) -> AuctionDetailSession:
    session = sessions.get(view_id)
    if session is None:
        raise HTTPException(status_code=404, detail="view is not mounted")
    return session


# Routes ---------------------------------------------------------------------


@app.get("/auctions", tags=["feed"])
async def list_auctions(
    store: AuctionStore = Depends(get_store),
    settings: ClientConfig = Depends(get_client_settings),
) -> dict[str, Any]:
    feed = AuctionFeed(store)
    state = await feed.refresh()
    return render_feed(state, datetime.now(timezone.utc), settings.countdown.ending_soon_threshold)


@app.post("/auctions/{auction_id}/views", tags=["detail"], status_code=status.HTTP_201_CREATED)
async def mount_view(
    auction_id: str,
    store: AuctionStore = Depends(get_store),
    settings: ClientConfig = Depends(get_client_settings),
    sessions: dict[str, AuctionDetailSession] = Depends(get_sessions),
) -> Any:
    session = AuctionDetailSession(store, auction_id, DetailSettings.from_config(settings))
    view = await session.mount()
    if view.error is not None and view.error.kind is ViewErrorKind.NOT_FOUND:
        await session.unmount()
        return JSONResponse(status_code=404, content={"view": render_detail(session)})
    view_id = f"view_{uuid.uuid4().hex}"
    sessions[view_id] = session
    return {"view_id": view_id, "view": render_detail(session)}


@app.get("/views/{view_id}", tags=["detail"])
async def get_view(session: AuctionDetailSession = Depends(get_session)) -> dict[str, Any]:
    return {"view": render_detail(session)}


@app.post("/views/{view_id}/refresh", tags=["detail"])
async def refresh_view(session: AuctionDetailSession = Depends(get_session)) -> dict[str, Any]:
    await session.retry()
    return {"view": render_detail(session)}


@app.post("/views/{view_id}/bids", tags=["detail"])
async def place_bid(
    payload: dict[str, Any] = Body(...),
    session: AuctionDetailSession = Depends(get_session),
) -> dict[str, Any]:
    amount = payload.get("amount")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise HTTPException(status_code=422, detail="amount must be a positive integer")
    try:
        outcome = await session.submit(amount)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    response = render_outcome(outcome)
    # the rejection notification is shown once, alongside the outcome
    response["notification"] = session.view.take_notification()
    response["view"] = render_detail(session)
    return response


@app.delete("/views/{view_id}", tags=["detail"])
async def unmount_view(
    view_id: str,
    session: AuctionDetailSession = Depends(get_session),
    sessions: dict[str, AuctionDetailSession] = Depends(get_sessions),
) -> dict[str, str]:
    await session.unmount()
    sessions.pop(view_id, None)
    return {"status": "unmounted", "view_id": view_id}


# Rendering ------------------------------------------------------------------


def render_error(error: ViewError | None) -> dict[str, Any] | None:
    if error is None:
        return None
    return {
        "kind": error.kind.value,
        "message": error.message,
        "retryable": error.retryable,
        "navigate_back": error.kind is ViewErrorKind.NOT_FOUND,
    }


def render_auction(auction: Auction, now: datetime, threshold: timedelta) -> dict[str, Any]:
    countdown = derive_countdown(auction.ends_at, now, ending_soon_threshold=threshold)
    return {
        "id": auction.id,
        "title": auction.title,
        "description": auction.description,
        "image_url": auction.image_url,
        "status": auction.status.value,
        "current_price": auction.current_price,
        "current_price_label": format_price(auction.current_price),
        "minimum_bid": auction.minimum_bid,
        "minimum_bid_label": format_price(auction.minimum_bid),
        "ends_at": format_timestamp(auction.ends_at),
        "countdown": {
            "label": countdown.label,
            "remaining_seconds": int(countdown.remaining.total_seconds()),
            "ended": countdown.ended,
            "ending_soon": countdown.ending_soon,
        },
    }


def render_bid(bid: Bid, now: datetime) -> dict[str, Any]:
    return {
        "id": bid.id,
        "bidder_name": bid.bidder_name,
        "amount": bid.amount,
        "amount_label": format_price(bid.amount),
        "created_at": format_timestamp(bid.created_at),
        "relative_time": format_relative_time(bid.created_at, now),
    }


def render_feed(state: FeedState, now: datetime, threshold: timedelta) -> dict[str, Any]:
    return {
        "auctions": [render_auction(auction, now, threshold) for auction in state.auctions],
        "loading": state.loading,
        "error": render_error(state.error),
    }


def render_detail(session: AuctionDetailSession) -> dict[str, Any]:
    view = session.view
    now = datetime.now(timezone.utc)
    auction = view.auction
    countdown = session.countdown()
    rendered: dict[str, Any] = {
        "auction_id": view.auction_id,
        "loading": view.loading,
        "error": render_error(view.error),
        "pending": view.pending,
        "notification": view.notification,
        "auction": None,
        "displayed_price": view.displayed_price,
        "bids": [render_bid(bid, now) for bid in view.displayed_bids],
    }
    if auction is not None and countdown is not None:
        rendered["auction"] = render_auction(auction, now, session.settings.ending_soon_threshold)
        rendered["displayed_price_label"] = format_price(view.displayed_price)
        rendered["bidding_open"] = not auction.is_ended and not countdown.ended
    return rendered


def render_outcome(outcome: BidOutcome) -> dict[str, Any]:
    if isinstance(outcome, Accepted):
        return {"status": "accepted", "bid": outcome.bid.to_record()}
    reason = outcome.reason
    return {
        "status": "rejected",
        "reason": reason.kind.value,
        "minimum_required": reason.minimum_required,
    }
