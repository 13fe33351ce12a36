"""Admin health endpoint for the view host."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    state = request.app.state
    started = getattr(state, "start_time", None)
    uptime = int((datetime.now(timezone.utc) - started).total_seconds()) if started else 0
    store_status = "ok"
    try:
        await state.store.list_active_auctions()
    except Exception as exc:
        logger.warning("health check could not reach the auction store: %s", exc)
        store_status = "unavailable"
    return {
        "status": "healthy" if store_status == "ok" else "degraded",
        "uptime_seconds": uptime,
        "version": request.app.version,
        "store_backend": state.client_config.store.backend,
        "store": store_status,
        "mounted_views": len(getattr(state, "sessions", {})),
    }
