"""Seed the configured auction store with a demo auction and its bid history."""

import asyncio
from datetime import datetime, timedelta, timezone

from bidflow.auction.models import NewBid
from bidflow.config import get_client_config
from bidflow.storage import StoreRejection, build_store

DEMO_AUCTION = {
    "title": "Vintage Leica M3 Camera",
    "description": (
        "A pristine condition Leica M3 from 1954. Includes original 50mm Summicron "
        "lens and leather case. Fully functional and serviced recently."
    ),
    "start_price": 1_500_000,
    "current_price": 1_500_000,
    "min_increment": 50_000,
    "image_url": "https://images.unsplash.com/photo-1516035069371-29a1b244cc32",
}

# Oldest first; each must clear the previous price plus the increment.
DEMO_BIDS = [
    ("ShutterBug", 1_550_000),
    ("FilmFanatic", 1_600_000),
    ("RetroSnap", 1_850_000),
    ("LensLover", 2_000_000),
    ("CameraCollector99", 2_100_000),
]


async def seed() -> None:
    store = build_store(get_client_config())
    try:
        auction = await store.create_auction(
            {**DEMO_AUCTION, "ends_at": datetime.now(timezone.utc) + timedelta(hours=24)}
        )
        print(f"Auction created: {auction.title} ({auction.id})")
        for bidder_name, amount in DEMO_BIDS:
            try:
                await store.insert_bid(NewBid(auction.id, bidder_name, amount))
            except StoreRejection as exc:
                print(f"Error inserting bid for {amount}: {exc.message}")
                return
            print(f"  -> Bid placed: {amount} by {bidder_name}")
            await asyncio.sleep(0.1)
        print(f"{len(DEMO_BIDS)} bids created. View it at /auctions/{auction.id}/views")
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(seed())
