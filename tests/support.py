from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from bookshelf.db.session import init_db
from bookshelf.services.asset_service import AssetStore


BUCKET = "shelf-test"


class TickingClock:
    """Returns a strictly increasing time, one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now


async def memory_engine() -> AsyncEngine:
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    await init_db(engine)
    return engine


def fake_asset_store(blob_factory=None) -> tuple[AssetStore, MagicMock]:
    """An AssetStore over a mocked bucket. ``bucket.blob(key)`` is recorded."""
    bucket = MagicMock()
    if blob_factory is not None:
        bucket.blob.side_effect = blob_factory
    client = MagicMock()
    client.bucket.return_value = bucket
    return AssetStore(lambda: client, BUCKET), bucket


def public_url(key: str) -> str:
    return f"https://storage.googleapis.com/{BUCKET}/{key}"
