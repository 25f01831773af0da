from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from database import Base, get_db
from main import app
from schemas import DeviceCounts, Video, VideoAnalytics
from services.storage import MemoryAssetStorage, get_asset_storage
from viewer.sync_client import SyncClient


BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def make_video(
    video_id: str = "v1",
    *,
    views: int = 10,
    desktop: int = 6,
    tablet: int = 2,
    mobile: int = 2,
    likes: int = 0,
    duration: int = 299,
    asset_id: str | None = None,
    age_hours: int = 0,
) -> Video:
    return Video(
        id=video_id,
        title=f"Video {video_id}",
        description="A test video",
        original_url=f"https://cdn.example.com/{video_id}.mp4",
        thumbnail_url=f"https://cdn.example.com/{video_id}.jpg",
        uploaded_by="Tester",
        created_at=BASE_TIME - timedelta(hours=age_hours),
        duration=duration,
        size=1024,
        likes=likes,
        analytics=VideoAnalytics(
            views=views,
            devices=DeviceCounts(desktop=desktop, tablet=tablet, mobile=mobile),
            watch_time=0,
        ),
        asset_id=asset_id,
    )


@pytest.fixture(autouse=True)
def reset_asset_storage_cache():
    """Keep the cached storage provider isolated between tests."""
    get_asset_storage.cache_clear()
    yield
    get_asset_storage.cache_clear()


@pytest_asyncio.fixture
async def backend(tmp_path):
    db_path = tmp_path / "streamflex.db"
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}")
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    storage = MemoryAssetStorage()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_asset_storage] = lambda: storage
    yield session_maker, storage

    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_asset_storage, None)
    await engine.dispose()


@pytest_asyncio.fixture
async def api_client(backend):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def sync_client(api_client):
    return SyncClient(api_client, api_base="")
