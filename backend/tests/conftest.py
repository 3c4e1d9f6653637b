import io
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool
from starlette.datastructures import Headers, UploadFile

from app.main import app
from app.db.database import Base, get_session
from app.models import Paint
from app.services.auth_service import create_access_token
from app.services.catalog_service import CatalogService
from app.services.storage import ImageStorage, get_storage

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


@pytest.fixture
async def engine():
    """In-memory SQLite shared by every session in a test."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return ImageStorage(tmp_path / "uploads")


@pytest.fixture
def service(session, storage):
    return CatalogService(session, storage)


@pytest.fixture
def make_paint(session_factory):
    """Insert a paint directly, bypassing the service."""
    counter = {"n": 0}

    async def _make(**overrides) -> Paint:
        counter["n"] += 1
        n = counter["n"]
        values = {
            "name": f"Paint {n:03d}",
            "category": "Interior",
            "brand": "Ruda Paints",
            "size": "4L",
            "price": 1000,
            "stock_quantity": 10,
            "created_at": BASE_TIME + timedelta(minutes=n),
        }
        values.update(overrides)
        async with session_factory() as s:
            paint = Paint(**values)
            s.add(paint)
            await s.commit()
            await s.refresh(paint)
        return paint

    return _make


@pytest.fixture
def make_upload():
    def _make(filename: str = "swatch.png", content_type: str = "image/png", data: bytes = PNG_BYTES):
        return UploadFile(
            file=io.BytesIO(data),
            filename=filename,
            headers=Headers({"content-type": content_type}),
        )

    return _make


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "admin", "email": "admin@rudapaints.com", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory, storage):
    """Async test client wired to the in-memory database and temp upload dir."""

    async def override_session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_storage] = lambda: storage

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
