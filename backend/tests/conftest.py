"""
SnapStream Backend — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test that touches storage gets its own SQLite file (aiosqlite)
       under tmp_path with the full schema created, so ordering, cascades
       and rollbacks are exercised against a real engine.

Fixture Hierarchy (all function-scoped):
    database ─┬─ db_session
              ├─ make_user
              ├─ make_snap
              └─ test_client (app built with create_app(database=...))
    sample_image_bytes / sample_png_bytes
"""

import os
import tempfile

# Must be set before anything imports snapstream.config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["STORAGE_ROOT"] = tempfile.mkdtemp(prefix="snapstream_test_")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_REQUESTS"] = "10000"
os.environ["JWT_SECRET"] = "test-secret-not-for-production"

import uuid  # noqa: E402
from datetime import datetime, timedelta, timezone  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from snapstream.database import Database  # noqa: E402
from snapstream.models.snap import Snap, SnapHashtag  # noqa: E402
from snapstream.models.user import User  # noqa: E402
from snapstream.services.auth_service import create_access_token, hash_password  # noqa: E402


@pytest_asyncio.fixture
async def database(tmp_path):
    """A fresh SQLite database with every table created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'snapstream.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(database):
    """
    Factory inserting a committed user.

    Usage:
        user = await make_user("alice")
    """
    async def _make(
        username: str = "alice",
        password: str = "secret123",
        is_active: bool = True,
    ) -> User:
        user = User(
            id=uuid.uuid4(),
            username=username,
            email=f"{username}@example.com",
            password_hash=hash_password(password),
            is_active=is_active,
        )
        async with database.session() as session:
            session.add(user)
        return user

    return _make


@pytest_asyncio.fixture
async def make_snap(database):
    """
    Factory inserting a committed snap with explicit timestamps, bypassing
    the upload path (for feed, read and reaper tests).
    """
    async def _make(
        owner: User,
        created_at: Optional[datetime] = None,
        ttl: timedelta = timedelta(hours=12),
        hashtags: Optional[str] = None,
        tag_rows: Optional[list] = None,
        is_public: bool = True,
        image_data: bytes = b"\x89PNG\r\n\x1a\nfake",
        mime_type: str = "image/png",
        snap_id: Optional[uuid.UUID] = None,
    ) -> Snap:
        created_at = created_at or datetime.now(timezone.utc)
        snap = Snap(
            id=snap_id or uuid.uuid4(),
            user_id=owner.id,
            image_data=image_data,
            mime_type=mime_type,
            caption="caption",
            hashtags=hashtags,
            created_at=created_at,
            expires_at=created_at + ttl,
            is_public=is_public,
        )
        async with database.session() as session:
            session.add(snap)
            await session.flush()
            for tag in tag_rows or []:
                session.add(SnapHashtag(snap_id=snap.id, hashtag=tag))
        return snap

    return _make


@pytest.fixture
def auth_header():
    def _header(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id, user.username)}"}

    return _header


@pytest.fixture
def sample_image_bytes():
    """Minimal JPEG: SOI + JFIF header + EOI."""
    return (
        b'\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'
        b'\xff\xd9'
    )


@pytest.fixture
def sample_png_bytes():
    """Valid 1x1 PNG: signature, IHDR, IDAT, IEND."""
    return bytes.fromhex(
        "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
        "1f15c4890000000a49444154789c63000100000500010d0a2db40000000049454e44ae426082"
    )


@pytest_asyncio.fixture
async def test_client(database):
    """
    HTTPX AsyncClient talking to an app bound to the test database.

    The ASGI transport does not run the lifespan, so no reaper is started.
    """
    from snapstream.main import create_app

    app = create_app(database=database)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
