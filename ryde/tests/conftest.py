"""
Centralized Test Configuration.

Each test gets a fresh in-memory SQLite database, a recording mailer and a
fake image host wired into the app through dependency overrides.
"""

from pathlib import Path
from typing import Dict, List, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import Pool, StaticPool

from ryde.app.main import app
from ryde.app.core.config import settings
from ryde.app.core.security import get_password_hash
from ryde.app.db.session import get_db, Base
from ryde.app.models.enums import UserRole
from ryde.app.models.user import User
from ryde.app.services.mailer import EmailDeliveryError, get_mailer
from ryde.app.services.media import get_media_uploader, remove_local_file

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
API = settings.api_prefix


@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class RecordingMailer:
    """Stands in for the SMTP mailer and remembers every message."""

    def __init__(self):
        self.sent: List[Dict[str, Optional[str]]] = []
        self.fail = False

    async def _record(self, kind: str, name: str, email: str, otp: Optional[str] = None):
        if self.fail:
            raise EmailDeliveryError("SMTP unavailable")
        self.sent.append({"kind": kind, "name": name, "email": email, "otp": otp})

    async def send_welcome_email(self, name, email):
        await self._record("welcome", name, email)

    async def send_verification_email(self, name, email, otp):
        await self._record("verification", name, email, otp)

    async def send_forgot_password_email(self, name, email, otp):
        await self._record("forgot_password", name, email, otp)

    def last_otp(self, email: str) -> Optional[str]:
        for message in reversed(self.sent):
            if message["email"] == email and message["otp"]:
                return message["otp"]
        return None


class FakeMediaUploader:
    """Image host double: hands out deterministic URLs and removes temp files."""

    def __init__(self):
        self.uploaded: List[str] = []
        self.destroyed: List[str] = []
        self.fail = False

    async def upload(self, local_path):
        if not local_path:
            return None
        try:
            assert Path(local_path).exists()
            if self.fail:
                return None
            url = f"https://res.cloudinary.com/demo/image/upload/v1/ryde-uber-clone/avatar-{len(self.uploaded) + 1}.png"
            self.uploaded.append(url)
            return url
        finally:
            remove_local_file(local_path)

    async def destroy(self, url):
        self.destroyed.append(url)
        return True


@pytest.fixture
async def session_factory():
    """Fresh in-memory database for one test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def media():
    return FakeMediaUploader()


@pytest.fixture(autouse=True)
def temp_upload_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "upload_temp_dir", str(tmp_path / "uploads"))
    return tmp_path / "uploads"


@pytest.fixture
async def client(session_factory, mailer, media):
    """Async client for testing (https, so secure cookies round-trip)."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_media_uploader] = lambda: media

    async with AsyncClient(transport=ASGITransport(app=app), base_url="https://test") as ac:
        yield ac

    app.dependency_overrides = {}


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


async def create_user(
    session_factory,
    email: str,
    password: str = "Secret123",
    role: UserRole = UserRole.USER,
    is_verified: bool = True,
    firstname: str = "Test",
    lastname: str = "User",
) -> User:
    """Insert a user directly, bypassing the API."""
    async with session_factory() as session:
        user = User(
            firstname=firstname,
            lastname=lastname,
            email=email,
            password=get_password_hash(password),
            role=role,
            is_verified=is_verified,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


async def fetch_user(session_factory, email: str) -> Optional[User]:
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()


async def sign_in(client, email: str, password: str = "Secret123") -> dict:
    response = await client.post(f"{API}/auth/sign-in", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["data"]


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
