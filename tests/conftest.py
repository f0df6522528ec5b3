"""
DevFocus - Test Fixtures
========================

Shared pytest fixtures for all tests.
"""

from collections.abc import AsyncGenerator
from typing import Optional
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from passlib.hash import bcrypt
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from devfocus.api.deps import create_access_token
from devfocus.api.main import app
from devfocus.core.assistant import Assistant, get_assistant
from devfocus.core.database import Base, get_db
from devfocus.core.exceptions import AIServiceError, EmailDeliveryError
from devfocus.core.mailer import SUBJECTS, OTPPurpose, SentEmail, get_mailer
from devfocus.core.models import Task, TaskPriority, User


# ==========================================================================
# Test Database Setup
# ==========================================================================

# Use in-memory SQLite for tests (fast)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_PASSWORD = "TestPass123"


@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture
async def db_session(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session bound to the test database."""
    factory = async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with factory() as session:
        yield session


# ==========================================================================
# External Service Fakes
# ==========================================================================

class FakeMailer:
    """Captures one-time codes instead of emailing them."""

    def __init__(self) -> None:
        self.sent: list[SentEmail] = []
        self.fail = False

    async def send_otp(
        self,
        email: str,
        name: str,
        otp: str,
        purpose: OTPPurpose = "verify",
    ) -> SentEmail:
        if self.fail:
            raise EmailDeliveryError("Failed to send verification email")
        sent = SentEmail(to=email, subject=SUBJECTS[purpose], otp=otp, purpose=purpose)
        self.sent.append(sent)
        return sent

    def last_code(self, email: str, purpose: Optional[OTPPurpose] = None) -> str:
        for sent in reversed(self.sent):
            if sent.to == email.lower() and (purpose is None or sent.purpose == purpose):
                return sent.otp
        raise AssertionError(f"no code sent to {email}")


class FakeCompletionClient:
    """Returns a canned reply (or raises) instead of calling the provider."""

    def __init__(self, reply: str = "", error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    async def complete(
        self,
        prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def completion() -> FakeCompletionClient:
    return FakeCompletionClient(error=AIServiceError("AI provider is not configured"))


# ==========================================================================
# HTTP Client
# ==========================================================================

@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    mailer: FakeMailer,
    completion: FakeCompletionClient,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Provide test HTTP client with database, mailer and AI overrides.
    """
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_assistant] = lambda: Assistant(client=completion)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ==========================================================================
# User Fixtures
# ==========================================================================

async def make_user(
    db_session: AsyncSession,
    email: str,
    name: str = "Test User",
    is_verified: bool = True,
) -> User:
    user = User(
        id=uuid4(),
        email=email,
        password_hash=bcrypt.hash(TEST_PASSWORD),
        name=name,
        is_verified=is_verified,
        total_pomodoros=0,
        current_streak=0,
        longest_streak=0,
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


async def make_task(
    db_session: AsyncSession,
    user: User,
    title: str = "Write tests",
    estimated: int = 2,
    completed: int = 0,
) -> Task:
    task = Task(
        id=uuid4(),
        user_id=user.id,
        title=title,
        category="coding",
        priority=TaskPriority.HIGH,
    )
    task.set_progress(completed=completed, estimated=estimated)
    db_session.add(task)
    await db_session.commit()
    await db_session.refresh(task)
    return task


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """
    Create a verified test user.

    Password: TestPass123
    """
    return await make_user(db_session, "test@example.com")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    """A second verified user, for ownership checks."""
    return await make_user(db_session, "other@example.com", name="Other User")


@pytest_asyncio.fixture
async def unverified_user(db_session: AsyncSession) -> User:
    """Create a user with unverified email."""
    return await make_user(
        db_session, "unverified@example.com", name="Unverified User", is_verified=False
    )


@pytest_asyncio.fixture
async def test_task(db_session: AsyncSession, test_user: User) -> Task:
    return await make_task(db_session, test_user)


@pytest_asyncio.fixture
async def other_task(db_session: AsyncSession, other_user: User) -> Task:
    return await make_task(db_session, other_user, title="Someone else's work")


# ==========================================================================
# Auth Fixtures
# ==========================================================================

@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Get authorization headers for test user."""
    token = create_access_token(test_user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def other_headers(other_user: User) -> dict[str, str]:
    token = create_access_token(other_user.id)
    return {"Authorization": f"Bearer {token}"}


# ==========================================================================
# Helper Functions
# ==========================================================================

def unique_email() -> str:
    """Generate a unique email for tests."""
    return f"test_{uuid4().hex[:8]}@example.com"
