import os

# Set test environment
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key-for-modernblog"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"

from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from modernblog.database import Base, get_db
from modernblog.main import app
from modernblog.models import User
from modernblog.schemas.user import UserCreate
from modernblog.services.user_service import UserService
from modernblog.utils.tokens import TokenManager

TEST_DATABASE_URL = "sqlite+aiosqlite://"
TEST_PASSWORD = "correct-horse-battery"


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create an in-memory engine for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client with database session override."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user with unique identifiers."""
    suffix = uuid4().hex[:8]
    user = await UserService(db_session).create(
        UserCreate(
            username=f"writer_{suffix}",
            email=f"writer-{suffix}@example.com",
            password=TEST_PASSWORD,
            first_name="Test",
            last_name="Writer",
        )
    )
    await db_session.commit()
    return user


@pytest.fixture
def app_token_manager() -> TokenManager:
    return app.state.token_manager


@pytest.fixture
def auth_headers(test_user: User, app_token_manager: TokenManager) -> dict[str, str]:
    """Create authorization headers for authenticated requests."""
    tokens = app_token_manager.issue_token_pair(test_user.id, test_user.username, test_user.email)
    return {"Authorization": f"Bearer {tokens.access_token}"}


@pytest.fixture
def user_password() -> str:
    return TEST_PASSWORD
