import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("MATURITY_SWEEP_ENABLED", "false")

import pytest
import pytest_asyncio
from decimal import Decimal
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from app.database import Base, get_db
from app.main import app
from app.core.security import create_access_token
from app.models.user import User, UserRole, KYCStatus
from app.services import ledger
from app.services.accounts import register_user

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False)
    async def override_get_db():
        async with SessionLocal() as session:
            yield session
    app.dependency_overrides[get_db] = override_get_db
    yield SessionLocal
    app.dependency_overrides.clear()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


async def make_user(
    db,
    email: str = "alice@example.com",
    role: UserRole = UserRole.user,
    kyc_status: str = KYCStatus.none,
    funds: dict = None,
) -> User:
    user = await register_user(db, email, "password123", role=role)
    user.kyc_status = kyc_status
    for asset, amount in (funds or {}).items():
        await ledger.credit(db, user.id, asset, Decimal(str(amount)))
    await db.commit()
    return user


@pytest_asyncio.fixture
async def user(db):
    return await make_user(db)


@pytest_asyncio.fixture
async def investor(db):
    """KYC-approved user holding 20000 of every asset."""
    return await make_user(
        db,
        email="investor@example.com",
        kyc_status=KYCStatus.approved,
        funds={"bitcoin": 20000, "ethereum": 20000, "solana": 20000},
    )


@pytest_asyncio.fixture
async def admin(db):
    return await make_user(db, email="admin@example.com", role=UserRole.admin)
