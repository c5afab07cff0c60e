import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.errors import ConflictError
from app.core.security import hash_password, verify_password
from app.database import AsyncSessionLocal
from app.models.balance import AssetBalance, ASSETS
from app.models.investment import Investment
from app.models.requests import KYCRequest, DepositRequest, WithdrawalRequest
from app.models.transaction import Transaction
from app.models.user import User, UserRole
from app.services import ledger

logger = logging.getLogger(__name__)


async def find_user(db: AsyncSession, email: str) -> Optional[User]:
    return await db.scalar(select(User).where(User.email == email.strip().lower()))


async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    role: UserRole = UserRole.user,
) -> User:
    email = email.strip().lower()
    if await find_user(db, email):
        raise ConflictError("User already exists")

    user = User(email=email, password_hash=hash_password(password), role=role)
    db.add(user)
    await db.flush()
    await ledger.get_or_create_balance(db, user.id)

    grant = Decimal(str(settings.INITIAL_ASSET_GRANT))
    if grant > 0:
        for asset in ASSETS:
            await ledger.credit(db, user.id, asset, grant)
    await db.commit()
    logger.info("Registered user %s (%s)", user.id, role.value)
    return user


async def authenticate(db: AsyncSession, email: str, password: str) -> Optional[User]:
    user = await find_user(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


async def ensure_admin(db: AsyncSession, email: str, password: str) -> User:
    """Create the configured admin, or promote the existing account. Safe to rerun."""
    user = await find_user(db, email)
    if user is None:
        return await register_user(db, email, password, role=UserRole.admin)
    if user.role != UserRole.admin:
        user.role = UserRole.admin
        await db.commit()
        logger.info("Promoted user %s to admin", user.id)
    return user


async def seed_admin() -> None:
    if not (settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD):
        return
    async with AsyncSessionLocal() as db:
        await ensure_admin(db, settings.ADMIN_EMAIL, settings.ADMIN_PASSWORD)


async def delete_user(db: AsyncSession, user_id: int) -> None:
    for model in (KYCRequest, DepositRequest, WithdrawalRequest):
        await db.execute(update(model).where(model.reviewed_by == user_id).values(reviewed_by=None))
    for model in (Investment, AssetBalance, KYCRequest, DepositRequest, WithdrawalRequest, Transaction):
        await db.execute(delete(model).where(model.user_id == user_id))
    await db.execute(delete(User).where(User.id == user_id))
    await db.commit()
    logger.info("Deleted user %s and all owned records", user_id)


def serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role.value,
        "kyc_status": user.kyc_status,
        "is_verified": user.is_verified,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }
