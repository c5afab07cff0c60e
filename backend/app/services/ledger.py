"""Per-user asset balances.

Every mutation is a single UPDATE statement that changes one asset column and
rewrites ``total_balance`` from the same row values, so concurrent requests
cannot interleave a read and a write. Debits carry the sufficiency check in
the WHERE clause; zero affected rows means the balance was too low.
"""
import logging
from decimal import Decimal
from functools import reduce
from operator import add
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import InsufficientBalanceError, ValidationError
from app.models.balance import AssetBalance, Asset, ASSETS, parse_asset
from app.models.transaction import Transaction
from app.models.user import utcnow

logger = logging.getLogger(__name__)


def _to_decimal(amount) -> Decimal:
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if not value.is_finite() or value <= 0:
        raise ValidationError("Amount must be positive", field="amount")
    return value


async def load_balance(db: AsyncSession, user_id: int) -> Optional[AssetBalance]:
    return await db.scalar(
        select(AssetBalance)
        .where(AssetBalance.user_id == user_id)
        .execution_options(populate_existing=True)
    )


async def get_or_create_balance(db: AsyncSession, user_id: int) -> AssetBalance:
    balance = await load_balance(db, user_id)
    if balance is None:
        balance = AssetBalance(user_id=user_id, bitcoin=0, ethereum=0, solana=0, total_balance=0)
        db.add(balance)
        await db.flush()
        logger.info("Created asset balance for user %s", user_id)
    return balance


def _apply(asset: Asset, delta) -> dict:
    changed = getattr(AssetBalance, asset.value) + delta
    total = reduce(add, [
        changed if name == asset.value else getattr(AssetBalance, name)
        for name in ASSETS
    ])
    return {asset.value: changed, "total_balance": total, "updated_at": utcnow()}


async def credit(db: AsyncSession, user_id: int, asset, amount) -> AssetBalance:
    """Add ``amount`` of ``asset``. The caller owns the commit."""
    asset = parse_asset(asset)
    amount = _to_decimal(amount)
    await get_or_create_balance(db, user_id)
    await db.execute(
        update(AssetBalance)
        .where(AssetBalance.user_id == user_id)
        .values(**_apply(asset, amount))
        .execution_options(synchronize_session=False)
    )
    logger.info("Credit user=%s asset=%s amount=%s", user_id, asset.value, amount)
    return await load_balance(db, user_id)


async def debit(db: AsyncSession, user_id: int, asset, amount) -> AssetBalance:
    """Remove ``amount`` of ``asset`` or raise without touching the row."""
    asset = parse_asset(asset)
    amount = _to_decimal(amount)
    column = getattr(AssetBalance, asset.value)
    result = await db.execute(
        update(AssetBalance)
        .where(AssetBalance.user_id == user_id, column >= amount)
        .values(**_apply(asset, -amount))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        balance = await load_balance(db, user_id)
        available = balance.quantity(asset) if balance else Decimal(0)
        logger.warning(
            "Refused debit user=%s asset=%s amount=%s available=%s",
            user_id, asset.value, amount, available,
        )
        raise InsufficientBalanceError(asset.value, amount, Decimal(available))
    logger.info("Debit user=%s asset=%s amount=%s", user_id, asset.value, amount)
    return await load_balance(db, user_id)


def record_transaction(
    db: AsyncSession,
    user_id: int,
    type: str,
    asset,
    amount,
    description: str,
    related_id: Optional[int] = None,
) -> Transaction:
    tx = Transaction(
        user_id=user_id,
        type=type,
        asset=parse_asset(asset).value,
        amount=amount,
        description=description,
        related_id=related_id,
    )
    db.add(tx)
    return tx


def serialize_balance(balance: Optional[AssetBalance]) -> dict:
    if balance is None:
        return {name: 0.0 for name in ASSETS} | {"total_balance": 0.0}
    result = {name: float(getattr(balance, name) or 0) for name in ASSETS}
    result["total_balance"] = float(balance.total_balance or 0)
    return result
