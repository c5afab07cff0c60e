"""Investment lifecycle: open, complete, cancel, and the maturity sweep.

States only move forward: ``active -> completed`` or ``active -> cancelled``.
Cancelling returns the principal and forfeits whatever interest had accrued.
"""
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    BelowMinimumError, InvalidStateTransitionError, NotFoundError, ValidationError,
)
from app.database import AsyncSessionLocal
from app.models.balance import parse_asset
from app.models.investment import Investment, InvestmentStatus
from app.models.transaction import TransactionType
from app.services import ledger
from app.services.accrual import (
    accrued_interest, as_utc, compounding_schedule, elapsed_days, progress_percent,
)
from app.services.tiers import lookup, MIN_PERIOD_DAYS, MAX_PERIOD_DAYS

logger = logging.getLogger(__name__)


def _now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now else datetime.now(timezone.utc)


def check_period(period: int) -> None:
    if not MIN_PERIOD_DAYS <= period <= MAX_PERIOD_DAYS:
        raise ValidationError(
            f"Period must be between {MIN_PERIOD_DAYS} and {MAX_PERIOD_DAYS} days",
            field="period",
        )


def check_minimum(tier, amount: Decimal) -> None:
    spec = lookup(tier)
    if amount < spec.minimum_amount:
        logger.warning("Refused %s investment below minimum: %s", spec.name.value, amount)
        raise BelowMinimumError(spec.name.value, spec.minimum_amount, amount)


async def open_investment(
    db: AsyncSession,
    user_id: int,
    tier,
    asset,
    amount,
    period: int,
    now: Optional[datetime] = None,
) -> Investment:
    spec = lookup(tier)
    asset = parse_asset(asset)
    amount = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if amount <= 0:
        raise ValidationError("Amount must be positive", field="amount")
    check_period(period)
    check_minimum(spec.name, amount)

    # Raises before anything is written when the balance is short
    await ledger.debit(db, user_id, asset, amount)

    start = _now(now)
    investment = Investment(
        user_id=user_id,
        tier=spec.name.value,
        asset=asset.value,
        amount=amount,
        apr=spec.annual_rate_percent,
        period=period,
        start_date=start,
        end_date=start + timedelta(days=period),
        status=InvestmentStatus.active,
        earned=0,
    )
    db.add(investment)
    await db.flush()
    ledger.record_transaction(
        db, user_id, TransactionType.investment, asset, amount,
        f"{spec.name.value} investment of {amount} {asset.value} for {period} days",
        related_id=investment.id,
    )
    await db.commit()
    await db.refresh(investment)
    logger.info(
        "Opened investment %s user=%s tier=%s asset=%s amount=%s period=%s",
        investment.id, user_id, spec.name.value, asset.value, amount, period,
    )
    return investment


async def get_investment(db: AsyncSession, investment_id: int, user_id: Optional[int] = None) -> Investment:
    query = select(Investment).where(Investment.id == investment_id)
    if user_id is not None:
        query = query.where(Investment.user_id == user_id)
    investment = await db.scalar(query.execution_options(populate_existing=True))
    if not investment:
        raise NotFoundError("Investment not found")
    return investment


async def _close(
    db: AsyncSession,
    investment: Investment,
    target: InvestmentStatus,
    earned: Decimal,
    reason: Optional[str],
    now: datetime,
) -> Investment:
    # The status guard in the WHERE clause makes a second settlement of the
    # same position fail even when two requests race.
    payout = Decimal(investment.amount) + earned
    result = await db.execute(
        update(Investment)
        .where(Investment.id == investment.id, Investment.status == InvestmentStatus.active)
        .values(status=target, earned=earned, payout=payout, closed_at=now, close_reason=reason)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        current = await get_investment(db, investment.id)
        raise InvalidStateTransitionError("investment", current.status.value, target.value)

    await ledger.credit(db, investment.user_id, investment.asset, payout)
    ledger.record_transaction(
        db, investment.user_id, TransactionType.refund, investment.asset, investment.amount,
        f"Principal returned from investment #{investment.id}", related_id=investment.id,
    )
    if earned > 0:
        ledger.record_transaction(
            db, investment.user_id, TransactionType.earning, investment.asset, earned,
            f"Interest from investment #{investment.id}", related_id=investment.id,
        )
    await db.commit()
    logger.info(
        "Investment %s %s user=%s principal=%s interest=%s",
        investment.id, target.value, investment.user_id, investment.amount, earned,
    )
    return await get_investment(db, investment.id)


def _require_active(investment: Investment, target: InvestmentStatus) -> None:
    if investment.status != InvestmentStatus.active:
        logger.warning(
            "Refused %s -> %s for investment %s", investment.status.value, target.value, investment.id,
        )
        raise InvalidStateTransitionError("investment", investment.status.value, target.value)


async def complete_investment(db: AsyncSession, investment_id: int, now: Optional[datetime] = None) -> Investment:
    """Settle with principal plus interest accrued so far (capped at the period)."""
    investment = await get_investment(db, investment_id)
    _require_active(investment, InvestmentStatus.completed)
    now = _now(now)
    days = elapsed_days(investment.start_date, now)
    earned = accrued_interest(investment.amount, investment.apr, days, investment.period)
    return await _close(db, investment, InvestmentStatus.completed, earned, None, now)


async def cancel_investment(
    db: AsyncSession,
    investment_id: int,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Investment:
    """Return the principal only; accrued interest is forfeited."""
    investment = await get_investment(db, investment_id)
    _require_active(investment, InvestmentStatus.cancelled)
    return await _close(db, investment, InvestmentStatus.cancelled, Decimal(0), reason, _now(now))


async def list_investments(db: AsyncSession, user_id: Optional[int] = None) -> List[Investment]:
    query = select(Investment)
    if user_id is not None:
        query = query.where(Investment.user_id == user_id)
    return list(await db.scalars(query.order_by(Investment.created_at.desc(), Investment.id.desc())))


async def settle_matured(db: AsyncSession, now: Optional[datetime] = None) -> List[int]:
    now = _now(now)
    matured = list(await db.scalars(
        select(Investment.id).where(
            Investment.status == InvestmentStatus.active,
            Investment.end_date <= now,
        )
    ))
    settled = []
    for investment_id in matured:
        try:
            await complete_investment(db, investment_id, now=now)
        except InvalidStateTransitionError:
            # Closed by an admin between the query and the update
            continue
        settled.append(investment_id)
    if settled:
        logger.info("Settled %d matured investments", len(settled))
    return settled


async def settle_matured_investments():
    """Scheduler entry point."""
    async with AsyncSessionLocal() as db:
        await settle_matured(db)


def investment_view(investment: Investment, now: Optional[datetime] = None) -> dict:
    """Serialise with progress and earnings computed from the clock."""
    active = investment.status == InvestmentStatus.active
    moment = _now(now) if active else as_utc(investment.closed_at or _now(now))
    days = min(elapsed_days(investment.start_date, moment), investment.period)
    amount = Decimal(investment.amount)
    if active:
        earned = accrued_interest(amount, investment.apr, days, investment.period)
    else:
        earned = Decimal(investment.earned or 0)
    expected = accrued_interest(amount, investment.apr, investment.period)
    return {
        "id": investment.id,
        "tier": investment.tier,
        "asset": investment.asset,
        "amount": float(amount),
        "apr": float(investment.apr),
        "period": investment.period,
        "start_date": as_utc(investment.start_date).isoformat(),
        "end_date": as_utc(investment.end_date).isoformat(),
        "status": investment.status.value,
        "elapsed_days": days,
        "progress": progress_percent(days, investment.period),
        "earned": float(earned),
        "expected_interest": float(expected),
        "matured": active and as_utc(investment.end_date) <= moment,
        "payout": float(investment.payout) if investment.payout is not None else None,
        "close_reason": investment.close_reason,
        "closed_at": as_utc(investment.closed_at).isoformat() if investment.closed_at else None,
        "created_at": as_utc(investment.created_at).isoformat() if investment.created_at else None,
    }


def growth_series(investment: Investment, now: Optional[datetime] = None, limit: int = 30) -> List[dict]:
    """Compounded daily balance from the start date, for charting."""
    days = min(elapsed_days(investment.start_date, _now(now)), investment.period)
    if days == 0:
        return []
    snapshots = compounding_schedule(
        investment.amount, investment.apr, days, start=as_utc(investment.start_date).date(),
    )
    return [s.as_dict() for s in snapshots[-limit:]]
