"""Interest accrual shared by previews, dashboards and settlement.

Two modes exist:

* simple interest, ``principal * apr / 100 / 365 * days``. This is what
  investments actually pay out.
* daily compounding, used only to draw the growth chart.
"""
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import List, Optional, Union

from app.core.errors import InvalidAccrualInputError

DAYS_PER_YEAR = Decimal(365)
QUANTUM = Decimal("0.00000001")

Number = Union[Decimal, int, float, str]


def _dec(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    # str() first so floats like 0.1 don't drag binary noise along
    return Decimal(str(value))


def _check(principal: Decimal, rate: Decimal, days: int) -> None:
    if principal <= 0:
        raise InvalidAccrualInputError("principal must be positive", field="principal")
    if rate < 0:
        raise InvalidAccrualInputError("annual rate must not be negative", field="annual_rate_percent")
    if days < 0:
        raise InvalidAccrualInputError("elapsed days must not be negative", field="elapsed_days")


def daily_rate(annual_rate_percent: Number) -> Decimal:
    return _dec(annual_rate_percent) / Decimal(100) / DAYS_PER_YEAR


def accrued_interest(
    principal: Number,
    annual_rate_percent: Number,
    elapsed_days: int,
    period: Optional[int] = None,
) -> Decimal:
    """Simple interest earned after ``elapsed_days``.

    When ``period`` is given the elapsed days are clamped to it, so a
    position never earns past its end date.
    """
    p, r = _dec(principal), _dec(annual_rate_percent)
    _check(p, r, elapsed_days)
    days = elapsed_days if period is None else min(elapsed_days, period)
    return (p * daily_rate(r) * days).quantize(QUANTUM)


@dataclass(frozen=True)
class Preview:
    principal: Decimal
    annual_rate_percent: Decimal
    period: int
    interest: Decimal
    total: Decimal
    daily_earning: Decimal

    def as_dict(self) -> dict:
        return {
            "principal": float(self.principal),
            "annual_rate_percent": float(self.annual_rate_percent),
            "period": self.period,
            "interest": float(self.interest),
            "total": float(self.total),
            "daily_earning": float(self.daily_earning),
        }


def simple_interest_preview(principal: Number, annual_rate_percent: Number, period: int) -> Preview:
    """Estimated payout for holding ``principal`` for the whole ``period``."""
    p, r = _dec(principal), _dec(annual_rate_percent)
    interest = accrued_interest(p, r, period)
    return Preview(
        principal=p,
        annual_rate_percent=r,
        period=period,
        interest=interest,
        total=p + interest,
        daily_earning=(p * daily_rate(r)).quantize(QUANTUM),
    )


@dataclass(frozen=True)
class DailySnapshot:
    day: int
    date: date
    amount: Decimal
    daily_earning: Decimal
    percentage: Decimal

    def as_dict(self) -> dict:
        return {
            "day": self.day,
            "date": self.date.isoformat(),
            "amount": float(self.amount),
            "daily_earning": float(self.daily_earning),
            "percentage": float(self.percentage),
        }


def compounding_schedule(
    principal: Number,
    annual_rate_percent: Number,
    days: int,
    start: Optional[date] = None,
) -> List[DailySnapshot]:
    """Day-by-day compounded balance, one snapshot per elapsed day."""
    p, r = _dec(principal), _dec(annual_rate_percent)
    _check(p, r, days)
    rate = daily_rate(r)
    start = start or datetime.now(timezone.utc).date()

    snapshots = []
    current = p
    for day in range(1, days + 1):
        earning = current * rate
        current += earning
        snapshots.append(DailySnapshot(
            day=day,
            date=start + timedelta(days=day),
            amount=current.quantize(QUANTUM),
            daily_earning=earning.quantize(QUANTUM),
            percentage=((current - p) / p * 100).quantize(Decimal("0.0001")),
        ))
    return snapshots


def as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive datetimes; every stored timestamp is UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def elapsed_days(start: datetime, now: Optional[datetime] = None) -> int:
    """Whole days between ``start`` and ``now``, floored and never negative."""
    now = now or datetime.now(timezone.utc)
    delta = as_utc(now) - as_utc(start)
    return max(delta // timedelta(days=1), 0)


def progress_percent(elapsed: int, period: int) -> float:
    if period <= 0:
        return 100.0
    return min(max(elapsed / period * 100, 0.0), 100.0)
