import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch
from app.core.errors import (
    BelowMinimumError, InsufficientBalanceError, InvalidStateTransitionError,
    NotFoundError, UnknownTierError, ValidationError,
)
from app.models.investment import InvestmentStatus
from app.services import ledger
from app.services import investments as lifecycle
from app.services.tiers import TierSpec, Tier

T0 = datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)


async def bitcoin(db, user_id) -> float:
    balance = await ledger.load_balance(db, user_id)
    return float(balance.bitcoin)


@pytest.mark.asyncio
async def test_open_debits_balance_and_snapshots_rate(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Silver", "bitcoin", Decimal("5000"), 90, now=T0)
    assert inv.status == InvestmentStatus.active
    assert inv.apr == Decimal("30")
    assert inv.end_date - inv.start_date == timedelta(days=90)
    assert await bitcoin(db, investor.id) == 15000


@pytest.mark.asyncio
async def test_bronze_minimum_boundary(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Bronze", "bitcoin", Decimal("1000"), 30)
    assert inv.amount == Decimal("1000")
    with pytest.raises(BelowMinimumError) as exc:
        await lifecycle.open_investment(db, investor.id, "Bronze", "bitcoin", Decimal("999"), 30)
    assert exc.value.extra["required"] == Decimal("1000")
    assert exc.value.extra["provided"] == Decimal("999")
    assert await bitcoin(db, investor.id) == 19000


@pytest.mark.asyncio
async def test_open_refused_when_balance_short(db, investor):
    with pytest.raises(InsufficientBalanceError):
        await lifecycle.open_investment(db, investor.id, "Gold", "solana", Decimal("20000.5"), 60)
    assert await lifecycle.list_investments(db, investor.id) == []


@pytest.mark.asyncio
async def test_open_rejects_unknown_tier_and_bad_period(db, investor):
    with pytest.raises(UnknownTierError):
        await lifecycle.open_investment(db, investor.id, "Platinum", "bitcoin", Decimal("10000"), 30)
    with pytest.raises(ValidationError):
        await lifecycle.open_investment(db, investor.id, "Bronze", "bitcoin", Decimal("1000"), 7)


@pytest.mark.asyncio
async def test_complete_immediately_returns_principal(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Gold", "ethereum", Decimal("10000"), 120, now=T0)
    done = await lifecycle.complete_investment(db, inv.id, now=T0 + timedelta(hours=6))
    assert done.status == InvestmentStatus.completed
    assert done.earned == 0
    assert done.payout == Decimal("10000")
    balance = await ledger.load_balance(db, investor.id)
    assert float(balance.ethereum) == 20000


@pytest.mark.asyncio
async def test_complete_at_maturity_pays_simple_interest(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Silver", "bitcoin", Decimal("5000"), 90, now=T0)
    done = await lifecycle.complete_investment(db, inv.id, now=T0 + timedelta(days=90))
    assert float(done.payout) == pytest.approx(5369.86, abs=0.01)
    assert await bitcoin(db, investor.id) == pytest.approx(15000 + 5369.86, abs=0.01)


@pytest.mark.asyncio
async def test_complete_after_maturity_caps_interest(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Silver", "bitcoin", Decimal("5000"), 90, now=T0)
    done = await lifecycle.complete_investment(db, inv.id, now=T0 + timedelta(days=400))
    assert float(done.earned) == pytest.approx(369.86, abs=0.01)


@pytest.mark.asyncio
async def test_cancel_forfeits_accrued_interest(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Silver", "bitcoin", Decimal("5000"), 90, now=T0)
    view = lifecycle.investment_view(inv, now=T0 + timedelta(days=10))
    assert view["earned"] > 0

    cancelled = await lifecycle.cancel_investment(db, inv.id, reason="user request", now=T0 + timedelta(days=10))
    assert cancelled.status == InvestmentStatus.cancelled
    assert cancelled.earned == 0
    assert cancelled.payout == Decimal("5000")
    assert cancelled.close_reason == "user request"
    assert await bitcoin(db, investor.id) == 20000


@pytest.mark.asyncio
async def test_terminal_states_are_final(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Bronze", "solana", Decimal("1000"), 30, now=T0)
    await lifecycle.complete_investment(db, inv.id, now=T0 + timedelta(days=30))
    with pytest.raises(InvalidStateTransitionError):
        await lifecycle.complete_investment(db, inv.id)
    with pytest.raises(InvalidStateTransitionError):
        await lifecycle.cancel_investment(db, inv.id)

    other = await lifecycle.open_investment(db, investor.id, "Bronze", "solana", Decimal("1000"), 30, now=T0)
    await lifecycle.cancel_investment(db, other.id)
    with pytest.raises(InvalidStateTransitionError) as exc:
        await lifecycle.complete_investment(db, other.id)
    assert exc.value.extra == {"current": "cancelled", "target": "completed"}


@pytest.mark.asyncio
async def test_missing_investment(db):
    with pytest.raises(NotFoundError):
        await lifecycle.complete_investment(db, 4242)


@pytest.mark.asyncio
async def test_rate_change_does_not_touch_open_positions(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Bronze", "bitcoin", Decimal("1000"), 30, now=T0)
    raised = {Tier.Bronze: TierSpec(Tier.Bronze, Decimal("1000"), Decimal("99"))}
    with patch("app.services.investments.lookup", side_effect=lambda t: raised[Tier(t)]):
        newer = await lifecycle.open_investment(db, investor.id, "Bronze", "bitcoin", Decimal("1000"), 30, now=T0)
    assert newer.apr == Decimal("99")
    done = await lifecycle.complete_investment(db, inv.id, now=T0 + timedelta(days=30))
    assert done.apr == Decimal("24")
    assert float(done.earned) == pytest.approx(1000 * 0.24 / 365 * 30, abs=1e-6)


@pytest.mark.asyncio
async def test_investment_view_progress(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Silver", "bitcoin", Decimal("5000"), 90, now=T0)
    view = lifecycle.investment_view(inv, now=T0 + timedelta(days=45, hours=3))
    assert view["elapsed_days"] == 45
    assert view["progress"] == 50.0
    assert view["matured"] is False
    assert view["expected_interest"] == pytest.approx(369.86, abs=0.01)

    late = lifecycle.investment_view(inv, now=T0 + timedelta(days=95))
    assert late["progress"] == 100.0
    assert late["matured"] is True
    assert late["status"] == "active"
    assert late["earned"] == pytest.approx(369.86, abs=0.01)


@pytest.mark.asyncio
async def test_growth_series(db, investor):
    inv = await lifecycle.open_investment(db, investor.id, "Gold", "bitcoin", Decimal("10000"), 60, now=T0)
    assert lifecycle.growth_series(inv, now=T0) == []
    series = lifecycle.growth_series(inv, now=T0 + timedelta(days=40), limit=30)
    assert len(series) == 30
    assert series[-1]["day"] == 40
    assert series[-1]["amount"] > series[0]["amount"]


@pytest.mark.asyncio
async def test_settle_matured_only_touches_due_positions(db, investor):
    due = await lifecycle.open_investment(db, investor.id, "Bronze", "bitcoin", Decimal("1000"), 30, now=T0)
    running = await lifecycle.open_investment(db, investor.id, "Bronze", "bitcoin", Decimal("1000"), 90, now=T0)
    settled = await lifecycle.settle_matured(db, now=T0 + timedelta(days=31))
    assert settled == [due.id]
    assert (await lifecycle.get_investment(db, due.id)).status == InvestmentStatus.completed
    assert (await lifecycle.get_investment(db, running.id)).status == InvestmentStatus.active
    assert await lifecycle.settle_matured(db, now=T0 + timedelta(days=31)) == []


@pytest.mark.asyncio
async def test_list_newest_first(db, investor):
    first = await lifecycle.open_investment(db, investor.id, "Bronze", "bitcoin", Decimal("1000"), 30)
    second = await lifecycle.open_investment(db, investor.id, "Bronze", "bitcoin", Decimal("1000"), 30)
    rows = await lifecycle.list_investments(db, investor.id)
    assert [r.id for r in rows] == [second.id, first.id]
