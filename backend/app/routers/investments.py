from decimal import Decimal
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from app.config import settings
from app.database import get_db
from app.core.deps import get_current_user
from app.models.user import User
from app.schemas.investment import CreateInvestmentRequest
from app.services import investments as lifecycle
from app.services.accrual import simple_interest_preview
from app.services.tiers import lookup, tier_table, MIN_PERIOD_DAYS, MAX_PERIOD_DAYS

router = APIRouter(prefix="/api/investments", tags=["investments"])


async def require_investor(user: User = Depends(get_current_user)) -> User:
    if settings.INVESTMENT_REQUIRES_KYC and not user.is_verified:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "KYC verification required before making investments")
    return user


@router.get("/tiers")
async def tiers():
    return {
        "tiers": tier_table(),
        "min_period_days": MIN_PERIOD_DAYS,
        "max_period_days": MAX_PERIOD_DAYS,
    }


@router.get("/preview")
async def preview(
    tier: str,
    amount: Decimal = Query(gt=0),
    period: int = Query(ge=MIN_PERIOD_DAYS, le=MAX_PERIOD_DAYS),
):
    spec = lookup(tier.capitalize())
    lifecycle.check_minimum(spec.name, amount)
    result = simple_interest_preview(amount, spec.annual_rate_percent, period).as_dict()
    result["tier"] = spec.name.value
    return result


@router.get("")
async def list_investments(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    rows = await lifecycle.list_investments(db, user.id)
    return {"investments": [lifecycle.investment_view(inv) for inv in rows]}


@router.post("", status_code=201)
async def create_investment(
    body: CreateInvestmentRequest,
    user: User = Depends(require_investor),
    db: AsyncSession = Depends(get_db),
):
    investment = await lifecycle.open_investment(
        db, user.id, body.tier, body.asset, body.amount, body.period,
    )
    return {
        "investment": lifecycle.investment_view(investment),
        "message": f"Investment of {body.amount} {body.asset.value} created successfully",
    }


@router.get("/{investment_id}")
async def get_investment(
    investment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    investment = await lifecycle.get_investment(db, investment_id, user_id=user.id)
    return {"investment": lifecycle.investment_view(investment)}


@router.get("/{investment_id}/growth")
async def growth(
    investment_id: int,
    limit: int = Query(30, ge=1, le=365),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    investment = await lifecycle.get_investment(db, investment_id, user_id=user.id)
    return {
        "investment_id": investment.id,
        "series": lifecycle.growth_series(investment, limit=limit),
    }
