from typing import Optional
from pydantic import BaseModel, Field, field_validator
from app.schemas.common import AssetAmount
from app.services.tiers import Tier, MIN_PERIOD_DAYS, MAX_PERIOD_DAYS


class CreateInvestmentRequest(AssetAmount):
    tier: Tier
    period: int = Field(ge=MIN_PERIOD_DAYS, le=MAX_PERIOD_DAYS)

    @field_validator("tier", mode="before")
    @classmethod
    def normalize_tier(cls, v):
        return v.capitalize() if isinstance(v, str) else v


class CancelInvestmentRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)
