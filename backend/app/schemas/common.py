from decimal import Decimal
from pydantic import BaseModel, Field, field_validator
from app.models.balance import Asset, parse_asset


class AssetAmount(BaseModel):
    asset: Asset
    amount: Decimal = Field(gt=0, max_digits=20, decimal_places=8)

    @field_validator("asset", mode="before")
    @classmethod
    def normalize_asset(cls, v):
        return parse_asset(v)
