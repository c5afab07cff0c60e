"""Static investment tier table.

Rates are policy constants. Investments copy the rate at open time, so
editing this table never changes positions that are already running.
"""
import enum
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType

from app.core.errors import UnknownTierError

MIN_PERIOD_DAYS = 30
MAX_PERIOD_DAYS = 365


class Tier(str, enum.Enum):
    Bronze = "Bronze"
    Silver = "Silver"
    Gold = "Gold"


@dataclass(frozen=True)
class TierSpec:
    name: Tier
    minimum_amount: Decimal
    annual_rate_percent: Decimal


TIERS = MappingProxyType({
    Tier.Bronze: TierSpec(Tier.Bronze, Decimal("1000"), Decimal("24")),
    Tier.Silver: TierSpec(Tier.Silver, Decimal("5000"), Decimal("30")),
    Tier.Gold: TierSpec(Tier.Gold, Decimal("10000"), Decimal("36")),
})


def lookup(tier) -> TierSpec:
    """Return the ``TierSpec`` for ``tier`` (enum member or exact name)."""
    try:
        return TIERS[Tier(tier)]
    except ValueError:
        raise UnknownTierError(tier) from None


def tier_table() -> list:
    return [
        {
            "tier": spec.name.value,
            "minimum_amount": float(spec.minimum_amount),
            "annual_rate_percent": float(spec.annual_rate_percent),
        }
        for spec in TIERS.values()
    ]
