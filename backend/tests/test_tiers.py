import pytest
from decimal import Decimal
from app.core.errors import UnknownTierError
from app.services.tiers import Tier, TIERS, lookup, tier_table


def test_lookup_by_name_and_member():
    assert lookup("Silver") is lookup(Tier.Silver)
    assert lookup("Silver").annual_rate_percent == Decimal("30")


def test_bronze_minimum():
    assert lookup(Tier.Bronze).minimum_amount == Decimal("1000")


@pytest.mark.parametrize("name", ["Platinum", "bronze", "", None])
def test_unknown_tier(name):
    with pytest.raises(UnknownTierError):
        lookup(name)


def test_table_is_read_only():
    with pytest.raises(TypeError):
        TIERS[Tier.Gold] = None


def test_tier_table_lists_every_tier():
    names = [row["tier"] for row in tier_table()]
    assert names == ["Bronze", "Silver", "Gold"]
