from sqlalchemy import Column, Integer, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.core.errors import ValidationError
from app.database import Base
from app.models.user import utcnow

class Asset(str, enum.Enum):
    bitcoin = "bitcoin"
    ethereum = "ethereum"
    solana = "solana"

ASSETS = tuple(a.value for a in Asset)

# Ticker aliases accepted wherever an asset is named in a request
ASSET_SYMBOLS = {"BTC": Asset.bitcoin, "ETH": Asset.ethereum, "SOL": Asset.solana}

def parse_asset(value) -> Asset:
    if isinstance(value, Asset):
        return value
    if isinstance(value, str):
        if value.upper() in ASSET_SYMBOLS:
            return ASSET_SYMBOLS[value.upper()]
        try:
            return Asset(value.lower())
        except ValueError:
            pass
    raise ValidationError(f"Unknown asset: {value!r}", field="asset")

class AssetBalance(Base):
    __tablename__ = "asset_balances"
    __table_args__ = (
        CheckConstraint("bitcoin >= 0 AND ethereum >= 0 AND solana >= 0", name="ck_asset_balances_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    bitcoin = Column(Numeric(precision=20, scale=8), default=0, nullable=False)
    ethereum = Column(Numeric(precision=20, scale=8), default=0, nullable=False)
    solana = Column(Numeric(precision=20, scale=8), default=0, nullable=False)
    # Always written in the same statement as the asset columns
    total_balance = Column(Numeric(precision=20, scale=8), default=0, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    user = relationship("User", back_populates="balance")

    def quantity(self, asset: Asset):
        return getattr(self, Asset(asset).value)
