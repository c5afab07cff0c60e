from sqlalchemy import Column, Integer, String, Numeric, DateTime, Enum, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base
from app.models.user import utcnow

class InvestmentStatus(str, enum.Enum):
    active = "active"
    completed = "completed"
    cancelled = "cancelled"

class Investment(Base):
    __tablename__ = "investments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_investments_amount_positive"),
        CheckConstraint("end_date > start_date", name="ck_investments_dates"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    tier = Column(String(10), nullable=False)
    asset = Column(String(20), nullable=False)
    amount = Column(Numeric(20, 8), nullable=False)
    # Snapshot of the tier rate at open time
    apr = Column(Numeric(8, 4), nullable=False)
    period = Column(Integer, nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(Enum(InvestmentStatus), default=InvestmentStatus.active, nullable=False)
    earned = Column(Numeric(20, 8), default=0, nullable=False)
    payout = Column(Numeric(20, 8), nullable=True)
    close_reason = Column(String(500), nullable=True)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    user = relationship("User", back_populates="investments")
