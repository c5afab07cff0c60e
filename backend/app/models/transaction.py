from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.database import Base
from app.models.user import utcnow


class TransactionType:
    deposit = "deposit"
    withdrawal = "withdrawal"
    investment = "investment"
    earning = "earning"
    refund = "refund"


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    asset = Column(String(20), nullable=False)
    amount = Column(Numeric(20, 8), nullable=False)
    status = Column(String(20), default="completed", nullable=False)
    description = Column(String(500), nullable=False)
    related_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
