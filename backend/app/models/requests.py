from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.sql import func
from app.database import Base
from app.models.user import utcnow


class KYCRequestStatus:
    pending = "pending"
    approved = "approved"
    rejected = "rejected"

    # A user may hold at most one of these at a time
    OPEN = (pending, approved)


class DocumentType:
    passport = "passport"
    driver_license = "driver_license"
    national_id = "national_id"
    state_id = "state_id"

    ALL = (passport, driver_license, national_id, state_id)


class DepositStatus:
    pending = "pending"
    verified = "verified"
    rejected = "rejected"
    completed = "completed"


class WithdrawalStatus:
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"


class KYCRequest(Base):
    __tablename__ = "kyc_requests"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    nationality = Column(String(100), nullable=False)
    phone_number = Column(String(50), nullable=False)
    address = Column(String(255), nullable=False)
    city = Column(String(100), nullable=False)
    country = Column(String(100), nullable=False)
    postal_code = Column(String(20), nullable=False)
    document_type = Column(String(20), nullable=False)
    document_number = Column(String(100), nullable=False)
    status = Column(String(20), default=KYCRequestStatus.pending, nullable=False)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class DepositRequest(Base):
    __tablename__ = "deposit_requests"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(20, 8), nullable=False)
    asset = Column(String(20), nullable=False)
    transaction_hash = Column(String, nullable=True)
    wallet_address = Column(String, nullable=True)
    payment_method = Column(String(50), nullable=True)
    notes = Column(String(500), nullable=True)
    status = Column(String(20), default=DepositStatus.pending, nullable=False)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(20, 8), nullable=False)
    asset = Column(String(20), nullable=False)
    wallet_address = Column(String, nullable=False)
    network = Column(String(20), nullable=True)
    notes = Column(String(500), nullable=True)
    status = Column(String(20), default=WithdrawalStatus.pending, nullable=False)
    transaction_hash = Column(String, nullable=True)
    reviewed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
