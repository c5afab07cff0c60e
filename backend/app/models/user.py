from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import enum
from app.database import Base

def utcnow() -> datetime:
    return datetime.now(timezone.utc)

class UserRole(str, enum.Enum):
    user = "user"
    admin = "admin"

class KYCStatus:
    none = "none"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"

    ALL = (none, pending, approved, rejected)

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), default=UserRole.user, nullable=False)
    kyc_status = Column(String(20), default=KYCStatus.none, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    balance = relationship("AssetBalance", back_populates="user", uselist=False)
    investments = relationship("Investment", back_populates="user")

    @property
    def is_verified(self) -> bool:
        return self.kyc_status == KYCStatus.approved
