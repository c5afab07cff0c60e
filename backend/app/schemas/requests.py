from datetime import date
from typing import Literal, Optional
from pydantic import BaseModel, Field
from app.schemas.common import AssetAmount


class KYCSubmission(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    date_of_birth: date
    nationality: str = Field(min_length=1, max_length=100)
    phone_number: str = Field(min_length=1, max_length=50)
    address: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    country: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    document_type: Literal["passport", "driver_license", "national_id", "state_id"]
    document_number: str = Field(min_length=1, max_length=100)


class DepositSubmission(AssetAmount):
    transaction_hash: Optional[str] = None
    wallet_address: Optional[str] = None
    payment_method: Optional[str] = Field(default=None, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=500)


class WithdrawalSubmission(AssetAmount):
    wallet_address: str = Field(min_length=1)
    network: Optional[str] = Field(default=None, max_length=20)
    notes: Optional[str] = Field(default=None, max_length=500)


class Decision(BaseModel):
    status: str
    rejection_reason: Optional[str] = Field(default=None, max_length=500)


class WithdrawalDecision(Decision):
    transaction_hash: Optional[str] = None


class UserKYCUpdate(BaseModel):
    status: Literal["approved", "rejected", "pending"]
