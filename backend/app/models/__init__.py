from app.models.user import User, UserRole, KYCStatus
from app.models.balance import AssetBalance, Asset, ASSETS
from app.models.investment import Investment, InvestmentStatus
from app.models.requests import (
    KYCRequest, KYCRequestStatus, DocumentType,
    DepositRequest, DepositStatus,
    WithdrawalRequest, WithdrawalStatus,
)
from app.models.transaction import Transaction, TransactionType
