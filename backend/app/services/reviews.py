"""User-submitted requests and the admin decisions on them."""
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import (
    ConflictError, InsufficientBalanceError, InvalidStateTransitionError, NotFoundError, ValidationError,
)
from app.models.balance import parse_asset
from app.models.requests import (
    KYCRequest, KYCRequestStatus, DepositRequest, DepositStatus,
    WithdrawalRequest, WithdrawalStatus,
)
from app.models.transaction import TransactionType
from app.models.user import User, KYCStatus
from app.services import ledger

logger = logging.getLogger(__name__)

# current status -> statuses an admin may move it to
KYC_TRANSITIONS = {
    KYCRequestStatus.pending: {KYCRequestStatus.approved, KYCRequestStatus.rejected},
}
DEPOSIT_TRANSITIONS = {
    DepositStatus.pending: {DepositStatus.verified, DepositStatus.rejected},
    DepositStatus.verified: {DepositStatus.completed},
}
WITHDRAWAL_TRANSITIONS = {
    WithdrawalStatus.pending: {WithdrawalStatus.approved, WithdrawalStatus.rejected},
    WithdrawalStatus.approved: {WithdrawalStatus.completed},
}


def check_transition(entity: str, transitions: dict, current: str, target: str) -> None:
    every_status = set(transitions) | set().union(*transitions.values())
    if target not in every_status:
        raise ValidationError(f"Invalid status: {target}", field="status")
    if target not in transitions.get(current, ()):
        logger.warning("Refused %s transition %s -> %s", entity, current, target)
        raise InvalidStateTransitionError(entity, current, target)


async def _claim(db: AsyncSession, model, record_id: int, current: str, values: dict) -> None:
    # Conditional on the status we read, so two admins cannot both decide
    result = await db.execute(
        update(model)
        .where(model.id == record_id, model.status == current)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise InvalidStateTransitionError(
            model.__tablename__, current, values["status"],
            message="Request was already decided",
        )


async def _get(db: AsyncSession, model, record_id: int, label: str):
    record = await db.scalar(
        select(model).where(model.id == record_id).execution_options(populate_existing=True)
    )
    if not record:
        raise NotFoundError(f"{label} not found")
    return record


# ── KYC ────────────────────────────────────────────────────────────

async def submit_kyc(db: AsyncSession, user: User, data: dict) -> KYCRequest:
    existing = await db.scalar(
        select(KYCRequest).where(
            KYCRequest.user_id == user.id,
            KYCRequest.status.in_(KYCRequestStatus.OPEN),
        )
    )
    if existing:
        raise ConflictError(
            "KYC already approved" if existing.status == KYCRequestStatus.approved
            else "KYC request already pending"
        )
    request = KYCRequest(user_id=user.id, **data)
    db.add(request)
    user.kyc_status = KYCStatus.pending
    await db.commit()
    await db.refresh(request)
    logger.info("KYC request %s submitted by user %s", request.id, user.id)
    return request


async def decide_kyc(
    db: AsyncSession,
    request_id: int,
    status: str,
    reviewer_id: int,
    rejection_reason: Optional[str] = None,
) -> KYCRequest:
    request = await _get(db, KYCRequest, request_id, "KYC request")
    check_transition("kyc_request", KYC_TRANSITIONS, request.status, status)
    await _claim(db, KYCRequest, request.id, request.status, {
        "status": status,
        "reviewed_by": reviewer_id,
        "reviewed_at": datetime.now(timezone.utc),
        "rejection_reason": rejection_reason,
    })
    user = await db.get(User, request.user_id)
    if user:
        user.kyc_status = KYCStatus.approved if status == KYCRequestStatus.approved else KYCStatus.rejected
    await db.commit()
    logger.info("KYC request %s %s by admin %s", request_id, status, reviewer_id)
    return await _get(db, KYCRequest, request_id, "KYC request")


async def override_kyc(db: AsyncSession, user: User, status: str, reviewer_id: int) -> User:
    """Set ``user.kyc_status`` directly, closing requests that would contradict it.

    Reverting to ``rejected`` closes every open request; reverting to
    ``pending`` closes only an approved one, so a pending request stays in
    the review queue. Either way the user can submit a fresh request.
    """
    stale = {
        KYCStatus.rejected: KYCRequestStatus.OPEN,
        KYCStatus.pending: (KYCRequestStatus.approved,),
    }.get(status, ())
    if stale:
        await db.execute(
            update(KYCRequest)
            .where(KYCRequest.user_id == user.id, KYCRequest.status.in_(stale))
            .values(
                status=KYCRequestStatus.rejected,
                reviewed_by=reviewer_id,
                reviewed_at=datetime.now(timezone.utc),
                rejection_reason=f"KYC status overridden to {status} by admin",
            )
            .execution_options(synchronize_session=False)
        )
    user.kyc_status = status
    await db.commit()
    logger.info("KYC status of user %s overridden to %s by admin %s", user.id, status, reviewer_id)
    return user


# ── Deposits ───────────────────────────────────────────────────────

async def submit_deposit(db: AsyncSession, user: User, data: dict) -> DepositRequest:
    request = DepositRequest(user_id=user.id, **data)
    db.add(request)
    await db.commit()
    await db.refresh(request)
    logger.info("Deposit request %s: %s %s from user %s", request.id, request.amount, request.asset, user.id)
    return request


async def decide_deposit(
    db: AsyncSession,
    request_id: int,
    status: str,
    reviewer_id: int,
    rejection_reason: Optional[str] = None,
) -> DepositRequest:
    request = await _get(db, DepositRequest, request_id, "Deposit request")
    check_transition("deposit_request", DEPOSIT_TRANSITIONS, request.status, status)
    values = {"status": status, "reviewed_by": reviewer_id, "reviewed_at": datetime.now(timezone.utc)}
    if rejection_reason:
        values["rejection_reason"] = rejection_reason
    await _claim(db, DepositRequest, request.id, request.status, values)

    if status == DepositStatus.verified:
        await ledger.credit(db, request.user_id, request.asset, request.amount)
        ledger.record_transaction(
            db, request.user_id, TransactionType.deposit, request.asset, request.amount,
            f"Deposit of {request.amount} {request.asset} verified by admin",
            related_id=request.id,
        )
    await db.commit()
    logger.info("Deposit request %s %s by admin %s", request_id, status, reviewer_id)
    return await _get(db, DepositRequest, request_id, "Deposit request")


# ── Withdrawals ────────────────────────────────────────────────────

async def submit_withdrawal(db: AsyncSession, user: User, data: dict) -> WithdrawalRequest:
    asset = parse_asset(data["asset"])
    balance = await ledger.load_balance(db, user.id)
    available = balance.quantity(asset) if balance else 0
    if data["amount"] > available:
        raise ValidationError(
            f"Withdrawal exceeds available {asset.value} balance ({available})",
            field="amount",
        )
    request = WithdrawalRequest(user_id=user.id, **data)
    db.add(request)
    await db.commit()
    await db.refresh(request)
    logger.info("Withdrawal request %s: %s %s from user %s", request.id, request.amount, request.asset, user.id)
    return request


async def decide_withdrawal(
    db: AsyncSession,
    request_id: int,
    status: str,
    reviewer_id: int,
    rejection_reason: Optional[str] = None,
    transaction_hash: Optional[str] = None,
) -> WithdrawalRequest:
    request = await _get(db, WithdrawalRequest, request_id, "Withdrawal request")
    check_transition("withdrawal_request", WITHDRAWAL_TRANSITIONS, request.status, status)
    now = datetime.now(timezone.utc)
    values = {"status": status, "reviewed_by": reviewer_id}
    if status == WithdrawalStatus.approved:
        values["approved_at"] = now
    elif status == WithdrawalStatus.completed:
        values["completed_at"] = now
        if transaction_hash:
            values["transaction_hash"] = transaction_hash
    if rejection_reason:
        values["rejection_reason"] = rejection_reason
    await _claim(db, WithdrawalRequest, request.id, request.status, values)

    if status == WithdrawalStatus.approved:
        try:
            await ledger.debit(db, request.user_id, request.asset, request.amount)
        except InsufficientBalanceError:
            # Leave the request pending
            await db.rollback()
            raise
        ledger.record_transaction(
            db, request.user_id, TransactionType.withdrawal, request.asset, request.amount,
            f"Withdrawal of {request.amount} {request.asset} approved by admin",
            related_id=request.id,
        )
    await db.commit()
    logger.info("Withdrawal request %s %s by admin %s", request_id, status, reviewer_id)
    return await _get(db, WithdrawalRequest, request_id, "Withdrawal request")


def serialize_request(request, email: Optional[str] = None) -> dict:
    result = {}
    for column in request.__table__.columns:
        value = getattr(request, column.name)
        if isinstance(value, datetime):
            value = value.replace(tzinfo=value.tzinfo or timezone.utc).isoformat()
        elif hasattr(value, "isoformat"):
            value = value.isoformat()
        elif column.name == "amount" and value is not None:
            value = float(value)
        result[column.name] = value
    if email is not None:
        result["email"] = email
    return result
