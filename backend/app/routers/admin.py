from typing import Optional
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.core.deps import require_admin
from app.core.errors import NotFoundError
from app.models.investment import Investment, InvestmentStatus
from app.models.requests import KYCRequest, DepositRequest, WithdrawalRequest
from app.models.user import User
from app.schemas.investment import CancelInvestmentRequest
from app.schemas.requests import Decision, WithdrawalDecision, UserKYCUpdate
from app.services import investments as lifecycle
from app.services import reviews
from app.services.accounts import delete_user, serialize_user

router = APIRouter(prefix="/api/admin", tags=["admin"])


# ── Users ──────────────────────────────────────────────────────────

@router.get("/users")
async def list_users(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    users = await db.scalars(select(User).order_by(User.created_at.desc(), User.id.desc()))
    return {"users": [serialize_user(u) for u in users]}


@router.delete("/users/{user_id}")
async def remove_user(user_id: int, admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    if user_id == admin.id:
        raise HTTPException(400, "Cannot delete your own account")
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    email = user.email
    await delete_user(db, user_id)
    return {"message": f"User {email} deleted successfully"}


@router.put("/users/{user_id}/kyc")
async def set_user_kyc(
    user_id: int,
    body: UserKYCUpdate,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    user = await db.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    await reviews.override_kyc(db, user, body.status, admin.id)
    return {"message": f"KYC status updated to {body.status}", "user": serialize_user(user)}


@router.get("/stats")
async def stats(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    total_invested, avg_invested = (await db.execute(
        select(func.sum(Investment.amount), func.avg(Investment.amount))
    )).one()
    kyc_rows = await db.execute(select(User.kyc_status, func.count(User.id)).group_by(User.kyc_status))

    async def count(query) -> int:
        return await db.scalar(query) or 0

    return {"stats": {
        "total_users": await count(select(func.count(User.id))),
        "total_investments": await count(select(func.count(Investment.id))),
        "active_investments": await count(
            select(func.count(Investment.id)).where(Investment.status == InvestmentStatus.active)
        ),
        "total_invested": float(total_invested or 0),
        "avg_investment": float(avg_invested or 0),
        "pending_kyc": await count(select(func.count(KYCRequest.id)).where(KYCRequest.status == "pending")),
        "pending_deposits": await count(select(func.count(DepositRequest.id)).where(DepositRequest.status == "pending")),
        "pending_withdrawals": await count(
            select(func.count(WithdrawalRequest.id)).where(WithdrawalRequest.status == "pending")
        ),
        "kyc_stats": {status: n for status, n in kyc_rows},
    }}


# ── Investments ────────────────────────────────────────────────────

@router.get("/investments")
async def list_investments(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    rows = await lifecycle.list_investments(db)
    emails = dict((await db.execute(select(User.id, User.email))).all())
    return {"investments": [
        lifecycle.investment_view(inv) | {"user_id": inv.user_id, "email": emails.get(inv.user_id)}
        for inv in rows
    ]}


@router.put("/investments/{investment_id}/complete")
async def complete_investment(
    investment_id: int,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    investment = await lifecycle.complete_investment(db, investment_id)
    return {"message": "Investment completed", "investment": lifecycle.investment_view(investment)}


@router.put("/investments/{investment_id}/cancel")
async def cancel_investment(
    investment_id: int,
    body: Optional[CancelInvestmentRequest] = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    reason = body.reason if body else None
    investment = await lifecycle.cancel_investment(db, investment_id, reason=reason)
    return {"message": "Investment cancelled", "investment": lifecycle.investment_view(investment)}


@router.post("/investments/settle-matured")
async def settle_matured(admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    settled = await lifecycle.settle_matured(db)
    return {"settled": settled, "count": len(settled)}


# ── Requests ───────────────────────────────────────────────────────

async def _list_requests(db: AsyncSession, model, status: str):
    query = select(model, User.email).join(User, User.id == model.user_id)
    if status != "all":
        query = query.where(model.status == status)
    rows = await db.execute(query.order_by(model.created_at.desc(), model.id.desc()).limit(200))
    return {"requests": [reviews.serialize_request(r, email=email) for r, email in rows]}


@router.get("/kyc-requests")
async def kyc_requests(status: str = "all", admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await _list_requests(db, KYCRequest, status)


@router.put("/kyc-requests/{request_id}")
async def decide_kyc(
    request_id: int,
    body: Decision,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    request = await reviews.decide_kyc(db, request_id, body.status, admin.id, body.rejection_reason)
    return {"message": f"KYC request {body.status} successfully", "request": reviews.serialize_request(request)}


@router.get("/deposit-requests")
async def deposit_requests(status: str = "all", admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await _list_requests(db, DepositRequest, status)


@router.put("/deposit-requests/{request_id}")
async def decide_deposit(
    request_id: int,
    body: Decision,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    request = await reviews.decide_deposit(db, request_id, body.status, admin.id, body.rejection_reason)
    return {"message": f"Deposit request {body.status} successfully", "request": reviews.serialize_request(request)}


@router.get("/withdrawal-requests")
async def withdrawal_requests(status: str = "all", admin: User = Depends(require_admin), db: AsyncSession = Depends(get_db)):
    return await _list_requests(db, WithdrawalRequest, status)


@router.put("/withdrawal-requests/{request_id}")
async def decide_withdrawal(
    request_id: int,
    body: WithdrawalDecision,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    request = await reviews.decide_withdrawal(
        db, request_id, body.status, admin.id, body.rejection_reason, body.transaction_hash,
    )
    return {"message": f"Withdrawal request {body.status} successfully", "request": reviews.serialize_request(request)}
