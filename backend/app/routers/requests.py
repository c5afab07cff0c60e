from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.core.deps import get_current_user, require_kyc_approved
from app.models.requests import KYCRequest, DepositRequest, WithdrawalRequest
from app.models.user import User
from app.schemas.requests import KYCSubmission, DepositSubmission, WithdrawalSubmission
from app.services import reviews

router = APIRouter(prefix="/api/requests", tags=["requests"])


@router.post("/kyc", status_code=201)
async def submit_kyc(
    body: KYCSubmission,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    request = await reviews.submit_kyc(db, user, body.model_dump())
    return {"message": "KYC request submitted successfully", "request": reviews.serialize_request(request)}


@router.post("/deposit", status_code=201)
async def submit_deposit(
    body: DepositSubmission,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    data = body.model_dump()
    data["asset"] = body.asset.value
    request = await reviews.submit_deposit(db, user, data)
    return {"message": "Deposit request submitted successfully", "request": reviews.serialize_request(request)}


@router.post("/withdrawal", status_code=201)
async def submit_withdrawal(
    body: WithdrawalSubmission,
    user: User = Depends(require_kyc_approved),
    db: AsyncSession = Depends(get_db),
):
    data = body.model_dump()
    data["asset"] = body.asset.value
    request = await reviews.submit_withdrawal(db, user, data)
    return {"message": "Withdrawal request submitted successfully", "request": reviews.serialize_request(request)}


@router.get("/my-requests")
async def my_requests(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    result = {}
    for key, model in (("kyc", KYCRequest), ("deposits", DepositRequest), ("withdrawals", WithdrawalRequest)):
        rows = await db.scalars(
            select(model).where(model.user_id == user.id).order_by(model.created_at.desc(), model.id.desc())
        )
        result[key] = [reviews.serialize_request(r) for r in rows]
    return result
