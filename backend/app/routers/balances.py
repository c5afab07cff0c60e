from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.database import get_db
from app.core.deps import get_current_user, require_kyc_approved
from app.models.user import User
from app.models.transaction import Transaction, TransactionType
from app.schemas.common import AssetAmount
from app.services import ledger

router = APIRouter(prefix="/api/balances", tags=["balances"])


@router.get("")
async def get_balances(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    balance = await ledger.get_or_create_balance(db, user.id)
    await db.commit()
    return {"balances": ledger.serialize_balance(balance)}


@router.post("/deposit")
async def deposit(
    body: AssetAmount,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Simulated deposit straight into the caller's balance."""
    balance = await ledger.credit(db, user.id, body.asset, body.amount)
    ledger.record_transaction(
        db, user.id, TransactionType.deposit, body.asset, body.amount,
        f"Deposit of {body.amount} {body.asset.value}",
    )
    await db.commit()
    return {
        "message": f"Successfully deposited {body.amount} {body.asset.value}",
        "balances": ledger.serialize_balance(balance),
    }


@router.post("/withdraw")
async def withdraw(
    body: AssetAmount,
    user: User = Depends(require_kyc_approved),
    db: AsyncSession = Depends(get_db),
):
    balance = await ledger.debit(db, user.id, body.asset, body.amount)
    ledger.record_transaction(
        db, user.id, TransactionType.withdrawal, body.asset, body.amount,
        f"Withdrawal of {body.amount} {body.asset.value}",
    )
    await db.commit()
    return {
        "message": f"Successfully withdrew {body.amount} {body.asset.value}",
        "balances": ledger.serialize_balance(balance),
    }


@router.get("/transactions")
async def transactions(user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    rows = list(await db.scalars(
        select(Transaction).where(Transaction.user_id == user.id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc()).limit(50)
    ))
    return {"transactions": [{
        "id": tx.id,
        "type": tx.type,
        "asset": tx.asset,
        "amount": float(tx.amount),
        "status": tx.status,
        "description": tx.description,
        "related_id": tx.related_id,
        "created_at": tx.created_at.isoformat() if tx.created_at else None,
    } for tx in rows]}
