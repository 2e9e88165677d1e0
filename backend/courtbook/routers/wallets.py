# backend/courtbook/routers/wallets.py
"""
Wallet Domain API: prepaid balances of clients.

Every balance change goes through services.wallet_ledger and writes a
wallet_transactions row. Booking charges and refunds happen inside the
booking saga; this router only exposes reads and administrative top-ups.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..context import get_request_context, require_admin
from ..database import get_db
from ..schemas.wallets import (
    WalletRead,
    WalletTransactionRead,
    WalletDeposit,
    WalletOperationResponse,
)
from ..services import wallet_ledger
from ..services.booking_saga import RequestContext

router = APIRouter(prefix="/wallets", tags=["wallets"])


def _ensure_own_or_staff(ctx: RequestContext, user_id: int) -> None:
    if not ctx.is_staff and ctx.user_id != user_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Clients can only access their own wallet",
        )


# ──────────────────────────────────────────────────────────────────────────────
# Read
# ──────────────────────────────────────────────────────────────────────────────

@router.get("/{user_id}", response_model=WalletRead)
def get_wallet(
    user_id: int,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Get wallet for user. Creates an empty wallet on first access."""
    _ensure_own_or_staff(ctx, user_id)
    return wallet_ledger.get_or_create_wallet(db, user_id)


@router.get("/{user_id}/transactions", response_model=list[WalletTransactionRead])
def get_transactions(
    user_id: int,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """Transaction history, newest first."""
    _ensure_own_or_staff(ctx, user_id)
    return wallet_ledger.list_transactions(db, user_id, limit=limit, offset=offset)


# ──────────────────────────────────────────────────────────────────────────────
# Operations
# ──────────────────────────────────────────────────────────────────────────────

@router.post("/{user_id}/deposit", response_model=WalletOperationResponse)
def deposit(
    user_id: int,
    data: WalletDeposit,
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Administrative top-up."""
    tx = wallet_ledger.credit(
        db,
        user_id,
        data.amount,
        tx_type="deposit",
        description=data.description,
        created_by=ctx.user_id,
    )
    wallet = wallet_ledger.get_or_create_wallet(db, user_id)

    return WalletOperationResponse(
        success=True,
        wallet_id=wallet.id,
        new_balance=wallet.balance,
        transaction_id=tx.id,
        message=f"Deposited {data.amount:.2f} {wallet.currency}",
    )
