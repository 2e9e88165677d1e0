# backend/courtbook/schemas/wallets.py

from typing import Optional

from pydantic import BaseModel, Field


# ──────────────────────────────────────────────────────────────────────────────
# Read Schemas
# ──────────────────────────────────────────────────────────────────────────────

class WalletRead(BaseModel):
    """Response for GET /wallets/{user_id}"""
    id: int
    user_id: int
    balance: float
    currency: str
    is_blocked: bool
    version: int

    model_config = {"from_attributes": True}


class WalletTransactionRead(BaseModel):
    """Transaction item in history list"""
    id: int
    wallet_id: int
    booking_id: Optional[int] = None
    amount: float
    type: str  # deposit, payment, refund, correction
    description: Optional[str] = None
    created_by: Optional[int] = None
    created_at: Optional[str] = None

    model_config = {"from_attributes": True}


# ──────────────────────────────────────────────────────────────────────────────
# Operation Schemas
# ──────────────────────────────────────────────────────────────────────────────

class WalletDeposit(BaseModel):
    """Request body for POST /wallets/{user_id}/deposit"""
    amount: float = Field(..., gt=0, description="Amount to deposit (must be > 0)")
    description: Optional[str] = None


class WalletOperationResponse(BaseModel):
    """Response after any wallet operation"""
    success: bool
    wallet_id: int
    new_balance: float
    transaction_id: int
    message: Optional[str] = None
