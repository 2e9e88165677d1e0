# backend/courtbook/services/wallet_ledger.py
"""
Prepaid balance ledger.

Every balance change is one conditional UPDATE on client_wallets plus one
wallet_transactions row, committed together. The UPDATE reads and writes
the balance in a single statement and bumps the wallet's version, so a
debit racing an administrative top-up never loses either update.

Transaction types:
    deposit: administrative top-up (+)
    payment: booking charge (−)
    refund: compensating credit for a failed booking (+)
    correction: manual adjustment (±)
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.generated import (
    ClientWallets as DBWallet,
    Users as DBUser,
    WalletTransactions as DBTransaction,
)
from .errors import InsufficientBalance, NotFound, PersistenceFailure, ValidationError

logger = logging.getLogger(__name__)


def get_or_create_wallet(db: Session, user_id: int) -> DBWallet:
    """
    Get wallet by user_id or create one with zero balance.

    Raises:
        NotFound: user doesn't exist
    """
    wallet = db.query(DBWallet).filter(DBWallet.user_id == user_id).first()
    if wallet:
        return wallet

    user = db.get(DBUser, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found")

    wallet = DBWallet(
        user_id=user_id,
        balance=0.0,
        currency="AUD",
        is_blocked=0,
        version=0,
    )
    db.add(wallet)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise PersistenceFailure(f"Failed to create wallet for user {user_id}", cause=e) from e
    db.refresh(wallet)
    return wallet


def get_balance(db: Session, user_id: int) -> float:
    wallet = get_or_create_wallet(db, user_id)
    db.refresh(wallet)
    return float(wallet.balance)


def _create_transaction(
    db: Session,
    wallet_id: int,
    amount: float,
    tx_type: str,
    booking_id: Optional[int] = None,
    description: Optional[str] = None,
    created_by: Optional[int] = None,
) -> DBTransaction:
    """Create a wallet transaction record."""
    tx = DBTransaction(
        wallet_id=wallet_id,
        amount=amount,
        type=tx_type,
        booking_id=booking_id,
        description=description,
        created_by=created_by,
    )
    db.add(tx)
    return tx


def debit(
    db: Session,
    user_id: int,
    amount: float,
    description: Optional[str] = None,
    created_by: Optional[int] = None,
    booking_id: Optional[int] = None,
) -> DBTransaction:
    """
    Withdraw amount if the balance covers it, in one conditional UPDATE.

    Raises:
        ValidationError: amount not positive, or wallet blocked
        InsufficientBalance: balance < amount (nothing changed)
        PersistenceFailure: storage error (nothing changed)
    """
    if amount <= 0:
        raise ValidationError(f"Debit amount must be positive, got {amount}")

    wallet = get_or_create_wallet(db, user_id)

    try:
        updated = (
            db.query(DBWallet)
            .filter(
                DBWallet.id == wallet.id,
                DBWallet.is_blocked == 0,
                DBWallet.balance >= amount,
            )
            .update(
                {
                    DBWallet.balance: DBWallet.balance - amount,
                    DBWallet.version: DBWallet.version + 1,
                },
                synchronize_session=False,
            )
        )

        if updated == 0:
            db.rollback()
            db.refresh(wallet)
            if wallet.is_blocked:
                raise ValidationError(f"Wallet of user {user_id} is blocked")
            raise InsufficientBalance(float(wallet.balance), amount)

        tx = _create_transaction(
            db=db,
            wallet_id=wallet.id,
            amount=-amount,
            tx_type="payment",
            booking_id=booking_id,
            description=description,
            created_by=created_by,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Debit of {amount:.2f} for user {user_id} failed: {e}")
        raise PersistenceFailure(f"Failed to debit wallet of user {user_id}", cause=e) from e

    db.refresh(wallet)
    db.refresh(tx)
    logger.info(
        f"Wallet user={user_id}: -{amount:.2f} → {wallet.balance:.2f} "
        f"(v{wallet.version}, tx={tx.id})"
    )
    return tx


def credit(
    db: Session,
    user_id: int,
    amount: float,
    tx_type: str = "refund",
    description: Optional[str] = None,
    created_by: Optional[int] = None,
    booking_id: Optional[int] = None,
) -> DBTransaction:
    """
    Add amount to the balance.

    Refunds are accepted on blocked wallets (they restore a prior state);
    deposits are not.

    Raises:
        ValidationError: amount not positive, bad type, or deposit to a blocked wallet
        PersistenceFailure: storage error (nothing changed)
    """
    if amount <= 0:
        raise ValidationError(f"Credit amount must be positive, got {amount}")
    if tx_type not in ("deposit", "refund"):
        raise ValidationError(f"Unsupported credit type: {tx_type}")

    wallet = get_or_create_wallet(db, user_id)
    if tx_type == "deposit" and wallet.is_blocked:
        raise ValidationError(f"Wallet of user {user_id} is blocked")

    try:
        db.query(DBWallet).filter(DBWallet.id == wallet.id).update(
            {
                DBWallet.balance: DBWallet.balance + amount,
                DBWallet.version: DBWallet.version + 1,
            },
            synchronize_session=False,
        )
        tx = _create_transaction(
            db=db,
            wallet_id=wallet.id,
            amount=amount,
            tx_type=tx_type,
            booking_id=booking_id,
            description=description,
            created_by=created_by,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Credit ({tx_type}) of {amount:.2f} for user {user_id} failed: {e}")
        raise PersistenceFailure(f"Failed to credit wallet of user {user_id}", cause=e) from e

    db.refresh(wallet)
    db.refresh(tx)
    logger.info(
        f"Wallet user={user_id}: +{amount:.2f} ({tx_type}) → {wallet.balance:.2f} "
        f"(v{wallet.version}, tx={tx.id})"
    )
    return tx


def list_transactions(
    db: Session,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
) -> list[DBTransaction]:
    """Transaction history, newest first."""
    wallet = get_or_create_wallet(db, user_id)
    return (
        db.query(DBTransaction)
        .filter(DBTransaction.wallet_id == wallet.id)
        .order_by(DBTransaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
