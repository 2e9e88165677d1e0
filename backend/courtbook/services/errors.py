# backend/courtbook/services/errors.py
"""
Typed error taxonomy for the scheduling core.

Every failure a core operation can report is one of these classes, each
with a stable machine code and the HTTP status the API layer answers with.
Routes and the booking saga branch on the class, never on message text.
"""

from __future__ import annotations

from typing import Optional


class CourtbookError(Exception):
    """Base class for all domain errors."""

    code = "error"
    http_status = 500

    def __init__(self, message: str, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload = {"code": self.code, "detail": self.message}
        if self.details:
            payload["context"] = self.details
        return payload


class ValidationError(CourtbookError):
    """Malformed input: bad date/time strings, inverted ranges, empty selections."""

    code = "validation_error"
    http_status = 422


class NoSlotsProduced(ValidationError):
    """Slot generation inputs were well-formed but yield zero rows."""

    code = "no_slots_produced"


class NotFound(CourtbookError):
    code = "not_found"
    http_status = 404


class SlotUnavailable(CourtbookError):
    """No matching availability for the requested range, or it is already full."""

    code = "slot_unavailable"
    http_status = 409


class InsufficientBalance(CourtbookError):
    code = "insufficient_balance"
    http_status = 402

    def __init__(self, balance: float, required: float):
        super().__init__(
            f"Insufficient balance: {balance:.2f} < {required:.2f}",
            balance=round(balance, 2),
            required=round(required, 2),
        )
        self.balance = balance
        self.required = required


class PersistenceFailure(CourtbookError):
    """A storage write failed after the balance was debited."""

    code = "persistence_failure"
    http_status = 500

    def __init__(self, message: str, cause: Optional[BaseException] = None, **details):
        super().__init__(message, **details)
        self.cause = cause


class ReconciliationRequired(PersistenceFailure):
    """
    The reservation insert failed and the compensating credit failed too.

    The balance is debited with no booking behind it. Never retried
    automatically; an operator must credit the client by hand.
    """

    code = "reconciliation_required"

    def __init__(
        self,
        message: str,
        cause: BaseException,
        compensation_error: BaseException,
        **details,
    ):
        super().__init__(message, cause=cause, **details)
        self.compensation_error = compensation_error


class IdentityAmbiguity(CourtbookError):
    """Sibling availability rows cannot be resolved uniquely within tolerance."""

    code = "identity_ambiguity"
    http_status = 409


def _all_error_classes(cls=CourtbookError):
    yield cls
    for sub in cls.__subclasses__():
        yield from _all_error_classes(sub)


def http_status_for(code: str) -> int:
    """HTTP status of the error class with the given code (500 if unknown)."""
    for cls in _all_error_classes():
        if cls.code == code:
            return cls.http_status
    return 500
