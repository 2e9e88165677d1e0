# backend/courtbook/context.py
"""
Explicit caller identity.

The gateway authenticates the caller and forwards X-User-Id / X-User-Role;
these dependencies turn them into a RequestContext that is passed into
every core operation.
"""

from fastapi import Depends, Header, HTTPException, status

from .services.booking_saga import RequestContext, STAFF_ROLES

ROLES = ("admin", "coach", "client")


def get_request_context(
    x_user_id: int = Header(..., alias="X-User-Id"),
    x_user_role: str = Header("client", alias="X-User-Role"),
) -> RequestContext:
    role = x_user_role.strip().lower()
    if role not in ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Unknown role: {x_user_role}",
        )
    return RequestContext(user_id=x_user_id, role=role)


def require_staff(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if ctx.role not in STAFF_ROLES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Staff role required",
        )
    return ctx


def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    if ctx.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return ctx
