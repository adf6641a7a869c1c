"""
Resolve the caller once per request from the Starlette session.
Login sets ``user_id``, ``role`` and, for drivers, ``driver_id``.
"""
from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status

from fleetpay.core.auth import AuthContext, Role


def _auth_required() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"status": "error", "message": "auth_required"},
    )


def get_auth_context(request: Request) -> AuthContext:
    """Raises 401 if the session carries no usable identity."""
    user_id = request.session.get("user_id")
    role = Role.parse(request.session.get("role"))
    if not user_id or role is None:
        raise _auth_required()

    driver_id = request.session.get("driver_id")
    if driver_id is not None:
        try:
            driver_id = int(driver_id)
        except (TypeError, ValueError):
            raise _auth_required() from None

    return AuthContext(user_id=str(user_id), role=role, driver_id=driver_id)


def require_payout_manager(auth: AuthContext = Depends(get_auth_context)) -> AuthContext:
    if not auth.can_manage_payouts:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={"message": "Admin or manager role required.", "code": "forbidden"},
        )
    return auth
