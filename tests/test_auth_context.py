from types import SimpleNamespace

import pytest
from fastapi import HTTPException

from fleetpay.core.auth import AuthContext, Role
from fleetpay.dependencies.auth_context import get_auth_context, require_payout_manager


def _request(**session):
    return SimpleNamespace(session=session)


@pytest.mark.parametrize("raw,expected", [
    ("admin",    Role.ADMIN),
    ("Manager",  Role.MANAGER),
    (" driver ", Role.DRIVER),
    ("owner",    None),
    ("",         None),
    (None,       None),
])
def test_role_parse(raw, expected):
    assert Role.parse(raw) is expected


def test_capabilities():
    assert Role.ADMIN.can_manage_payouts
    assert Role.MANAGER.can_manage_payouts
    assert not Role.DRIVER.can_manage_payouts
    assert Role.DRIVER.can_view_own_payouts
    assert not Role.ADMIN.can_view_own_payouts


def test_owns_driver():
    driver = AuthContext(user_id="u1", role=Role.DRIVER, driver_id=7)
    assert driver.owns_driver(7)
    assert not driver.owns_driver(8)
    assert not AuthContext(user_id="u2", role=Role.ADMIN, driver_id=7).owns_driver(7)


def test_context_from_session():
    auth = get_auth_context(_request(user_id=42, role="driver", driver_id="7"))
    assert auth == AuthContext(user_id="42", role=Role.DRIVER, driver_id=7)


@pytest.mark.parametrize("session", [
    {},
    {"user_id": "42"},
    {"user_id": "42", "role": "superuser"},
    {"role": "admin"},
    {"user_id": "42", "role": "driver", "driver_id": "seven"},
    {"user_id": "42", "role": "driver", "driver_id": [7]},
])
def test_missing_identity_is_401(session):
    with pytest.raises(HTTPException) as exc_info:
        get_auth_context(_request(**session))
    assert exc_info.value.status_code == 401


def test_require_payout_manager():
    manager = AuthContext(user_id="m", role=Role.MANAGER)
    assert require_payout_manager(manager) is manager
    with pytest.raises(HTTPException) as exc_info:
        require_payout_manager(AuthContext(user_id="d", role=Role.DRIVER, driver_id=1))
    assert exc_info.value.status_code == 403
