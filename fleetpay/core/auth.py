"""
Resolved caller identity.

Role checks live on the Role enum so handlers ask for a capability
(``role.can_manage_payouts``) instead of comparing role names.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    ADMIN = "admin"
    MANAGER = "manager"
    DRIVER = "driver"

    @property
    def can_manage_payouts(self) -> bool:
        return self in (Role.ADMIN, Role.MANAGER)

    @property
    def can_view_own_payouts(self) -> bool:
        return self is Role.DRIVER

    @classmethod
    def parse(cls, value: str | None) -> Role | None:
        raw = (value or "").strip().lower()
        for role in cls:
            if role.value == raw:
                return role
        return None


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    role: Role
    # Only set for drivers; links the login to a drivers.id row
    driver_id: int | None = None

    @property
    def can_manage_payouts(self) -> bool:
        return self.role.can_manage_payouts

    def owns_driver(self, driver_id: int) -> bool:
        return self.role is Role.DRIVER and self.driver_id is not None and self.driver_id == driver_id
