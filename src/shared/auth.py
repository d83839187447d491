"""Authenticated caller as seen by use cases.

Token validation happens at the edge; use cases only receive the
resulting principal and enforce ownership / admin rules.
"""

from dataclasses import dataclass
from enum import Enum

from shared.exceptions import ForbiddenError


class Role(Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    SERVICE = "service"


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: Role = Role.CUSTOMER

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def assert_owner_or_admin(self, owner_id: str) -> None:
        if not (self.is_admin or self.user_id == owner_id):
            raise ForbiddenError(f"User {self.user_id} may not access resources of {owner_id}")

    def assert_admin(self) -> None:
        if not self.is_admin:
            raise ForbiddenError("Admin role required")
