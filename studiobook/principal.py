"""Actor context passed explicitly into every booking operation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet

from .core.enums import ROLE_CAPABILITIES, PermissionName, RoleName
from .core.exceptions import ForbiddenException


@dataclass(frozen=True)
class ActorContext:
    """The authenticated user performing an operation."""

    user_id: str
    role: RoleName

    def __post_init__(self) -> None:
        # Accept plain strings from callers that read the role off a token or row.
        if not isinstance(self.role, RoleName):
            object.__setattr__(self, "role", RoleName(self.role))

    @property
    def capabilities(self) -> FrozenSet[PermissionName]:
        return ROLE_CAPABILITIES[self.role]

    def can(self, permission: PermissionName) -> bool:
        return permission in self.capabilities

    def require(self, permission: PermissionName) -> None:
        if not self.can(permission):
            raise ForbiddenException(
                f"Role '{self.role.value}' is not allowed to {permission.value.replace('_', ' ')}",
                code="MISSING_CAPABILITY",
                details={"capability": permission.value, "role": self.role.value},
            )

    def require_for_owner(
        self,
        owner_id: str,
        own_permission: PermissionName,
        any_permission: PermissionName,
    ) -> None:
        """Allow ``any_permission`` holders, or ``own_permission`` holders acting on their own record."""
        if self.can(any_permission):
            return
        if self.user_id == owner_id and self.can(own_permission):
            return
        raise ForbiddenException(
            "You do not have permission to act on this booking",
            code="MISSING_CAPABILITY",
            details={"capability": any_permission.value, "role": self.role.value},
        )

    @property
    def is_client(self) -> bool:
        return self.role == RoleName.CLIENT
