"""Role to capability mapping.

Roles are flat: each role lists every capability it holds, and ADMIN does
not inherit from MODERATOR. An endpoint asks for a capability, never for a
role name.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

from crackzone.models.user import User, UserRole


class Capability(str, Enum):
    # Users
    MANAGE_USERS = "users:manage"
    MODERATE_USERS = "users:moderate"
    # Competitions
    MANAGE_TOURNAMENTS = "tournaments:manage"
    MANAGE_MATCHES = "matches:manage"
    SUBMIT_ANY_RESULT = "matches:submit_any_result"
    # Economy
    MANAGE_TRANSACTIONS = "transactions:manage"
    MANAGE_ORDERS = "orders:manage"
    MANAGE_REWARDS = "rewards:manage"
    # Media & messaging
    MANAGE_MEDIA = "media:manage"
    MANAGE_BANNERS = "banners:manage"
    SEND_TEST_EMAIL = "email:test"
    SEND_INVITATIONS = "email:invite"


_MODERATION = frozenset(
    {
        Capability.MODERATE_USERS,
        Capability.MANAGE_TOURNAMENTS,
        Capability.MANAGE_MATCHES,
        Capability.SUBMIT_ANY_RESULT,
        Capability.MANAGE_MEDIA,
        Capability.SEND_INVITATIONS,
    }
)

ROLE_CAPABILITIES: dict[UserRole, frozenset[Capability]] = {
    UserRole.USER: frozenset(),
    UserRole.MODERATOR: _MODERATION,
    UserRole.ADMIN: _MODERATION
    | {
        Capability.MANAGE_USERS,
        Capability.MANAGE_TRANSACTIONS,
        Capability.MANAGE_ORDERS,
        Capability.MANAGE_REWARDS,
        Capability.MANAGE_BANNERS,
        Capability.SEND_TEST_EMAIL,
    },
}


def has_capability(role: UserRole | str, capability: Capability) -> bool:
    try:
        role = UserRole(role)
    except ValueError:
        return False
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


@dataclass(frozen=True)
class Principal:
    """Authenticated caller, as cached under ``user:{id}``."""

    id: str
    email: str
    username: str
    role: UserRole
    is_active: bool
    is_verified: bool

    @classmethod
    def from_user(cls, user: User) -> "Principal":
        return cls(
            id=user.id,
            email=user.email,
            username=user.username,
            role=UserRole(user.role),
            is_active=user.is_active,
            is_verified=user.is_verified,
        )

    @classmethod
    def from_cache(cls, data: dict[str, Any]) -> "Principal":
        return cls(
            id=data["id"],
            email=data["email"],
            username=data["username"],
            role=UserRole(data["role"]),
            is_active=bool(data["is_active"]),
            is_verified=bool(data["is_verified"]),
        )

    def to_cache(self) -> dict[str, Any]:
        data = asdict(self)
        data["role"] = self.role.value
        return data

    def can(self, capability: Capability) -> bool:
        return has_capability(self.role, capability)
