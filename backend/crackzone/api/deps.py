"""API dependencies for authentication and common utilities."""

import logging
import uuid
from typing import Annotated

from fastapi import Depends, Header, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from crackzone.config import Settings, get_settings
from crackzone.models.user import User
from crackzone.permissions import Capability, Principal
from crackzone.schemas.common import PaginationParams
from crackzone.utils.cache import Cache, get_cache, user_key
from crackzone.utils.db import get_db
from crackzone.utils.errors import AuthenticationError, ErrorCode, PermissionDeniedError
from crackzone.utils.security import TokenError, verify_access_token

logger = logging.getLogger(__name__)

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


def get_trace_id(x_trace_id: Annotated[str | None, Header()] = None) -> str:
    """Get or generate trace ID for request tracking."""
    return x_trace_id or str(uuid.uuid4())


async def load_principal(
    user_id: str,
    db: AsyncSession,
    cache: Cache,
    ttl: int,
) -> Principal | None:
    """Resolve a principal snapshot, reading through the cache.

    Returns None when the user no longer exists.
    """
    cached = await cache.get(user_key(user_id))
    if cached is not None:
        try:
            return Principal.from_cache(cached)
        except (KeyError, ValueError):
            logger.warning(f"Discarding malformed principal cache entry for {user_id}")
            await cache.delete(user_key(user_id))

    user = await db.get(User, user_id)
    if user is None:
        return None

    principal = Principal.from_user(user)
    await cache.set(user_key(user_id), principal.to_cache(), ttl=ttl)
    return principal


async def get_current_principal(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[Cache, Depends(get_cache)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Principal:
    """Get the authenticated caller (required auth).

    Raises:
        AuthenticationError: Missing or invalid token, or the user is gone
        PermissionDeniedError: The account is deactivated
    """
    if not credentials:
        raise AuthenticationError("Access token required")

    try:
        payload = verify_access_token(credentials.credentials)
    except TokenError as e:
        raise AuthenticationError(e.message, code=e.code)

    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid or expired token", code=ErrorCode.AUTH_INVALID_TOKEN)

    principal = await load_principal(payload["sub"], db, cache, settings.user_cache_ttl)
    if principal is None:
        raise AuthenticationError("User not found", code=ErrorCode.AUTH_USER_NOT_FOUND)

    if not principal.is_active:
        raise PermissionDeniedError(
            "Account is deactivated",
            code=ErrorCode.AUTH_ACCOUNT_INACTIVE,
        )

    return principal


async def get_current_principal_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
    cache: Annotated[Cache, Depends(get_cache)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Principal | None:
    """Get the caller if a valid token was sent (optional auth)."""
    if not credentials:
        return None

    try:
        payload = verify_access_token(credentials.credentials)
    except TokenError:
        return None

    if not payload or not payload.get("sub"):
        return None

    principal = await load_principal(payload["sub"], db, cache, settings.user_cache_ttl)
    if principal is None or not principal.is_active:
        return None
    return principal


def require_capability(capability: Capability):
    """Dependency factory gating an endpoint on one capability.

    Usage:
        @router.post("/{id}/start")
        async def start(principal: Annotated[Principal, Depends(require_capability(Capability.MANAGE_TOURNAMENTS))]):
            ...
    """

    async def checker(
        principal: Annotated[Principal, Depends(get_current_principal)],
    ) -> Principal:
        if not principal.can(capability):
            raise PermissionDeniedError(
                "Insufficient permissions",
                details={"required": capability.value, "role": principal.role.value},
            )
        return principal

    return checker


def get_pagination(
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
) -> PaginationParams:
    return PaginationParams(page=page, limit=limit)


# Type aliases for cleaner annotations
CurrentUser = Annotated[Principal, Depends(get_current_principal)]
OptionalUser = Annotated[Principal | None, Depends(get_current_principal_optional)]
DbSession = Annotated[AsyncSession, Depends(get_db)]
CacheDep = Annotated[Cache, Depends(get_cache)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
Pagination = Annotated[PaginationParams, Depends(get_pagination)]
TraceId = Annotated[str, Depends(get_trace_id)]

UserAdmin = Annotated[Principal, Depends(require_capability(Capability.MANAGE_USERS))]
UserModerator = Annotated[Principal, Depends(require_capability(Capability.MODERATE_USERS))]
TournamentManager = Annotated[Principal, Depends(require_capability(Capability.MANAGE_TOURNAMENTS))]
MatchManager = Annotated[Principal, Depends(require_capability(Capability.MANAGE_MATCHES))]
TransactionManager = Annotated[Principal, Depends(require_capability(Capability.MANAGE_TRANSACTIONS))]
OrderManager = Annotated[Principal, Depends(require_capability(Capability.MANAGE_ORDERS))]
RewardManager = Annotated[Principal, Depends(require_capability(Capability.MANAGE_REWARDS))]
MediaManager = Annotated[Principal, Depends(require_capability(Capability.MANAGE_MEDIA))]
BannerManager = Annotated[Principal, Depends(require_capability(Capability.MANAGE_BANNERS))]
EmailTester = Annotated[Principal, Depends(require_capability(Capability.SEND_TEST_EMAIL))]
InvitationSender = Annotated[Principal, Depends(require_capability(Capability.SEND_INVITATIONS))]
