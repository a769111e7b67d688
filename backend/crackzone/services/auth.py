"""Authentication service.

Short-lived secrets live in the cache, never in the database:

- ``verification:{code}`` maps a six-digit email code to a user id;
- ``reset:{token}`` maps a password reset token to a user id;
- ``refresh:{user_id}`` holds the hash of the user's current refresh token,
  so logging in elsewhere or logging out revokes the previous one.
"""

import logging
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from crackzone.config import get_settings
from crackzone.models.base import utcnow
from crackzone.models.user import Profile, User
from crackzone.permissions import Principal
from crackzone.schemas.requests import RegisterRequest
from crackzone.services.email import EmailService
from crackzone.services.user import ensure_unique_identity, get_user_with_profile
from crackzone.utils.cache import (
    Cache,
    refresh_key,
    reset_key,
    user_key,
    verification_key,
)
from crackzone.utils.errors import (
    AuthenticationError,
    ErrorCode,
    InvalidRequestError,
    NotFoundError,
    PermissionDeniedError,
)
from crackzone.utils.security import (
    create_token_pair,
    generate_reset_token,
    generate_session_id,
    generate_verification_code,
    hash_password,
    hash_token,
    verify_password,
    verify_refresh_token,
)

logger = logging.getLogger(__name__)

settings = get_settings()


class AuthService:
    """Service for authentication operations."""

    def __init__(self, db: AsyncSession, cache: Cache, email: EmailService):
        self.db = db
        self.cache = cache
        self.email = email

    async def _issue_tokens(self, user: User) -> dict[str, Any]:
        tokens = create_token_pair(
            user.id,
            generate_session_id(),
            email=user.email,
            role=user.role.value,
        )
        await self.cache.set(
            refresh_key(user.id),
            hash_token(tokens["refresh_token"]),
            ttl=settings.jwt_refresh_token_expire_days * 86400,
        )
        await self.cache.set(
            user_key(user.id),
            Principal.from_user(user).to_cache(),
            ttl=settings.user_cache_ttl,
        )
        return tokens

    async def _get_by_email(self, email: str) -> User | None:
        result = await self.db.execute(
            select(User).options(selectinload(User.profile)).where(User.email == email)
        )
        return result.scalar_one_or_none()

    async def register(self, data: RegisterRequest) -> tuple[User, dict[str, Any]]:
        """Register a new user.

        Returns:
            The user (with profile) and a token pair

        Raises:
            ConflictError: If email or username already exists
        """
        await ensure_unique_identity(self.db, email=data.email, username=data.username)

        user = User(
            email=data.email,
            username=data.username,
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            profile=Profile(),
        )
        self.db.add(user)
        await self.db.flush()

        code = generate_verification_code()
        await self.cache.set(verification_key(code), user.id, ttl=settings.verification_code_ttl)
        tokens = await self._issue_tokens(user)

        await self.email.send_verification(
            user.email,
            user.username,
            code,
            settings.verification_code_ttl // 60,
        )
        logger.info(f"Registered user {user.id}")
        return await get_user_with_profile(self.db, user.id), tokens

    async def login(self, email: str, password: str) -> tuple[User, dict[str, Any]]:
        """Authenticate with email and password.

        Raises:
            AuthenticationError: Invalid credentials
            PermissionDeniedError: The account is deactivated
        """
        user = await self._get_by_email(email)
        if not user or not verify_password(password, user.password_hash):
            raise AuthenticationError(
                "Invalid credentials",
                code=ErrorCode.AUTH_INVALID_CREDENTIALS,
            )

        if not user.is_active:
            raise PermissionDeniedError(
                "Account is deactivated",
                code=ErrorCode.AUTH_ACCOUNT_INACTIVE,
            )

        user.last_login = utcnow()
        await self.db.flush()
        return user, await self._issue_tokens(user)

    async def logout(self, user_id: str) -> None:
        await self.cache.delete(user_key(user_id), refresh_key(user_id))

    async def refresh(self, refresh_token: str) -> dict[str, Any]:
        """Rotate a refresh token.

        The token must be the one most recently issued to the user.
        """
        payload = verify_refresh_token(refresh_token)
        if payload is None:
            raise AuthenticationError("Invalid refresh token", code=ErrorCode.AUTH_INVALID_TOKEN)

        user_id = payload["sub"]
        stored = await self.cache.get(refresh_key(user_id))
        if stored != hash_token(refresh_token):
            raise AuthenticationError("Invalid refresh token", code=ErrorCode.AUTH_INVALID_TOKEN)

        user = await self.db.get(User, user_id)
        if user is None:
            raise AuthenticationError("User not found", code=ErrorCode.AUTH_USER_NOT_FOUND)
        if not user.is_active:
            raise PermissionDeniedError("Account is deactivated", code=ErrorCode.AUTH_ACCOUNT_INACTIVE)

        return await self._issue_tokens(user)

    async def me(self, user_id: str) -> User:
        return await get_user_with_profile(self.db, user_id)

    async def verify_email(self, code: str) -> User:
        user_id = await self.cache.get(verification_key(code))
        if not user_id:
            raise InvalidRequestError(
                "Invalid or expired verification code",
                code=ErrorCode.AUTH_INVALID_CODE,
            )

        user = await self.db.get(User, user_id)
        if user is None:
            raise InvalidRequestError(
                "Invalid or expired verification code",
                code=ErrorCode.AUTH_INVALID_CODE,
            )
        if user.is_verified:
            raise InvalidRequestError("Email already verified", code=ErrorCode.AUTH_ALREADY_VERIFIED)

        user.is_verified = True
        await self.db.flush()
        await self.cache.delete(verification_key(code), user_key(user.id))

        await self.email.send_welcome(user.email, user.username)
        return user

    async def resend_verification(self, email: str) -> None:
        user = await self.db.scalar(select(User).where(User.email == email))
        if user is None:
            raise NotFoundError("User not found")
        if user.is_verified:
            raise InvalidRequestError("Email already verified", code=ErrorCode.AUTH_ALREADY_VERIFIED)

        code = generate_verification_code()
        await self.cache.set(verification_key(code), user.id, ttl=settings.verification_resend_ttl)
        await self.email.send_verification(
            user.email,
            user.username,
            code,
            settings.verification_resend_ttl // 60,
        )

    async def forgot_password(self, email: str) -> None:
        """Send a reset link if the account exists; silent otherwise."""
        user = await self.db.scalar(select(User).where(User.email == email))
        if user is None:
            logger.debug("Password reset requested for unknown email")
            return

        token = generate_reset_token()
        await self.cache.set(reset_key(token), user.id, ttl=settings.password_reset_ttl)
        await self.email.send_password_reset(user.email, user.username, token)

    async def reset_password(self, token: str, password: str) -> None:
        user_id = await self.cache.get(reset_key(token))
        user = await self.db.get(User, user_id) if user_id else None
        if user is None:
            raise InvalidRequestError("Invalid or expired reset token", code=ErrorCode.AUTH_INVALID_CODE)

        user.password_hash = hash_password(password)
        await self.db.flush()
        await self.cache.delete(reset_key(token), user_key(user.id), refresh_key(user.id))

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        user = await self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found")
        if not verify_password(current_password, user.password_hash):
            raise InvalidRequestError(
                "Current password is incorrect",
                code=ErrorCode.AUTH_WRONG_PASSWORD,
            )

        user.password_hash = hash_password(new_password)
        await self.db.flush()
