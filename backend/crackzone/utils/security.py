"""Credentials: bcrypt password hashes, signed JWTs and one-time secrets."""

from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from crackzone.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=12)


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class TokenError(Exception):
    """A token that was well formed but can no longer be used."""

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def _prehash(password: str) -> str:
    # bcrypt truncates input at 72 bytes
    return hashlib.sha256(password.encode()).hexdigest()


def hash_password(password: str) -> str:
    return pwd_context.hash(_prehash(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(_prehash(plain_password), hashed_password)


def _issue(token_type: TokenType, user_id: str, lifetime: timedelta, claims: dict[str, Any]) -> str:
    issued_at = datetime.now(timezone.utc)
    payload = {**claims, "sub": user_id, "type": token_type.value, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(
    user_id: str,
    additional_claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Sign a short-lived access token.

    ``additional_claims`` carries the email and role snapshot; it can never
    override ``sub``, ``type`` or the timestamps.
    """
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _issue(TokenType.ACCESS, user_id, lifetime, additional_claims or {})


def create_refresh_token(user_id: str, session_id: str, expires_delta: timedelta | None = None) -> str:
    lifetime = expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    return _issue(TokenType.REFRESH, user_id, lifetime, {"sid": session_id})


def _verify(token: str | None, expected: TokenType) -> dict[str, Any] | None:
    if not token:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret_key,
            algorithms=[settings.jwt_algorithm],
            options={"require_exp": True, "require_sub": True, "require_iat": True},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("AUTH_TOKEN_EXPIRED", "Token has expired")
    except JWTError as e:
        logger.debug(f"{expected.value} token rejected: {type(e).__name__}")
        return None

    if payload.get("type") != expected.value:
        logger.debug(f"{expected.value} token rejected: type is {payload.get('type')!r}")
        return None
    return payload


def verify_access_token(token: str | None) -> dict[str, Any] | None:
    """Payload of a valid access token, None for anything else.

    Raises:
        TokenError: the signature is fine but the token has expired
    """
    return _verify(token, TokenType.ACCESS)


def verify_refresh_token(token: str | None) -> dict[str, Any] | None:
    """Payload of a valid refresh token; expiry is folded into None."""
    try:
        payload = _verify(token, TokenType.REFRESH)
    except TokenError:
        return None
    if payload is None or not payload.get("sid"):
        return None
    return payload


def create_token_pair(user_id: str, session_id: str, **claims: Any) -> dict[str, Any]:
    return {
        "access_token": create_access_token(user_id, additional_claims=claims),
        "refresh_token": create_refresh_token(user_id, session_id),
        "token_type": "Bearer",
        "expires_in": settings.jwt_access_token_expire_minutes * 60,
    }


def hash_token(token: str) -> str:
    """Digest stored in the cache in place of a refresh token."""
    return hashlib.sha256(token.encode()).hexdigest()


def generate_session_id() -> str:
    return secrets.token_hex(16)


def generate_verification_code() -> str:
    return f"{100000 + secrets.randbelow(900000)}"


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)
