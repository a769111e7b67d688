"""Authentication API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from crackzone.api.deps import CacheDep, CurrentUser, DbSession
from crackzone.logging_config import get_logger
from crackzone.schemas.common import ERROR_RESPONSES, MessageResponse
from crackzone.schemas.requests import (
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    RefreshTokenRequest,
    RegisterRequest,
    ResetPasswordRequest,
    VerifyEmailRequest,
)
from crackzone.schemas.responses import AuthResponse, TokenRefreshResponse, UserEnvelope, UserResponse
from crackzone.services.auth import AuthService
from crackzone.services.email import EmailService, get_email_service

router = APIRouter(prefix="/auth", tags=["Authentication"])
logger = get_logger(__name__)

EmailDep = Annotated[EmailService, Depends(get_email_service)]


def _auth_response(message: str, user, tokens: dict) -> AuthResponse:
    return AuthResponse(
        message=message,
        user=UserResponse.model_validate(user),
        access_token=tokens["access_token"],
        refresh_token=tokens["refresh_token"],
    )


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def register(request_body: RegisterRequest, db: DbSession, cache: CacheDep, email: EmailDep):
    """Create an account and return a token pair.

    A verification code is emailed when SMTP is configured; registration
    succeeds either way.
    """
    user, tokens = await AuthService(db, cache, email).register(request_body)
    logger.info("user_registered", user_id=user.id)
    return _auth_response("User registered successfully", user, tokens)


@router.post("/login", response_model=AuthResponse, responses=ERROR_RESPONSES)
async def login(request_body: LoginRequest, db: DbSession, cache: CacheDep, email: EmailDep):
    user, tokens = await AuthService(db, cache, email).login(request_body.email, request_body.password)
    logger.info("user_logged_in", user_id=user.id)
    return _auth_response("Login successful", user, tokens)


@router.post("/logout", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def logout(current_user: CurrentUser, db: DbSession, cache: CacheDep, email: EmailDep):
    await AuthService(db, cache, email).logout(current_user.id)
    return MessageResponse(message="Logout successful")


@router.post("/refresh-token", response_model=TokenRefreshResponse, responses=ERROR_RESPONSES)
async def refresh_token(request_body: RefreshTokenRequest, db: DbSession, cache: CacheDep, email: EmailDep):
    """Exchange the current refresh token for a new pair; the old one stops working."""
    tokens = await AuthService(db, cache, email).refresh(request_body.refresh_token)
    return TokenRefreshResponse(
        access_token=tokens["access_token"],
        refresh_token=tokens["refresh_token"],
    )


@router.get("/me", response_model=UserEnvelope, responses=ERROR_RESPONSES)
async def me(current_user: CurrentUser, db: DbSession, cache: CacheDep, email: EmailDep):
    user = await AuthService(db, cache, email).me(current_user.id)
    return UserEnvelope(user=UserResponse.model_validate(user))


@router.post("/verify-email", response_model=UserEnvelope, responses=ERROR_RESPONSES)
async def verify_email(request_body: VerifyEmailRequest, db: DbSession, cache: CacheDep, email: EmailDep):
    service = AuthService(db, cache, email)
    user = await service.verify_email(request_body.token)
    user = await service.me(user.id)
    return UserEnvelope(
        message="Email verified successfully! Welcome to CrackZone!",
        user=UserResponse.model_validate(user),
    )


@router.post("/resend-verification", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def resend_verification(request_body: EmailRequest, db: DbSession, cache: CacheDep, email: EmailDep):
    await AuthService(db, cache, email).resend_verification(request_body.email)
    return MessageResponse(message="Verification email sent")


@router.post("/forgot-password", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def forgot_password(request_body: EmailRequest, db: DbSession, cache: CacheDep, email: EmailDep):
    """Always answers the same way so the endpoint cannot be used to probe emails."""
    await AuthService(db, cache, email).forgot_password(request_body.email)
    return MessageResponse(message="If the email exists, a reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def reset_password(request_body: ResetPasswordRequest, db: DbSession, cache: CacheDep, email: EmailDep):
    await AuthService(db, cache, email).reset_password(request_body.token, request_body.password)
    return MessageResponse(message="Password reset successful")


@router.post("/change-password", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def change_password(
    request_body: ChangePasswordRequest,
    current_user: CurrentUser,
    db: DbSession,
    cache: CacheDep,
    email: EmailDep,
):
    await AuthService(db, cache, email).change_password(
        current_user.id,
        request_body.current_password,
        request_body.new_password,
    )
    return MessageResponse(message="Password changed successfully")
