"""API request schemas."""

import re
from datetime import date, datetime, timezone
from typing import Annotated

from pydantic import AfterValidator, EmailStr, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

from crackzone.models.order import PaymentMethod
from crackzone.models.reward import RewardType
from crackzone.models.tournament import TournamentFormat, TournamentStatus
from crackzone.models.transaction import TransactionStatus, TransactionType
from crackzone.models.user import UserRole
from crackzone.schemas.common import BaseSchema
from crackzone.schemas.payloads import MatchResultEntry, OrderItem, RewardRequirements, ShippingAddress

USERNAME_PATTERN = r"^[a-zA-Z0-9_]+$"
TEAM_NAME_PATTERN = r"^[a-zA-Z0-9\s_-]+$"


def _check_password_strength(v: str) -> str:
    if not re.search(r"[a-z]", v) or not re.search(r"[A-Z]", v):
        raise ValueError("Password must contain uppercase and lowercase letters")
    if not re.search(r"\d", v):
        raise ValueError("Password must contain at least one number")
    if not re.search(r"[@$!%*?&]", v):
        raise ValueError("Password must contain at least one special character (@$!%*?&)")
    return v


def _as_utc(value: datetime) -> datetime:
    # Offset-free timestamps are read as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCDatetime = Annotated[datetime, AfterValidator(_as_utc)]


def _reject_null(value, info: ValidationInfo):
    """Partial updates may omit a required column but never clear it."""
    if value is None:
        raise ValueError(f"{to_camel(info.field_name)} cannot be null")
    return value


# =============================================================================
# Auth Requests
# =============================================================================


class RegisterRequest(BaseSchema):
    """User registration request."""

    email: EmailStr
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    first_name: str | None = Field(None, min_length=1, max_length=50)
    last_name: str | None = Field(None, min_length=1, max_length=50)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class LoginRequest(BaseSchema):
    email: EmailStr
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class RefreshTokenRequest(BaseSchema):
    refresh_token: str = Field(..., min_length=1)


class VerifyEmailRequest(BaseSchema):
    token: str = Field(..., min_length=1, description="Six-digit verification code")


class EmailRequest(BaseSchema):
    """Body for resend-verification and forgot-password."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower()


class ResetPasswordRequest(BaseSchema):
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


class ChangePasswordRequest(BaseSchema):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8, max_length=128)

    @field_validator("new_password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password_strength(v)


# =============================================================================
# User Requests
# =============================================================================


class UpdateProfileRequest(BaseSchema):
    first_name: str | None = Field(None, min_length=1, max_length=50)
    last_name: str | None = Field(None, min_length=1, max_length=50)
    phone: str | None = Field(None, max_length=20)
    gamer_tag: str | None = Field(None, min_length=2, max_length=50)
    bio: str | None = Field(None, max_length=500)
    country: str | None = Field(None, min_length=2, max_length=2)
    timezone: str | None = Field(None, min_length=1, max_length=50)
    date_of_birth: date | None = None
    preferences: dict | None = None


class GameProfileRequest(BaseSchema):
    game_id: str = Field(..., min_length=1, max_length=50)
    game_name: str = Field(..., min_length=1, max_length=100)
    game_uid: str = Field(..., min_length=1, max_length=100)
    in_game_name: str = Field(..., min_length=1, max_length=100)
    is_primary: bool = False


class AdminCreateUserRequest(RegisterRequest):
    role: UserRole = UserRole.USER
    is_verified: bool = False


class AdminUpdateUserRequest(BaseSchema):
    role: UserRole | None = None
    is_active: bool | None = None
    is_verified: bool | None = None


class BanUserRequest(BaseSchema):
    reason: str | None = Field(None, max_length=500)


# =============================================================================
# Tournament Requests
# =============================================================================


class TournamentCreateRequest(BaseSchema):
    title: str = Field(..., min_length=3, max_length=100)
    description: str | None = Field(None, max_length=1000)
    game: str = Field(..., min_length=1, max_length=50)
    format: TournamentFormat
    max_participants: int = Field(..., ge=2, le=1000)
    entry_fee: int = Field(0, ge=0)
    prize_pool: int = Field(0, ge=0)
    start_date: UTCDatetime
    end_date: UTCDatetime | None = None
    rules: str | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "TournamentCreateRequest":
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must be after startDate")
        return self


class TournamentUpdateRequest(BaseSchema):
    title: str | None = Field(None, min_length=3, max_length=100)
    description: str | None = Field(None, max_length=1000)
    game: str | None = Field(None, min_length=1, max_length=50)
    format: TournamentFormat | None = None
    status: TournamentStatus | None = None
    max_participants: int | None = Field(None, ge=2, le=1000)
    entry_fee: int | None = Field(None, ge=0)
    prize_pool: int | None = Field(None, ge=0)
    start_date: UTCDatetime | None = None
    end_date: UTCDatetime | None = None
    rules: str | None = None

    @field_validator(
        "title",
        "game",
        "format",
        "status",
        "max_participants",
        "entry_fee",
        "prize_pool",
        "start_date",
    )
    @classmethod
    def not_null(cls, v, info: ValidationInfo):
        return _reject_null(v, info)


# =============================================================================
# Team Requests
# =============================================================================


class TeamCreateRequest(BaseSchema):
    name: str = Field(..., min_length=3, max_length=50, pattern=TEAM_NAME_PATTERN)
    description: str | None = Field(None, max_length=500)
    max_members: int = Field(5, ge=2, le=20)


class TeamUpdateRequest(BaseSchema):
    name: str | None = Field(None, min_length=3, max_length=50, pattern=TEAM_NAME_PATTERN)
    description: str | None = Field(None, max_length=500)
    max_members: int | None = Field(None, ge=2, le=20)


class TeamInviteRequest(BaseSchema):
    username: str = Field(..., min_length=3, max_length=30)


# =============================================================================
# Match Requests
# =============================================================================


class MatchCreateRequest(BaseSchema):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    game: str = Field(..., min_length=1, max_length=50)
    tournament_id: str | None = None
    round: int | None = Field(None, ge=1)
    scheduled_at: UTCDatetime | None = None
    participant_ids: list[str] = Field(..., min_length=2)

    @field_validator("participant_ids")
    @classmethod
    def unique_participants(cls, v: list[str]) -> list[str]:
        if len(set(v)) != len(v):
            raise ValueError("participantIds must be unique")
        return v


class MatchUpdateRequest(BaseSchema):
    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    game: str | None = Field(None, min_length=1, max_length=50)
    round: int | None = Field(None, ge=1)
    scheduled_at: UTCDatetime | None = None

    @field_validator("title", "game")
    @classmethod
    def not_null(cls, v, info: ValidationInfo):
        return _reject_null(v, info)


class MatchResultRequest(BaseSchema):
    results: list[MatchResultEntry] = Field(..., min_length=1)
    notes: str | None = Field(None, max_length=1000)

    @field_validator("results")
    @classmethod
    def unique_users(cls, v: list[MatchResultEntry]) -> list[MatchResultEntry]:
        if len({entry.user_id for entry in v}) != len(v):
            raise ValueError("Each participant may appear only once in results")
        return v


# =============================================================================
# Transaction Requests
# =============================================================================


class DepositRequest(BaseSchema):
    amount: int = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1, max_length=50)
    reference: str | None = Field(None, max_length=100)


class WithdrawalRequest(BaseSchema):
    amount: int = Field(..., gt=0)
    payment_method: str = Field(..., min_length=1, max_length=50)
    account_details: str | None = Field(None, max_length=255)


class RejectTransactionRequest(BaseSchema):
    reason: str = Field("No reason provided", max_length=500)


class TransactionFilter(BaseSchema):
    type: TransactionType | None = None
    status: TransactionStatus | None = None


# =============================================================================
# Order Requests
# =============================================================================


class OrderCreateRequest(BaseSchema):
    items: list[OrderItem] = Field(..., min_length=1)
    total_amount: int = Field(..., gt=0)
    shipping_address: ShippingAddress | None = None
    payment_method: PaymentMethod | None = None


class ShipOrderRequest(BaseSchema):
    tracking_number: str | None = Field(None, max_length=100)


# =============================================================================
# Reward Requests
# =============================================================================


class RewardCreateRequest(BaseSchema):
    title: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    type: RewardType
    value: int = Field(0, ge=0)
    requirements: RewardRequirements | None = None
    is_active: bool = True


class RewardUpdateRequest(BaseSchema):
    title: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    type: RewardType | None = None
    value: int | None = Field(None, ge=0)
    requirements: RewardRequirements | None = None
    is_active: bool | None = None


# =============================================================================
# Banner Requests
# =============================================================================


class BannerCreateRequest(BaseSchema):
    title: str = Field(..., min_length=1, max_length=100)
    subtitle: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=1000)
    action_text: str | None = Field(None, max_length=50)
    # absolute URL or an in-app path
    action_url: str | None = Field(None, max_length=500)
    priority: int = Field(0, ge=0, le=1000)
    start_date: UTCDatetime | None = None
    end_date: UTCDatetime | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "BannerCreateRequest":
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("endDate must be after startDate")
        return self


class BannerUpdateRequest(BaseSchema):
    title: str | None = Field(None, min_length=1, max_length=100)
    subtitle: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=1000)
    action_text: str | None = Field(None, max_length=50)
    action_url: str | None = Field(None, max_length=500)
    priority: int | None = Field(None, ge=0, le=1000)
    start_date: UTCDatetime | None = None
    end_date: UTCDatetime | None = None
    is_active: bool | None = None


# =============================================================================
# Email Requests
# =============================================================================


class TestEmailRequest(BaseSchema):
    to: EmailStr
    template: str = Field("welcome", pattern=r"^(verification|password-reset|welcome|tournament-invitation)$")


class TournamentInvitationRequest(BaseSchema):
    email: EmailStr
    username: str = Field(..., min_length=1)
    tournament_name: str = Field(..., min_length=1)
    tournament_date: str | None = None
    prize_pool: str | None = None
    tournament_id: str | None = None
