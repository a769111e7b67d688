"""API response schemas."""

from datetime import date, datetime
from typing import Any

from pydantic import Field

from crackzone.models.match import Match, MatchStatus
from crackzone.models.notification import NotificationType
from crackzone.models.order import OrderStatus, PaymentMethod
from crackzone.models.reward import RewardType
from crackzone.models.team import Team, TeamRole
from crackzone.models.tournament import Tournament, TournamentFormat, TournamentStatus
from crackzone.models.transaction import TransactionStatus, TransactionType
from crackzone.models.user import UserRole
from crackzone.schemas.common import BaseSchema, PaginationMeta


# =============================================================================
# User Responses
# =============================================================================


class ProfileResponse(BaseSchema):
    bio: str | None = None
    country: str | None = None
    timezone: str | None = None
    date_of_birth: date | None = None
    preferences: dict[str, Any] | None = None


class UserSummary(BaseSchema):
    """Compact user reference embedded in other resources."""

    id: str
    username: str
    avatar: str | None = None
    gamer_tag: str | None = None
    level: int = 1


class UserResponse(BaseSchema):
    """Full account view returned to the account owner and admins."""

    id: str
    email: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None
    phone: str | None = None
    gamer_tag: str | None = None
    level: int
    experience: int
    coins: int
    role: UserRole
    is_active: bool
    is_verified: bool
    profile_setup: bool
    game_setup: bool
    onboarding_complete: bool
    last_login: datetime | None = None
    created_at: datetime
    updated_at: datetime
    profile: ProfileResponse | None = None


class UserStats(BaseSchema):
    teams: int = 0
    tournaments: int = 0
    matches: int = 0


class PublicProfileResponse(BaseSchema):
    """Public view of a user (no email, no balance)."""

    id: str
    username: str
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None
    gamer_tag: str | None = None
    level: int
    experience: int
    role: UserRole
    created_at: datetime
    profile: ProfileResponse | None = None
    stats: UserStats | None = None


class UserListResponse(BaseSchema):
    users: list[PublicProfileResponse]
    pagination: PaginationMeta


class GameProfileResponse(BaseSchema):
    id: str
    game_id: str
    game_name: str
    game_uid: str
    in_game_name: str
    is_primary: bool
    created_at: datetime


class UserEnvelope(BaseSchema):
    message: str | None = None
    user: UserResponse


# =============================================================================
# Auth Responses
# =============================================================================


class TokenRefreshResponse(BaseSchema):
    access_token: str
    refresh_token: str


class AuthResponse(TokenRefreshResponse):
    """Register/login response: the account plus a fresh token pair."""

    message: str
    user: UserResponse


# =============================================================================
# Tournament Responses
# =============================================================================


class TournamentParticipantResponse(BaseSchema):
    id: str
    user_id: str
    registered_at: datetime
    user: UserSummary | None = None


class MatchSummary(BaseSchema):
    id: str
    title: str
    round: int | None = None
    status: MatchStatus
    scheduled_at: datetime | None = None


class TournamentResponse(BaseSchema):
    id: str
    title: str
    description: str | None = None
    game: str
    format: TournamentFormat
    status: TournamentStatus
    max_participants: int
    participant_count: int = 0
    entry_fee: int
    prize_pool: int
    start_date: datetime
    end_date: datetime | None = None
    rules: str | None = None
    banner_url: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, tournament: Tournament) -> "TournamentResponse":
        """Build from a tournament whose ``participants`` are loaded."""
        data = cls.model_validate(tournament)
        data.participant_count = len(tournament.participants)
        return data


class TournamentDetailResponse(TournamentResponse):
    participants: list[TournamentParticipantResponse] = []
    matches: list[MatchSummary] = []

    @classmethod
    def from_model(cls, tournament: Tournament) -> "TournamentDetailResponse":
        data = cls.model_validate(tournament)
        data.participant_count = len(data.participants)
        return data


class TournamentListResponse(BaseSchema):
    tournaments: list[TournamentResponse]
    pagination: PaginationMeta


# =============================================================================
# Team Responses
# =============================================================================


class TeamMemberResponse(BaseSchema):
    id: str
    user_id: str
    role: TeamRole
    joined_at: datetime
    user: UserSummary | None = None


class TeamResponse(BaseSchema):
    id: str
    name: str
    description: str | None = None
    avatar: str | None = None
    max_members: int
    member_count: int = 0
    is_active: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, team: Team) -> "TeamResponse":
        data = cls.model_validate(team)
        data.member_count = len(team.members)
        return data


class TeamDetailResponse(TeamResponse):
    members: list[TeamMemberResponse] = []

    @classmethod
    def from_model(cls, team: Team) -> "TeamDetailResponse":
        data = cls.model_validate(team)
        data.member_count = len(data.members)
        return data


class TeamListResponse(BaseSchema):
    teams: list[TeamResponse]
    pagination: PaginationMeta


# =============================================================================
# Match Responses
# =============================================================================


class MatchParticipantResponse(BaseSchema):
    id: str
    user_id: str
    score: int | None = None
    position: int | None = None
    user: UserSummary | None = None


class MatchResponse(BaseSchema):
    id: str
    title: str
    description: str | None = None
    game: str
    tournament_id: str | None = None
    round: int | None = None
    status: MatchStatus
    scheduled_at: datetime | None = None
    started_at: datetime | None = None
    ended_at: datetime | None = None
    result: dict[str, Any] | None = None
    screenshots: list[dict[str, Any]] | None = None
    participants: list[MatchParticipantResponse] = []
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, match: Match) -> "MatchResponse":
        return cls.model_validate(match)


class MatchListResponse(BaseSchema):
    matches: list[MatchResponse]
    pagination: PaginationMeta


# =============================================================================
# Ledger, Shop & Rewards
# =============================================================================


class TransactionResponse(BaseSchema):
    id: str
    user_id: str
    type: TransactionType
    amount: int
    description: str | None = None
    status: TransactionStatus
    meta: dict[str, Any] | None = Field(None, serialization_alias="metadata")
    created_at: datetime
    updated_at: datetime


class TransactionListResponse(BaseSchema):
    transactions: list[TransactionResponse]
    pagination: PaginationMeta


class OrderResponse(BaseSchema):
    id: str
    user_id: str
    items: list[dict[str, Any]]
    total_amount: int
    status: OrderStatus
    shipping_address: dict[str, Any] | None = None
    payment_method: PaymentMethod | None = None
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseSchema):
    orders: list[OrderResponse]
    pagination: PaginationMeta


class RewardResponse(BaseSchema):
    id: str
    title: str
    description: str | None = None
    type: RewardType
    value: int
    requirements: dict[str, Any] | None = None
    is_active: bool
    created_at: datetime


class RewardListResponse(BaseSchema):
    rewards: list[RewardResponse]
    pagination: PaginationMeta


class UserRewardResponse(BaseSchema):
    id: str
    reward_id: str
    claimed: bool
    claimed_at: datetime
    reward: RewardResponse


class RewardCountResponse(BaseSchema):
    total: int
    claimed: int
    available: int


# =============================================================================
# Banner Responses
# =============================================================================


class BannerResponse(BaseSchema):
    id: str
    title: str
    subtitle: str | None = None
    description: str | None = None
    image_url: str
    image_public_id: str | None = None
    action_text: str | None = None
    action_url: str | None = None
    priority: int
    is_active: bool
    start_date: datetime | None = None
    end_date: datetime | None = None
    created_at: datetime
    updated_at: datetime


class BannerToggleResponse(BaseSchema):
    message: str
    banner: BannerResponse


class ClaimRewardResponse(BaseSchema):
    message: str
    user_reward: UserRewardResponse
    coins: int
    experience: int


# =============================================================================
# Notification Responses
# =============================================================================


class NotificationResponse(BaseSchema):
    id: str
    title: str
    message: str
    type: NotificationType
    is_read: bool
    meta: dict[str, Any] | None = Field(None, serialization_alias="metadata")
    created_at: datetime


class NotificationListResponse(BaseSchema):
    notifications: list[NotificationResponse]
    pagination: PaginationMeta


class NotificationCountResponse(BaseSchema):
    unread: int
    total: int


class CountResponse(BaseSchema):
    message: str
    count: int


# =============================================================================
# Media & Email
# =============================================================================


class ImageResponse(BaseSchema):
    public_id: str
    url: str
    width: int | None = None
    height: int | None = None
    format: str | None = None
    bytes: int | None = None


class ImageUrlResponse(BaseSchema):
    url: str


class EmailConfigResponse(BaseSchema):
    configured: bool
    message: str
