"""Database models."""

from crackzone.models.base import Base, TimestampMixin, UUIDMixin
from crackzone.models.banner import Banner
from crackzone.models.match import Match, MatchParticipant, MatchStatus
from crackzone.models.notification import Notification, NotificationType
from crackzone.models.order import Order, OrderStatus, PaymentMethod
from crackzone.models.reward import Reward, RewardType, UserReward
from crackzone.models.team import Team, TeamMember, TeamRole
from crackzone.models.tournament import (
    Tournament,
    TournamentFormat,
    TournamentParticipant,
    TournamentStatus,
)
from crackzone.models.transaction import Transaction, TransactionStatus, TransactionType
from crackzone.models.user import GameProfile, Profile, User, UserRole

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # User
    "User",
    "UserRole",
    "Profile",
    "GameProfile",
    # Tournament
    "Tournament",
    "TournamentFormat",
    "TournamentParticipant",
    "TournamentStatus",
    # Team
    "Team",
    "TeamMember",
    "TeamRole",
    # Match
    "Match",
    "MatchParticipant",
    "MatchStatus",
    # Ledger & shop
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "Order",
    "OrderStatus",
    "PaymentMethod",
    # Rewards
    "Reward",
    "RewardType",
    "UserReward",
    # Notifications
    "Notification",
    "NotificationType",
    # Content
    "Banner",
]
