"""Business logic services."""

from crackzone.services.auth import AuthService
from crackzone.services.email import EmailService, get_email_service
from crackzone.services.events import EventOutbox, get_outbox
from crackzone.services.image import ImageStorage, get_image_storage
from crackzone.services.match import MatchService
from crackzone.services.notification import NotificationService
from crackzone.services.order import OrderService
from crackzone.services.reward import RewardService
from crackzone.services.team import TeamService
from crackzone.services.tournament import TournamentService
from crackzone.services.transaction import TransactionService
from crackzone.services.user import UserService

__all__ = [
    # Accounts
    "AuthService",
    "UserService",
    # Competition
    "TournamentService",
    "TeamService",
    "MatchService",
    # Economy
    "TransactionService",
    "OrderService",
    "RewardService",
    # Delivery
    "NotificationService",
    "EventOutbox",
    "get_outbox",
    "EmailService",
    "get_email_service",
    "ImageStorage",
    "get_image_storage",
]
