"""API routers."""

from crackzone.api.auth import router as auth_router
from crackzone.api.banners import router as banners_router
from crackzone.api.email import router as email_router
from crackzone.api.images import router as images_router
from crackzone.api.matches import router as matches_router
from crackzone.api.notifications import router as notifications_router
from crackzone.api.orders import router as orders_router
from crackzone.api.rewards import router as rewards_router
from crackzone.api.teams import router as teams_router
from crackzone.api.tournaments import router as tournaments_router
from crackzone.api.transactions import router as transactions_router
from crackzone.api.users import router as users_router

__all__ = [
    "auth_router",
    "banners_router",
    "email_router",
    "images_router",
    "matches_router",
    "notifications_router",
    "orders_router",
    "rewards_router",
    "teams_router",
    "tournaments_router",
    "transactions_router",
    "users_router",
]
