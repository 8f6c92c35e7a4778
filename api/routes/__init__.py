"""API Routes Package."""

from api.routes import auth, campaigns, health, settings, webhooks

__all__ = [
    "auth",
    "campaigns",
    "health",
    "settings",
    "webhooks",
]
