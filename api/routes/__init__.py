"""API Routes Package."""

from api.routes import health, auth, order_scrub

__all__ = [
    "health",
    "auth",
    "order_scrub",
]
