"""API Package.

FastAPI server for the Order Scrub system.
"""

from api.server import create_app, app

__all__ = [
    "create_app",
    "app",
]
