"""Application configuration.

Reads settings from the environment, loading a repository-level .env file
first when one exists. Every setting has a development-friendly default.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

REPO_ROOT = Path(__file__).resolve().parents[1]

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return int(value)


# =============================================================================
# Environment
# =============================================================================

ORDER_SCRUB_ENV = os.getenv("ORDER_SCRUB_ENV", "development")


def is_development() -> bool:
    """True when the dev-only endpoints (token issuer) should be exposed."""
    return ORDER_SCRUB_ENV.lower() == "development"


# =============================================================================
# Storage
# =============================================================================

DB_PATH = Path(os.getenv("ORDER_SCRUB_DB_PATH", str(REPO_ROOT / "order_scrub.db")))


# =============================================================================
# Uploads
# =============================================================================

MAX_UPLOAD_BYTES = _env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
ALLOWED_EXTENSIONS = (".xlsx", ".xls")


# =============================================================================
# Authentication
# =============================================================================

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "dev-secret-key-change-me-minimum-32-chars")
JWT_ISSUER = os.getenv("JWT_ISSUER", "OrderScrub")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE", "OrderScrub")
JWT_EXPIRE_MINUTES = _env_int("JWT_EXPIRE_MINUTES", 60)


# =============================================================================
# Logging
# =============================================================================

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_JSON = _env_bool("LOG_JSON", False)


# =============================================================================
# Temporal
# =============================================================================

TEMPORAL_ENDPOINT = os.getenv("TEMPORAL_ENDPOINT", "localhost:7233")
TEMPORAL_NAMESPACE = os.getenv("TEMPORAL_NAMESPACE", "default")
TEMPORAL_API_KEY = os.getenv("TEMPORAL_API_KEY")
TEMPORAL_TASK_QUEUE = os.getenv("TEMPORAL_TASK_QUEUE", "order-scrub")
