"""
Runtime configuration for the portal.

Values come from the environment (a local .env file is loaded first when
present). The VITE_* names are accepted as fallbacks so existing deployment
files keep working.
"""
import os
import secrets

from dotenv import load_dotenv

load_dotenv()


def _env(name: str, *fallbacks: str, default: str = "") -> str:
    """Return the first non-empty environment variable among name and fallbacks."""
    for key in (name, *fallbacks):
        value = os.getenv(key)
        if value:
            return value
    return default


# REST backend
API_BASE_URL = _env("API_BASE_URL", "VITE_API_BASE_URL", default="https://electriborne.net/api")
API_TIMEOUT_SECONDS = float(os.getenv("API_TIMEOUT_SECONDS", "10"))

# Prefix for relative upload / image paths returned by the backend
ASSET_BASE_URL = _env("API_URL", "VITE_API_URL", default=API_BASE_URL)

# Socket.IO server pushing notifications
BACKEND_URL = _env("BACKEND_URL", "VITE_BACKEND_URL", default="http://localhost:3001")
REALTIME_ENABLED = os.getenv("REALTIME_ENABLED", "true").lower() == "true"

# Stripe (publishable key only, card data never reaches the portal)
STRIPE_PUBLISHABLE_KEY = _env("STRIPE_PUBLISHABLE_KEY", "VITE_STRIPE_PUBLISHABLE_KEY", default="pk_test_placeholder")

# Browser session
SECRET_KEY = os.getenv("SECRET_KEY", secrets.token_urlsafe(32))
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "electriborne_session")
SESSION_MAX_AGE_MINUTES = int(os.getenv("SESSION_MAX_AGE_MINUTES", "1440"))  # 24 hours default
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() == "true"

# Local storage for sessions and received notifications
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./portal.db")
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite://")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
