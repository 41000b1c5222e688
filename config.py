import os

BASE_DIR = os.path.abspath(os.path.dirname(__file__))

def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")

class Config:
    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-only-change-me")

    # SQLite file for local work; PostgreSQL via DATABASE_URL in production
    SQLALCHEMY_DATABASE_URI = os.getenv(
        "DATABASE_URL",
        "sqlite:///" + os.path.join(BASE_DIR, "studio.db")
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session cookie carrying the token issued by the login service
    AUTH_COOKIE_NAME = "studio_session"

    # 8 hours session lifetime
    SESSION_LIFETIME_SECONDS = 8 * 60 * 60

    # Idle timeout: 20 minutes
    IDLE_TIMEOUT_SECONDS = 20 * 60

    # Session/cookie security defaults
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_COOKIE_SECURE = _env_bool("SESSION_COOKIE_SECURE", "false")  # set True when using HTTPS

    # Double-submit CSRF check for authenticated mutating requests
    CSRF_ENABLED = _env_bool("CSRF_ENABLED", "true")

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Chalan numbering: CH-00001, per company unless CHALAN_NUMBER_SCOPE=global
    CHALAN_NUMBER_PREFIX = os.getenv("CHALAN_NUMBER_PREFIX", "CH")
    CHALAN_NUMBER_WIDTH = int(os.getenv("CHALAN_NUMBER_WIDTH", "5"))
    CHALAN_NUMBER_SCOPE = os.getenv("CHALAN_NUMBER_SCOPE", "company")

    # Cancelling a booking leaves its chalan alone unless this is switched on
    BOOKING_CANCEL_CASCADES_CHALAN = _env_bool("BOOKING_CANCEL_CASCADES_CHALAN", "false")

    # Upper bound on rows returned by the booking range query
    RESERVATION_LIST_LIMIT = int(os.getenv("RESERVATION_LIST_LIMIT", "500"))

    # Basic app settings
    DEBUG = False
