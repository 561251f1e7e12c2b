import os
import secrets
import warnings

from dotenv import load_dotenv

basedir = os.path.abspath(os.path.dirname(__file__))
load_dotenv(os.path.join(basedir, ".env"))


def _env_flag(name, default):
    return os.environ.get(name, default).lower() in ["true", "on", "1"]


class Config:
    # Generate a secret key if not provided (with warning)
    _secret_key = os.environ.get("SECRET_KEY")

    if not _secret_key:
        _secret_key = secrets.token_urlsafe(32)
        warnings.warn(
            "SECRET_KEY not set! Using auto-generated key. "
            "Run 'python3 generate_secrets.py' to generate secure keys.",
            UserWarning,
        )

    SECRET_KEY = _secret_key

    # Database configuration - built from environment at initialization
    def __init__(self):
        """Initialize configuration with dynamic database URI"""
        self.SQLALCHEMY_DATABASE_URI = self._build_database_uri()

    def _build_database_uri(self):
        """Build database URI from environment variables"""
        database_url = os.environ.get("DATABASE_URL")

        if database_url:
            return database_url

        db_type = os.environ.get("DB_TYPE", "sqlite")

        if db_type.lower() == "postgresql":
            db_host = os.environ.get("DB_HOST") or "localhost"
            db_port = os.environ.get("DB_PORT") or "5432"
            db_name = os.environ.get("DB_NAME") or "predictor_db"
            db_user = os.environ.get("DB_USER") or "predictor_user"
            db_password = os.environ.get("DB_PASSWORD") or "predictor_password"

            return f"postgresql+psycopg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"
        else:
            # Default to SQLite for development
            return "sqlite:///" + os.path.join(basedir, "app.db")

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Admin access
    ADMIN_SECRET = (os.environ.get("ADMIN_SECRET") or "").strip() or None
    FORCE_SCORE_WEEK = _env_flag("FORCE_SCORE_WEEK", "false")

    # Competition rules
    MATCHES_PER_WEEK = int(os.environ.get("MATCHES_PER_WEEK") or 5)
    FULL_HOUSE_BONUS = int(os.environ.get("FULL_HOUSE_BONUS") or 5)

    # Local timezone for admin input and display (storage is always UTC)
    TIMEZONE = os.environ.get("TIMEZONE", "Europe/London")

    # Fixture API configuration (football-data.org free tier: 10 requests/minute)
    FOOTBALL_DATA_KEY = os.environ.get("FOOTBALL_DATA_KEY")
    FOOTBALL_DATA_BASE_URL = (
        os.environ.get("FOOTBALL_DATA_BASE_URL") or "https://api.football-data.org/v4"
    )
    FIXTURE_API_CALL_DELAY = float(os.environ.get("FIXTURE_API_CALL_DELAY", "6.5"))
    FIXTURE_API_RATE_LIMIT_COOLDOWN = float(
        os.environ.get("FIXTURE_API_RATE_LIMIT_COOLDOWN", "12")
    )
    FIXTURE_API_TIMEOUT = float(os.environ.get("FIXTURE_API_TIMEOUT", "30"))
    FIXTURE_API_MAX_RETRIES = int(os.environ.get("FIXTURE_API_MAX_RETRIES") or 3)
    FIXTURE_API_RETRY_BASE_DELAY = float(
        os.environ.get("FIXTURE_API_RETRY_BASE_DELAY", "2.0")
    )
    FIXTURE_API_RETRY_JITTER = float(os.environ.get("FIXTURE_API_RETRY_JITTER", "1.0"))

    # Caching configuration
    CACHE_TYPE = os.environ.get("CACHE_TYPE", "SimpleCache")
    CACHE_DEFAULT_TIMEOUT = int(os.environ.get("CACHE_DEFAULT_TIMEOUT", 60))
    CACHE_REDIS_URL = os.environ.get("CACHE_REDIS_URL", "redis://localhost:6379/0")
    CACHE_KEY_PREFIX = "predictor:"

    # Rate limiting for the public API
    RATELIMIT_ENABLED = True
    RATELIMIT_STORAGE_URI = os.environ.get("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_DEFAULT = os.environ.get("RATELIMIT_DEFAULT", "1000 per hour")

    # Socket.IO
    SOCKETIO_ASYNC_MODE = os.environ.get("SOCKETIO_ASYNC_MODE", "threading")
    SOCKETIO_CORS_ORIGINS = os.environ.get("ALLOWED_ORIGINS", "*")

    # Scheduler configuration
    SCHEDULER_ENABLED = _env_flag("SCHEDULER_ENABLED", "True")
    AUTO_SCORE_CRON_HOURS = os.environ.get("AUTO_SCORE_CRON_HOURS", "7,22")

    # Logging configuration
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_TO_CONSOLE = _env_flag("LOG_TO_CONSOLE", "True")
    LOG_TO_FILE = _env_flag("LOG_TO_FILE", "True")
    LOG_DIR = os.environ.get("LOG_DIR", "logs")
    SLOW_FUNCTION_THRESHOLD = float(os.environ.get("SLOW_FUNCTION_THRESHOLD", "5.0"))

    # Environment detection
    FLASK_ENV = os.environ.get("FLASK_ENV", "development")
    DEBUG = FLASK_ENV == "development"
    TESTING = False


class DevelopmentConfig(Config):
    """Development configuration with helpful defaults"""

    DEBUG = True
    SQLALCHEMY_ECHO = os.environ.get("SQLALCHEMY_ECHO", "False").lower() == "true"


class ProductionConfig(Config):
    """Production configuration with security focus"""

    DEBUG = False

    # In production, require explicit environment variables
    def __init__(self):
        super().__init__()  # Call parent __init__ to build database URI

        if not os.environ.get("SECRET_KEY"):
            warnings.warn(
                "PRODUCTION WARNING: SECRET_KEY not explicitly set! "
                "Using auto-generated key is not recommended for production.",
                UserWarning,
            )
        if not self.ADMIN_SECRET:
            warnings.warn(
                "PRODUCTION WARNING: ADMIN_SECRET not set! "
                "All manual admin calls will be rejected.",
                UserWarning,
            )
        if not self.FOOTBALL_DATA_KEY:
            warnings.warn(
                "FOOTBALL_DATA_KEY not set - automatic result lookup is disabled.",
                UserWarning,
            )


class TestingConfig(Config):
    """Testing configuration"""

    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    ADMIN_SECRET = "test-secret"
    FORCE_SCORE_WEEK = False
    FOOTBALL_DATA_KEY = "test-key"
    TIMEZONE = "UTC"
    CACHE_TYPE = "NullCache"
    RATELIMIT_ENABLED = False
    SCHEDULER_ENABLED = False
    LOG_TO_FILE = False
    LOG_TO_CONSOLE = False

    def __init__(self):
        # Keep the in-memory database regardless of DATABASE_URL
        pass


# Configuration mapping
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
