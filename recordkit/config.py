import os
from dotenv import load_dotenv

# Load environment variables from a .env file if it exists
load_dotenv()

_ASYNC_DRIVERS = {
    "sqlite": "sqlite+aiosqlite",
    "postgres": "postgresql+asyncpg",
    "postgresql": "postgresql+asyncpg",
    "mysql": "mysql+aiomysql",
}


def get_database_uri(default_uri):
    """Get database URI, upgrading plain schemes to their async drivers."""
    database_url = os.getenv("DATABASE_URI", default_uri)
    return to_async_uri(database_url)


def to_async_uri(database_url):
    """Rewrite ``sqlite://``, ``postgres://`` and ``mysql://`` URIs to async dialects."""
    scheme, sep, rest = database_url.partition("://")
    if not sep or "+" in scheme:
        return database_url
    driver = _ASYNC_DRIVERS.get(scheme)
    if driver is None:
        return database_url
    return f"{driver}://{rest}"


def get_int_env(var_name, default_value):
    """Safely get an integer environment variable."""
    try:
        return int(os.getenv(var_name, str(default_value)))
    except ValueError:
        return default_value


def get_bool_env(var_name, default_value):
    """Safely get a boolean environment variable."""
    value = os.getenv(var_name, str(default_value)).lower()
    return value in ('true', '1', 'yes', 'on')


class Config:
    """Base configuration class with all default settings."""

    # Environment
    RECORDKIT_ENV = os.getenv("RECORDKIT_ENV", "production")
    DEBUG = get_bool_env("DEBUG", False)
    TESTING = False

    # Database
    DATABASE_URI = get_database_uri("sqlite+aiosqlite:///recordkit.db")
    ENGINE_ECHO = get_bool_env("ENGINE_ECHO", False)
    ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': get_int_env("ENGINE_POOL_RECYCLE", 300),
    }

    # Logging
    LOGGING_BASE_DIR = os.getenv("LOGGING_BASE_DIR")
    LOGGING_ENABLE_CATEGORY_FILES = get_bool_env("LOGGING_ENABLE_CATEGORY_FILES", False)
    LOGGING_ROTATION_WHEN = os.getenv("LOGGING_ROTATION_WHEN", "midnight")
    LOGGING_ROTATION_INTERVAL = get_int_env("LOGGING_ROTATION_INTERVAL", 1)
    LOGGING_ROTATION_BACKUP_COUNT = get_int_env("LOGGING_ROTATION_BACKUP_COUNT", 7)
    LOGGING_DEFAULT_LEVEL = os.getenv("LOGGING_DEFAULT_LEVEL", "INFO")
    LOGGING_CATEGORY_LEVELS = {}
    LOGGING_CONSOLE_ENABLED = get_bool_env("LOGGING_CONSOLE_ENABLED", False)
    LOGGING_CONSOLE_LEVEL = os.getenv("LOGGING_CONSOLE_LEVEL", "INFO")
    LOGGING_CONSOLE_JSON = get_bool_env("LOGGING_CONSOLE_JSON", False)
    LOGGING_JSON_FORMAT = get_bool_env("LOGGING_JSON_FORMAT", False)
    LOGGING_TEXT_FORMAT = os.getenv("LOGGING_TEXT_FORMAT")
    LOGGING_DATE_FORMAT = os.getenv("LOGGING_DATE_FORMAT")


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    RECORDKIT_ENV = "development"

    # Database
    DATABASE_URI = get_database_uri(
        os.getenv("DEVELOPMENT_DATABASE_URI", "sqlite+aiosqlite:///dev.db")
    )
    ENGINE_ECHO = get_bool_env("DEV_ENGINE_ECHO", True)

    # Logging
    LOGGING_DEFAULT_LEVEL = os.getenv("DEV_LOG_LEVEL", "DEBUG")
    LOGGING_CONSOLE_ENABLED = get_bool_env("DEV_LOGGING_CONSOLE_ENABLED", True)
    LOGGING_CONSOLE_LEVEL = os.getenv("DEV_LOGGING_CONSOLE_LEVEL", "DEBUG")


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    RECORDKIT_ENV = "testing"

    # In-memory database for faster tests
    DATABASE_URI = to_async_uri(os.getenv("TEST_DATABASE_URI", "sqlite+aiosqlite:///:memory:"))
    ENGINE_OPTIONS = {}

    LOGGING_DEFAULT_LEVEL = "DEBUG"


class ProductionConfig(Config):
    """Production environment configuration."""

    RECORDKIT_ENV = "production"

    # Logging
    LOGGING_DEFAULT_LEVEL = os.getenv("PROD_LOG_LEVEL", "WARNING")


# Configuration dictionary for easy access
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}


def get_config(name=None):
    """Resolve a configuration class by name, falling back to ``RECORDKIT_ENV``."""
    key = (name or os.getenv("RECORDKIT_ENV") or "default").strip().lower()
    return config.get(key, config['default'])
