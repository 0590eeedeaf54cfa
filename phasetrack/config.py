"""
Environment configuration for ``create_app``.

``APP_ENV`` selects the class (development | testing | production).
Everything deployment specific comes from environment variables:

    DATABASE_URL        PostgreSQL in production, SQLite file otherwise
    TEST_DATABASE_URL   optional override for the test suite
    SECRET_KEY          required in production
    REDIS_URL           limiter storage and the liveness probe
    RATELIMIT_ENABLED   "false" switches the limiter off
    CORS_ORIGINS        comma separated allow list, "*" outside production
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))


def _env_flag(name, default=True):
    return os.getenv(name, "true" if default else "false").strip().lower() in ("1", "true", "yes")


def _database_url(default=None):
    raw = os.getenv("DATABASE_URL", "")
    if not raw:
        return default
    # SQLAlchemy 2.x only accepts the postgresql:// scheme
    if raw.startswith("postgres://"):
        return "postgresql://" + raw[len("postgres://"):]
    return raw


def _pooled(**extra):
    options = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }
    options.update(extra)
    return options


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    REDIS_URL = os.getenv("REDIS_URL", "")
    RATELIMIT_ENABLED = _env_flag("RATELIMIT_ENABLED")
    RATELIMIT_STORAGE_URI = REDIS_URL or "memory://"

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    MAX_CONTENT_LENGTH = 1024 * 1024


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(
        "sqlite:///" + os.path.join(basedir, "instance", "phasetrack_dev.db")
    )
    if SQLALCHEMY_DATABASE_URI.startswith("postgresql"):
        SQLALCHEMY_ENGINE_OPTIONS = _pooled()


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SQLALCHEMY_ENGINE_OPTIONS = {}
    REDIS_URL = ""
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"


class ProductionConfig(Config):
    SQLALCHEMY_DATABASE_URI = _database_url()
    SQLALCHEMY_ENGINE_OPTIONS = _pooled(
        connect_args={"options": "-c statement_timeout=30000"},
    )
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL must be set when APP_ENV=production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY must be set when APP_ENV=production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
