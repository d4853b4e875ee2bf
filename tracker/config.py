"""
Configuration classes, selected by name in ``create_app``.

    APP_ENV=development   local SQLite under instance/ unless DATABASE_URL is set
    APP_ENV=testing       in-memory SQLite
    APP_ENV=production    DATABASE_URL and SECRET_KEY are mandatory
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'tracker_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"


def _database_url(raw: str) -> str:
    # SQLAlchemy 2 rejects the legacy postgres:// scheme
    return raw.replace("postgres://", "postgresql://", 1)


def _int_env(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


class Config:
    """Settings shared by every environment."""

    SECRET_KEY = os.getenv("SECRET_KEY") or secrets.token_hex(32)
    DEBUG = False
    TESTING = False

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    # Comma-separated origins, or "*"
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Request bodies are small JSON documents (actor_id, feedback)
    MAX_CONTENT_LENGTH = _int_env("MAX_CONTENT_LENGTH", 256 * 1024)

    # Default grid range: current sprint minus PAST through plus FUTURE
    ACCOUNTABILITY_GRID_PAST_WEEKS = _int_env("ACCOUNTABILITY_GRID_PAST_WEEKS", 4)
    ACCOUNTABILITY_GRID_FUTURE_WEEKS = _int_env("ACCOUNTABILITY_GRID_FUTURE_WEEKS", 1)
    # Widest explicit range, and furthest sprint past the current one
    ACCOUNTABILITY_GRID_MAX_WEEKS = _int_env("ACCOUNTABILITY_GRID_MAX_WEEKS", 52)

    APPROVAL_FEEDBACK_MAX_LENGTH = _int_env("APPROVAL_FEEDBACK_MAX_LENGTH", 2000)


class DevelopmentConfig(Config):
    DEBUG = True
    SQLALCHEMY_DATABASE_URI = _database_url(os.getenv("DATABASE_URL", "")) or _SQLITE_DEV


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    SQLALCHEMY_ENGINE_OPTIONS = {}


class ProductionConfig(Config):
    """Checked on instantiation; ``create_app`` refuses to start half-configured."""

    SQLALCHEMY_DATABASE_URI = _database_url(os.getenv("DATABASE_URL", "")) or None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
