"""
Meeting Items Platform
Configuration classes for Flask App Factory.

Usage:
    config_name = os.getenv("APP_ENV", "development")
    app.config.from_object(config[config_name])
"""

import os
import secrets

basedir = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))

# Default SQLite path for local dev when PostgreSQL is not running
_SQLITE_DEV = f"sqlite:///{os.path.join(basedir, 'instance', 'meeting_items_dev.db')}"
_SQLITE_TEST = "sqlite:///:memory:"

# Generate a random key for development; production MUST use a stable env var
_DEV_SECRET = secrets.token_hex(32)


def _csv(value):
    return tuple(part.strip() for part in (value or "").split(",") if part.strip())


def request_body_limit(max_document_bytes, max_documents):
    """Largest JSON body that carries *max_documents* files of *max_document_bytes*.

    base64 grows content by 4/3; each document gets 64 KiB for its other keys
    and the request 1 MiB for the meeting item fields.
    """
    per_document = 4 * -(-max_document_bytes // 3) + 64 * 1024
    return max_documents * per_document + 1024 * 1024


class Config:
    """Base configuration shared across all environments."""

    SECRET_KEY = os.getenv("SECRET_KEY", _DEV_SECRET)
    DEBUG = False
    TESTING = False
    LOG_LEVEL = os.getenv("LOG_LEVEL")

    # SQLAlchemy
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
    }

    # CORS
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")

    # Auth
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "true")
    API_KEYS = os.getenv("API_KEYS", "")
    STATUS_ROLES = _csv(os.getenv("STATUS_ROLES", "Secretary,Chair"))

    # Documents
    MAX_DOCUMENT_BYTES = int(os.getenv("MAX_DOCUMENT_BYTES", str(10 * 1024 * 1024)))
    MAX_DOCUMENTS_PER_REQUEST = int(os.getenv("MAX_DOCUMENTS_PER_REQUEST", "5"))
    BLOB_STORAGE_BACKEND = os.getenv("BLOB_STORAGE_BACKEND", "local")
    BLOB_STORAGE_ROOT = os.getenv("BLOB_STORAGE_ROOT", os.path.join(basedir, "instance", "blobs"))

    # Rate limits (Flask-Limiter)
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_WRITE = os.getenv("RATELIMIT_WRITE", "120/minute")
    RATELIMIT_CONFIG = os.getenv("RATELIMIT_CONFIG", "300/minute")

    # Security headers
    SECURITY_HSTS_SECONDS = int(os.getenv("SECURITY_HSTS_SECONDS", "31536000"))

    @property
    def MAX_CONTENT_LENGTH(self):
        """Body cap; defaults to a full batch of base64-encoded documents."""
        override = os.getenv("MAX_CONTENT_LENGTH")
        if override:
            return int(override)
        return request_body_limit(self.MAX_DOCUMENT_BYTES, self.MAX_DOCUMENTS_PER_REQUEST)


class DevelopmentConfig(Config):
    """Development environment configuration."""

    DEBUG = True
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = (
        _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else _SQLITE_DEV
    )
    # Auth disabled by default in development for convenience
    API_AUTH_ENABLED = os.getenv("API_AUTH_ENABLED", "false")
    SECURITY_HSTS_SECONDS = 0


class TestingConfig(Config):
    """Testing environment configuration."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", _SQLITE_TEST)
    API_AUTH_ENABLED = "false"
    RATELIMIT_ENABLED = False
    BLOB_STORAGE_BACKEND = "memory"
    MAX_DOCUMENT_BYTES = 10 * 1024 * 1024
    STATUS_ROLES = ("Secretary", "Chair")


class ProductionConfig(Config):
    """Production environment configuration."""

    DEBUG = False
    # Heroku-style URLs use postgres:// but SQLAlchemy 2.0 requires postgresql://
    _raw_db_url = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI = _raw_db_url.replace("postgres://", "postgresql://", 1) if _raw_db_url else None
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "")  # Must be set explicitly in production

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 20,
    }

    def __init__(self):
        if not self.SQLALCHEMY_DATABASE_URI:
            raise RuntimeError("DATABASE_URL environment variable is required in production")
        if not os.getenv("SECRET_KEY"):
            raise RuntimeError("SECRET_KEY environment variable must be set in production")


# Configuration mapping: environment name -> config class
config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
