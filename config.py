"""
Configuration for the creator subscription billing service.
Production (Railway/Render): uses DATABASE_URL only; fails if missing.
Local: DATABASE_URL or DB_* fallback for backward compatibility.
"""
import os
from datetime import timedelta
from urllib.parse import quote_plus


def _is_production():
    """True when running on Railway, Render, or explicit production."""
    return (
        os.environ.get("RENDER") == "true"
        or os.environ.get("RAILWAY_ENVIRONMENT") is not None
        or os.environ.get("FLASK_ENV") == "production"
    )


def _env_flag(name, default=False):
    value = os.environ.get(name)
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("true", "on", "1", "yes")


def _normalize_database_url(url):
    """Convert postgres:// to postgresql+psycopg2:// for SQLAlchemy/psycopg2."""
    if not url:
        return url
    url = url.strip()
    if url.startswith("postgres://"):
        return "postgresql+psycopg2://" + url[11:]
    if url.startswith("postgresql://") and "psycopg2" not in url:
        return "postgresql+psycopg2://" + url[13:]
    return url


def _get_database_uri():
    """Database URI: production = DATABASE_URL only; local = DATABASE_URL or DB_*."""
    if _is_production():
        url = os.environ.get("DATABASE_URL")
        if not url or not url.strip():
            raise RuntimeError(
                "DATABASE_URL is required in production (Railway/Render). "
                "Set it in your service environment variables."
            )
        return _normalize_database_url(url.strip())

    url = os.environ.get("DATABASE_URL")
    if url and url.strip():
        return _normalize_database_url(url.strip())

    host = os.environ.get("DB_HOST", "localhost")
    port = os.environ.get("DB_PORT", "5432")
    name = os.environ.get("DB_NAME", "creatorhub")
    user = os.environ.get("DB_USER", "creatorhub")
    password = os.environ.get("DB_PASSWORD", "")
    if password:
        password = quote_plus(password)
    return f"postgresql+psycopg2://{user}:{password}@{host}:{port}/{name}"


def _default_gateway_mode():
    """Explicit PAYMENT_GATEWAY_MODE wins; otherwise live in production, sandbox elsewhere."""
    mode = (os.environ.get("PAYMENT_GATEWAY_MODE") or "").strip().lower()
    if mode:
        return mode
    return "live" if _is_production() else "sandbox"


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"

    PERMANENT_SESSION_LIFETIME = timedelta(hours=8)
    SESSION_COOKIE_SECURE = _env_flag("SESSION_COOKIE_SECURE")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    SQLALCHEMY_DATABASE_URI = _get_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT") or 587)
    MAIL_USE_TLS = _env_flag("MAIL_USE_TLS", default=True)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER") or os.environ.get("MAIL_USERNAME") or "noreply@creatorhub.app"

    CLIENT_URL = os.environ.get("CLIENT_URL", "http://localhost:3000").rstrip("/")

    # Payment gateway (Midtrans). The server key doubles as the webhook signature secret.
    MIDTRANS_SERVER_KEY = os.environ.get("MIDTRANS_SERVER_KEY")
    MIDTRANS_CLIENT_KEY = os.environ.get("MIDTRANS_CLIENT_KEY")
    MIDTRANS_IS_PRODUCTION = _env_flag("MIDTRANS_IS_PRODUCTION")
    PAYMENT_GATEWAY_MODE = _default_gateway_mode()
    GATEWAY_TIMEOUT_SECONDS = float(os.environ.get("GATEWAY_TIMEOUT_SECONDS") or 10)

    # Accept webhooks without a verifiable signature. Only meant for sandbox work.
    WEBHOOK_SIGNATURE_LENIENT = _env_flag(
        "WEBHOOK_SIGNATURE_LENIENT", default=PAYMENT_GATEWAY_MODE == "sandbox"
    )


class TestingConfig(Config):
    """Configuration used by the test suite."""
    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    MAIL_SERVER = None
    MAIL_SUPPRESS_SEND = True
    CLIENT_URL = "http://localhost:3000"
    MIDTRANS_SERVER_KEY = "SB-Mid-server-test-key"
    MIDTRANS_CLIENT_KEY = "SB-Mid-client-test-key"
    MIDTRANS_IS_PRODUCTION = False
    PAYMENT_GATEWAY_MODE = "sandbox"
    GATEWAY_TIMEOUT_SECONDS = 2
    WEBHOOK_SIGNATURE_LENIENT = False
