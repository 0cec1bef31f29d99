"""
Configuration for the captive portal Flask app.
Production: uses DATABASE_URL only; fails if missing.
Local: DATABASE_URL or an SQLite file under instance/.
"""
import os
from pathlib import Path
from datetime import timedelta


def _is_production():
    """True when running under an explicit production flag."""
    return (
        os.environ.get("FLASK_ENV") == "production"
        or os.environ.get("CAPPORT_ENV") == "production"
    )


def _env_bool(name, default="false"):
    return os.environ.get(name, default).lower() in ("true", "on", "1")


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


def _get_database_uri(instance_dir):
    """Database URI: production = DATABASE_URL only; local = DATABASE_URL or SQLite file."""
    url = os.environ.get("DATABASE_URL")
    if _is_production():
        if not url or not url.strip():
            raise RuntimeError(
                "DATABASE_URL is required in production. "
                "Set it in your service environment variables."
            )
        return _normalize_database_url(url.strip())

    if url and url.strip():
        return _normalize_database_url(url.strip())

    return f"sqlite:///{instance_dir / 'capport.db'}"


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-secret-key-change-in-production"
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

    BASE_DIR = Path(__file__).parent
    INSTANCE_DIR = BASE_DIR / "instance"
    try:
        INSTANCE_DIR.mkdir(exist_ok=True)
    except OSError:
        pass
    SQLALCHEMY_DATABASE_URI = _get_database_uri(INSTANCE_DIR)
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    MAIL_SERVER = os.environ.get("MAIL_SERVER")
    MAIL_PORT = int(os.environ.get("MAIL_PORT") or 587)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", "true")
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get("MAIL_DEFAULT_SENDER") or os.environ.get("MAIL_USERNAME") or "noreply@captive.portal"
    MAIL_SEND_TIMEOUT_SECONDS = float(os.environ.get("MAIL_SEND_TIMEOUT_SECONDS") or 10)

    # RFC 8908 API
    PORTAL_URL = os.environ.get("PORTAL_URL") or "https://cp.example.com/portal"
    VENUE_INFO_URL = os.environ.get("VENUE_INFO_URL")

    # Identity binding: "ipmac", "token" or "email"
    IDENTITY_SCHEME = (os.environ.get("IDENTITY_SCHEME") or "ipmac").lower()
    LEASE_FILE_PATH = os.environ.get("LEASE_FILE_PATH")

    SESSION_TTL = timedelta(seconds=int(os.environ.get("SESSION_TTL_SECONDS") or 2 * 60 * 60))
    MAX_DEVICES_PER_EMAIL = int(os.environ.get("MAX_DEVICES_PER_EMAIL") or 3)

    OTP_EMAIL_COOLDOWN_SECONDS = int(os.environ.get("OTP_EMAIL_COOLDOWN_SECONDS") or 60)
    OTP_EMAIL_MAX_PER_HOUR = int(os.environ.get("OTP_EMAIL_MAX_PER_HOUR") or 3)
    OTP_IP_MAX_PER_HOUR = int(os.environ.get("OTP_IP_MAX_PER_HOUR") or 10)

    FIREWALL_ENABLED = _env_bool("FIREWALL_ENABLED")
    IPTABLES_PATH = os.environ.get("IPTABLES_PATH") or "iptables"
    FIREWALL_COMMAND_TIMEOUT = float(os.environ.get("FIREWALL_COMMAND_TIMEOUT") or 5)

    # Behind a reverse proxy (X-Forwarded-For carries the client IP)
    TRUST_PROXY = _env_bool("TRUST_PROXY")


class TestConfig(Config):
    """In-memory database, suppressed mail, firewall disabled."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    MAIL_SERVER = "localhost"
    MAIL_USERNAME = "portal@example.com"
    MAIL_DEFAULT_SENDER = "portal@example.com"
    MAIL_SUPPRESS_SEND = True
    MAIL_SEND_TIMEOUT_SECONDS = 5
    PORTAL_URL = "https://portal.test/portal"
    VENUE_INFO_URL = None
    IDENTITY_SCHEME = "ipmac"
    LEASE_FILE_PATH = None
    FIREWALL_ENABLED = False
    TRUST_PROXY = False
