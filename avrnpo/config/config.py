# avrnpo/config/config.py
# Canonical AVR site configuration (env-first, production-safe)

from __future__ import annotations

import os
from datetime import timedelta
from typing import Optional


# ----------------------------
# Env helpers
# ----------------------------
_TRUTHY = {"1", "true", "yes", "on", "y"}
_FALSY = {"0", "false", "no", "off", "n"}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    if v is None:
        return default
    s = str(v).strip()
    return s if s else default


def _bool(name: str, default: bool = False) -> bool:
    v = _env(name)
    if v is None:
        return default
    s = v.strip().lower()
    if s in _TRUTHY:
        return True
    if s in _FALSY:
        return False
    return default


def _int(name: str, default: int) -> int:
    v = _env(name)
    if v is None:
        return default
    try:
        return int(str(v).strip())
    except ValueError:
        return default


def _clean_base_url(v: Optional[str]) -> str:
    return (v or "").strip().rstrip("/")


# ----------------------------
# Config classes
# ----------------------------
class BaseConfig:
    """
    Env-first config:
    - all important settings can be overridden via environment variables
    - safe defaults for local dev
    - no default for any payment or webhook secret
    """

    ENV = (_env("APP_ENV") or _env("ENV") or _env("FLASK_ENV") or "base").strip().lower()

    DEBUG = _bool("FLASK_DEBUG", False)
    TESTING = _bool("TESTING", False)

    LOG_LEVEL = _env("LOG_LEVEL", "INFO")
    WERKZEUG_LOG_LEVEL = _env("WERKZEUG_LOG_LEVEL", "WARNING")

    # Security
    SECRET_KEY = _env("SESSION_SECRET") or _env("SECRET_KEY", "dev-change-me")

    PUBLIC_BASE_URL = _clean_base_url(_env("PUBLIC_BASE_URL", ""))
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", False)

    # Cookies
    SESSION_COOKIE_NAME = _env("SESSION_COOKIE_NAME", "_avrnpo.org_session")
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = _env("SESSION_COOKIE_SAMESITE", "Lax")
    SESSION_COOKIE_SECURE = True

    REMEMBER_COOKIE_HTTPONLY = True
    REMEMBER_COOKIE_SAMESITE = _env("REMEMBER_COOKIE_SAMESITE", "Lax")
    REMEMBER_COOKIE_SECURE = True

    PERMANENT_SESSION_LIFETIME = timedelta(days=_int("SESSION_DAYS", 14))

    # CSRF: the token lives as long as the session, submitted as a form
    # field or a request header on state-changing methods.
    WTF_CSRF_ENABLED = True
    WTF_CSRF_FIELD_NAME = "authenticity_token"
    WTF_CSRF_HEADERS = ["X-CSRF-Token", "X-CSRFToken"]
    WTF_CSRF_METHODS = ["POST", "PUT", "PATCH", "DELETE"]
    WTF_CSRF_TIME_LIMIT = None

    # SQLAlchemy
    SQLALCHEMY_DATABASE_URI = _env("DATABASE_URL") or _env("SQLALCHEMY_DATABASE_URI", "sqlite:///avrnpo-dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}
    AUTO_CREATE_SQLITE = _bool("AUTO_CREATE_SQLITE", True)

    # Helcim
    HELCIM_PRIVATE_API_KEY = _env("HELCIM_PRIVATE_API_KEY")
    HELCIM_API_BASE_URL = _clean_base_url(_env("HELCIM_API_BASE_URL", "https://api.helcim.com/v2"))
    HELCIM_CURRENCY = (_env("HELCIM_CURRENCY", "USD") or "USD").upper()
    HELCIM_LIVE_TESTING = _bool("HELCIM_LIVE_TESTING", False)
    HELCIM_TIMEOUT_SECONDS = _int("HELCIM_TIMEOUT_SECONDS", 30)
    HELCIM_WEBHOOK_VERIFIER_TOKEN = _env("HELCIM_WEBHOOK_VERIFIER_TOKEN")

    # Mail
    MAIL_SERVER = _env("MAIL_SERVER", _env("SMTP_HOST"))
    MAIL_PORT = _int("MAIL_PORT", _int("SMTP_PORT", 587))
    MAIL_USE_TLS = _bool("MAIL_USE_TLS", True)
    MAIL_USERNAME = _env("MAIL_USERNAME", _env("SMTP_USERNAME"))
    MAIL_PASSWORD = _env("MAIL_PASSWORD", _env("SMTP_PASSWORD"))
    MAIL_DEFAULT_SENDER = _env("MAIL_DEFAULT_SENDER", _env("FROM_EMAIL", "noreply@avrnpo.org"))
    MAIL_ENABLED = _bool("MAIL_ENABLED", bool(_env("MAIL_SERVER") or _env("SMTP_HOST")))
    MAIL_ASYNC = _bool("MAIL_ASYNC", True)
    CONTACT_EMAIL = _env("CONTACT_EMAIL", "michael@avrnpo.org")

    # Organization (receipts)
    ORGANIZATION_NAME = _env("ORGANIZATION_NAME", "American Veterans Rebuilding")
    ORGANIZATION_EIN = _env("ORGANIZATION_EIN", "")
    ORGANIZATION_ADDRESS = _env("ORGANIZATION_ADDRESS", "")

    # i18n
    BABEL_DEFAULT_LOCALE = _env("BABEL_DEFAULT_LOCALE", "en")
    LANGUAGES = ["en", "es"]

    POSTS_PER_PAGE = _int("POSTS_PER_PAGE", 10)
    ADMIN_PER_PAGE = _int("ADMIN_PER_PAGE", 25)

    @classmethod
    def init_app(cls, app) -> None:
        """
        Boot hardening hook, called by create_app() after from_object().
        """
        uri = str(app.config.get("SQLALCHEMY_DATABASE_URI") or "")

        if uri.startswith("sqlite:"):
            opts = dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {})
            connect_args = dict(opts.get("connect_args") or {})
            connect_args.setdefault("check_same_thread", False)
            opts["connect_args"] = connect_args
            opts.setdefault("pool_pre_ping", True)
            app.config["SQLALCHEMY_ENGINE_OPTIONS"] = opts

        # Heroku-style URLs
        if uri.startswith("postgres://"):
            app.config["SQLALCHEMY_DATABASE_URI"] = "postgresql://" + uri[len("postgres://"):]


class DevelopmentConfig(BaseConfig):
    ENV = "development"
    DEBUG = True

    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "http")
    LOG_LEVEL = _env("LOG_LEVEL", "DEBUG")


class TestingConfig(BaseConfig):
    ENV = "testing"
    TESTING = True
    DEBUG = False

    SECRET_KEY = "testing-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SESSION_COOKIE_SECURE = False
    REMEMBER_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = "http"

    # CSRF stays on: tests drive the real token flow.
    WTF_CSRF_ENABLED = True

    # Explicitly unset so a developer shell cannot leak real values into tests.
    HELCIM_PRIVATE_API_KEY = None
    HELCIM_WEBHOOK_VERIFIER_TOKEN = None

    MAIL_ENABLED = True
    MAIL_SUPPRESS_SEND = True
    MAIL_ASYNC = False
    LOG_LEVEL = "WARNING"


class ProductionConfig(BaseConfig):
    ENV = "production"
    DEBUG = False

    SESSION_COOKIE_SECURE = True
    REMEMBER_COOKIE_SECURE = True
    PREFERRED_URL_SCHEME = _env("PREFERRED_URL_SCHEME", "https")
    TRUST_PROXY = _bool("TRUST_PROXY", True)

    @classmethod
    def init_app(cls, app) -> None:
        super().init_app(app)

        # ---- Production guardrails (fail fast) ----
        sk = app.config.get("SECRET_KEY")
        if not sk or sk == "dev-change-me":
            raise RuntimeError("SESSION_SECRET / SECRET_KEY must be set to a strong random value in production.")

        if not (app.config.get("HELCIM_WEBHOOK_VERIFIER_TOKEN") or "").strip():
            raise RuntimeError("HELCIM_WEBHOOK_VERIFIER_TOKEN must be set in production.")

        if not (app.config.get("HELCIM_PRIVATE_API_KEY") or "").strip():
            raise RuntimeError("HELCIM_PRIVATE_API_KEY must be set in production.")

        base = (app.config.get("PUBLIC_BASE_URL") or "").strip()
        if base and base.startswith("http://"):
            raise RuntimeError("PUBLIC_BASE_URL must be https:// in production.")

        if _bool("FLASK_DEBUG", False):
            raise RuntimeError("FLASK_DEBUG must be 0 in production.")
