# avrnpo/__init__.py
# American Veterans Rebuilding: Flask app factory
# - config by class or dotted path, production guardrails in ProductionConfig.init_app
# - CSRF guard + Helcim webhook verifier constructed per app
# - JSON error shape for /api, HTML error page for the site

from __future__ import annotations

import logging
import os
import time
from decimal import Decimal
from typing import Any, Optional, Type, Union
from uuid import uuid4

import sentry_sdk
from dotenv import load_dotenv
from flask import Flask, current_app, g, request
from flask_compress import Compress
from flask_talisman import Talisman
from sentry_sdk.integrations.flask import FlaskIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
from werkzeug.exceptions import HTTPException, InternalServerError
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.utils import import_string

# never override real env vars in prod
load_dotenv(override=False)

from avrnpo.extensions import babel, db, login_manager, mail, migrate  # noqa: E402
from avrnpo.responses import json_error, wants_json_response  # noqa: E402
from avrnpo.security import install_csrf_guard, install_security_headers  # noqa: E402
from avrnpo.security.webhook import EXTENSION_KEY as WEBHOOK_EXTENSION_KEY  # noqa: E402
from avrnpo.security.webhook import WebhookVerifier  # noqa: E402
from avrnpo.services.helcim import EXTENSION_KEY as HELCIM_EXTENSION_KEY  # noqa: E402
from avrnpo.services.helcim import build_helcim_client  # noqa: E402

ConfigLike = Union[str, Type[Any]]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------
def _env_bool(name: str) -> Optional[bool]:
    v = os.getenv(name)
    if v is None:
        return None
    s = str(v).strip().lower()
    if s in {"1", "true", "t", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "f", "no", "n", "off"}:
        return False
    return None


def _env_mode(app: Optional[Flask] = None) -> str:
    """
    Environment mode.
    Priority: app.config["ENV"], then APP_ENV / ENV / FLASK_ENV, else "development".
    """
    if app is not None:
        v = str(app.config.get("ENV") or "").strip().lower()
        if v and v != "base":
            return v

    for key in ("APP_ENV", "ENV", "FLASK_ENV"):
        val = (os.getenv(key) or "").strip().lower()
        if val:
            if val == "prod":
                return "production"
            if val == "dev":
                return "development"
            return val

    return "development"


def _resolve_config(target: Optional[ConfigLike]) -> Type[Any]:
    """
    Config class from an explicit argument, FLASK_CONFIG, or the env mode.
    Dotted paths are imported.
    """
    if target is None:
        target = (os.getenv("FLASK_CONFIG") or "").strip() or None
    if target is None:
        env = _env_mode(None)
        target = {
            "production": "avrnpo.config.ProductionConfig",
            "testing": "avrnpo.config.TestingConfig",
        }.get(env, "avrnpo.config.DevelopmentConfig")
    if isinstance(target, str):
        return import_string(target)
    return target


def _is_prod(app: Flask) -> bool:
    return _env_mode(app) == "production"


# -----------------------------------------------------------------------------
# Logging with request_id
# -----------------------------------------------------------------------------
class _RequestIDFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        record.request_id = getattr(g, "request_id", "-") if g else "-"
        return True


def _configure_logging(app: Flask) -> None:
    fmt = "%(asctime)s [%(levelname)s] %(name)s [rid=%(request_id)s]: %(message)s"
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt))
        handler.addFilter(_RequestIDFilter())
        root.addHandler(handler)
    else:
        for h in root.handlers:
            if not any(isinstance(f, _RequestIDFilter) for f in h.filters):
                h.addFilter(_RequestIDFilter())

    root.setLevel(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    logging.getLogger("werkzeug").setLevel(str(app.config.get("WERKZEUG_LOG_LEVEL", "WARNING")).upper())
    app.logger.info("Loaded config: ENV=%s DEBUG=%s", app.config.get("ENV", "?"), app.debug)


# -----------------------------------------------------------------------------
# Jinja helpers
# -----------------------------------------------------------------------------
def _register_jinja_helpers(app: Flask) -> None:
    def money(v: Any) -> str:
        try:
            return "${:,.2f}".format(Decimal(str(v)))
        except ArithmeticError:
            return "$0.00"

    app.jinja_env.filters["usd"] = money

    @app.context_processor
    def _site_defaults():
        return {
            "organization_name": app.config.get("ORGANIZATION_NAME", ""),
            "contact_email": app.config.get("CONTACT_EMAIL", ""),
        }


# -----------------------------------------------------------------------------
# ProxyFix (reverse proxy)
# -----------------------------------------------------------------------------
def _apply_proxyfix(app: Flask) -> None:
    trust = _env_bool("TRUST_PROXY")
    if trust is None:
        trust = bool(app.config.get("TRUST_PROXY", False))
    if not trust:
        return
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=1)
    app.logger.info("ProxyFix enabled (trusting X-Forwarded-* headers).")


# -----------------------------------------------------------------------------
# Integrations
# -----------------------------------------------------------------------------
def _init_sentry(app: Flask) -> None:
    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn:
        return
    sentry_sdk.init(
        dsn=dsn,
        integrations=[
            FlaskIntegration(),
            LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        send_default_pii=False,
        environment=app.config.get("ENV", "development"),
        release=os.getenv("GIT_COMMIT"),
    )
    app.logger.info("Sentry initialized")


def _init_talisman(app: Flask) -> None:
    # CSP is emitted by avrnpo.security.headers; Talisman handles HTTPS + HSTS.
    if not _is_prod(app):
        return
    Talisman(app, content_security_policy=None)


def _maybe_create_sqlite_tables(app: Flask) -> None:
    uri = (app.config.get("SQLALCHEMY_DATABASE_URI") or "").strip()
    if not uri.startswith("sqlite"):
        return
    if app.config.get("AUTO_CREATE_SQLITE", True) is not True:
        return
    with app.app_context():
        db.create_all()


def _init_login(app: Flask) -> None:
    from avrnpo.models import User

    login_manager.init_app(app)
    login_manager.login_view = "auth.new"
    login_manager.login_message = "Please sign in to continue."
    login_manager.login_message_category = "warning"

    @login_manager.user_loader
    def _load_user(user_id: str):
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None


def _select_locale() -> Optional[str]:
    return request.accept_languages.best_match(current_app.config.get("LANGUAGES") or ["en"])


# -----------------------------------------------------------------------------
# Request lifecycle + errors
# -----------------------------------------------------------------------------
def _register_request_lifecycle(app: Flask) -> None:
    @app.before_request
    def _bootstrap_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g._start_ts = time.perf_counter()

    @app.after_request
    def _attach_request_headers(resp):
        resp.headers["X-Request-ID"] = getattr(g, "request_id", "-")
        start = getattr(g, "_start_ts", None)
        if start:
            resp.headers["X-Response-Time-ms"] = str(int((time.perf_counter() - start) * 1000))
        return resp


def _render_error(code: int, message: str):
    from avrnpo.views import ErrorPage, render_page

    return render_page("errors.html", ErrorPage(title=f"Error {code}", code=code, message=message), code)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(HTTPException)
    def _http_err(err: HTTPException):
        if err.code is None or err.code < 400:
            return err
        if wants_json_response():
            return json_error(err.description or err.name, err.code)
        return _render_error(err.code, err.description or err.name)

    @app.errorhandler(Exception)
    def _uncaught(err: Exception):
        app.logger.exception("Unhandled error")
        db.session.rollback()
        if wants_json_response():
            return json_error("Internal Server Error", 500)
        return _render_error(500, InternalServerError.description)


# -----------------------------------------------------------------------------
# Health
# -----------------------------------------------------------------------------
def _register_health_endpoints(app: Flask) -> None:
    @app.get("/healthz")
    def _healthz():
        return {
            "status": "ok",
            "env": app.config.get("ENV", "unknown"),
            "request_id": getattr(g, "request_id", "-"),
        }


# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------
def create_app(config_class: Optional[ConfigLike] = None) -> Flask:
    app = Flask(__name__)

    # ---- Config
    cfg = _resolve_config(config_class)
    app.config.from_object(cfg)
    if hasattr(cfg, "init_app"):
        cfg.init_app(app)
    app.config["ENV"] = _env_mode(app)
    app.url_map.strict_slashes = False

    # ---- Proxy / logging / jinja
    _apply_proxyfix(app)
    _configure_logging(app)
    _register_request_lifecycle(app)
    _register_jinja_helpers(app)

    # ---- Integrations
    _init_sentry(app)
    _init_talisman(app)

    # ---- Core extensions
    install_csrf_guard(app)
    db.init_app(app)
    migrate.init_app(app, db)
    mail.init_app(app)
    Compress(app)
    babel.init_app(app, locale_selector=_select_locale)
    _init_login(app)
    install_security_headers(app)

    # ---- Per-app collaborators
    app.extensions[WEBHOOK_EXTENSION_KEY] = WebhookVerifier(app.config.get("HELCIM_WEBHOOK_VERIFIER_TOKEN"))
    app.extensions[HELCIM_EXTENSION_KEY] = build_helcim_client(app.config)
    if not app.extensions[WEBHOOK_EXTENSION_KEY].configured:
        app.logger.warning("HELCIM_WEBHOOK_VERIFIER_TOKEN not set; all webhooks will be rejected.")

    # signal receivers (donation receipts)
    from avrnpo.services import mailer  # noqa: F401

    _maybe_create_sqlite_tables(app)

    # ---- Routes
    _register_error_handlers(app)
    _register_health_endpoints(app)

    from avrnpo.blueprints import register_blueprints
    from avrnpo.cli import register_cli

    register_blueprints(app)
    register_cli(app)

    app.logger.info("App ready (env=%s)", app.config.get("ENV"))
    return app


__all__ = ["create_app"]
