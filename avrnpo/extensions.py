import atexit
import logging
import os
import time
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from blinker import Namespace
from flask_babel import Babel
from flask_login import LoginManager
from flask_mail import Mail, Message
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf.csrf import CSRFProtect
from jinja2 import Environment, FileSystemLoader, select_autoescape

log = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Core singletons
# ─────────────────────────────────────────────────────────────
db = SQLAlchemy()
migrate = Migrate()
mail = Mail()
login_manager = LoginManager()
babel = Babel()
csrf = CSRFProtect()


# ─────────────────────────────────────────────────────────────
# Background tasks + clean shutdown
# ─────────────────────────────────────────────────────────────
_BG_MAX_WORKERS = int(os.getenv("BG_MAX_WORKERS", "4"))
_EXECUTOR = ThreadPoolExecutor(max_workers=_BG_MAX_WORKERS)


def run_bg(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
    return _EXECUTOR.submit(func, *args, **kwargs)


def run_inline(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
    """Run ``func`` now and hand back an already-resolved Future."""
    fut: Future = Future()
    try:
        fut.set_result(func(*args, **kwargs))
    except Exception as exc:
        fut.set_exception(exc)
    return fut


@atexit.register
def _shutdown_executor() -> None:
    _EXECUTOR.shutdown(wait=False, cancel_futures=True)


# ─────────────────────────────────────────────────────────────
# DB helpers
# ─────────────────────────────────────────────────────────────
def commit_or_rollback() -> None:
    try:
        db.session.commit()
    except Exception:
        log.error("DB commit failed; rolled back", exc_info=True)
        db.session.rollback()
        raise


# ─────────────────────────────────────────────────────────────
# Email helper
# ─────────────────────────────────────────────────────────────
def get_mail_env(templates_dir: Optional[str] = None) -> Environment:
    """
    Jinja environment for email bodies.
    Default path: avrnpo/templates/emails
    """
    if not templates_dir:
        templates_dir = str(Path(__file__).resolve().parent / "templates" / "emails")
    return Environment(loader=FileSystemLoader(templates_dir), autoescape=select_autoescape(["html", "xml"]))


def send_email_async(
    app: Any,
    subject: str,
    recipients: List[str],
    *,
    html_template: Optional[str] = None,
    text_template: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
    sender: Optional[str] = None,
    reply_to: Optional[str] = None,
    max_retries: int = 2,
    retry_backoff: float = 0.5,
) -> Future:
    """
    Render and send a message off the request thread.

    With ``MAIL_ASYNC`` disabled (tests) the job runs inline, so callers can
    rely on ``mail.record_messages()``.
    """
    ctx = context or {}
    env = get_mail_env()

    def _job() -> bool:
        with app.app_context():
            logger = getattr(app, "logger", log)

            try:
                html = env.get_template(html_template).render(**ctx) if html_template else None
                body = env.get_template(text_template).render(**ctx) if text_template else None

                msg = Message(
                    subject=subject,
                    recipients=recipients,
                    sender=sender or app.config.get("MAIL_DEFAULT_SENDER"),
                    reply_to=reply_to,
                    html=html,
                    body=body,
                )

                attempts = 0
                while True:
                    try:
                        mail.send(msg)
                        return True
                    except Exception as e:
                        attempts += 1
                        if attempts > max_retries:
                            raise
                        logger.warning("Mail send failed (attempt %s/%s): %s", attempts, max_retries, e)
                        time.sleep(float(retry_backoff) * attempts)

            except Exception as e:
                logger.error("Email send permanently failed: %s", e, exc_info=True)
                return False

    if app.config.get("MAIL_ASYNC", True):
        return run_bg(_job)
    return run_inline(_job)


# ─────────────────────────────────────────────────────────────
# Signals
# ─────────────────────────────────────────────────────────────
_signals = Namespace()
donation_completed = _signals.signal("donation-completed")
admin_action = _signals.signal("admin-action")


__all__ = [
    "db",
    "migrate",
    "mail",
    "login_manager",
    "babel",
    "csrf",
    "run_bg",
    "run_inline",
    "commit_or_rollback",
    "send_email_async",
    "donation_completed",
    "admin_action",
]
