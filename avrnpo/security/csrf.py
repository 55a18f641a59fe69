"""
CSRF guard for every state-changing request.

Tokens come from Flask-WTF: a random secret is kept in the signed session
cookie and forms carry an itsdangerous-signed copy of it. The guard accepts a
POST/PUT/PATCH/DELETE only when the submitted copy (form field
``authenticity_token`` or header ``X-CSRF-Token``) verifies against the secret
bound to the caller's own session. GET/HEAD/OPTIONS are never checked.

Rejections are always a bare 403; the underlying reason is only logged.
"""

from __future__ import annotations

import logging
from typing import Optional

from flask import Flask, Response, current_app, request
from flask_wtf.csrf import CSRFError, generate_csrf, validate_csrf
from markupsafe import Markup, escape
from werkzeug.exceptions import Forbidden
from wtforms.validators import ValidationError

from avrnpo.extensions import csrf

log = logging.getLogger(__name__)

TOKEN_HEADER = "X-CSRF-Token"


class TokenMissingOrMismatch(Forbidden):
    description = "Request could not be verified."


def field_name() -> str:
    return str(current_app.config.get("WTF_CSRF_FIELD_NAME", "authenticity_token"))


def issue_token() -> str:
    """Return the form token for the current session, creating the session secret if needed."""
    return generate_csrf()


def validate_token(token: Optional[str]) -> bool:
    """
    Check ``token`` against the current session without raising.
    Used by callers that need a yes/no outside the request hook.
    """
    if not token:
        return False
    try:
        validate_csrf(token)
    except ValidationError:
        return False
    return True


def hidden_field() -> Markup:
    name = escape(field_name())
    return Markup(f'<input type="hidden" name="{name}" value="{escape(issue_token())}">')


def meta_tag() -> Markup:
    return Markup(f'<meta name="csrf-param" content="{escape(field_name())}">'
                  f'<meta name="csrf-token" content="{escape(issue_token())}">')


def install_csrf_guard(app: Flask) -> None:
    """
    Wire the guard into ``app``: request hook, 403 translation, template
    helpers and the token response header on HTML pages.
    """
    csrf.init_app(app)

    app.jinja_env.globals["authenticity_token"] = issue_token
    app.jinja_env.globals["csrf_field"] = hidden_field
    app.jinja_env.globals["csrf_meta_tags"] = meta_tag

    @app.errorhandler(CSRFError)
    def _csrf_rejected(err: CSRFError):
        log.warning(
            "CSRF rejection: %s %s (%s)",
            request.method,
            request.path,
            err.description,
        )
        return app.handle_http_exception(TokenMissingOrMismatch())

    @app.after_request
    def _expose_token_header(resp: Response) -> Response:
        if request.method == "GET" and resp.mimetype == "text/html" and resp.status_code < 400:
            resp.headers.setdefault(TOKEN_HEADER, issue_token())
        return resp


__all__ = [
    "TOKEN_HEADER",
    "TokenMissingOrMismatch",
    "field_name",
    "issue_token",
    "validate_token",
    "hidden_field",
    "meta_tag",
    "install_csrf_guard",
]
