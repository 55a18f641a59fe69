# avrnpo/security/headers.py
# Response hardening: baseline security headers + nonce-based CSP.
# - Production: Content-Security-Policy enforced
# - Dev/Testing: CSP off unless AVR_CSP_ENABLE_IN_DEV=1

from __future__ import annotations

import os
import secrets
from typing import Iterable, List

from flask import Flask, Response, g

_TRUTHY = {"1", "true", "yes", "y", "on"}

# HelcimPay.js renders its checkout modal in an iframe served from these hosts.
HELCIM_HOSTS = ("https://secure.helcim.app", "https://api.helcim.com", "https://myhelcim.com")


def _truthy(v: str) -> bool:
    return (v or "").strip().lower() in _TRUTHY


def _get_nonce() -> str:
    n = getattr(g, "csp_nonce", "") or ""
    if not n:
        n = secrets.token_urlsafe(16)
        g.csp_nonce = n
    return n


def _is_prod(app: Flask) -> bool:
    return str(app.config.get("ENV") or "").strip().lower() in {"prod", "production"}


def _csv_env(name: str) -> List[str]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return []
    return [p.strip() for p in raw.split(",") if p.strip()]


def _uniq(parts: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for p in parts:
        p = (p or "").strip()
        if not p or p in seen:
            continue
        seen.add(p)
        out.append(p)
    return out


def build_csp(app: Flask, nonce: str) -> str:
    script_src = _uniq(["'self'", f"'nonce-{nonce}'", *HELCIM_HOSTS, *_csv_env("AVR_CSP_EXTRA_SCRIPT_SRC")])
    style_src = _uniq(["'self'", f"'nonce-{nonce}'", *_csv_env("AVR_CSP_EXTRA_STYLE_SRC")])
    connect_src = _uniq(["'self'", *HELCIM_HOSTS, *_csv_env("AVR_CSP_EXTRA_CONNECT_SRC")])
    img_src = _uniq(["'self'", "data:", "https:"])
    frame_src = _uniq([*HELCIM_HOSTS, *_csv_env("AVR_CSP_EXTRA_FRAME_SRC")])

    directives = [
        "default-src 'self'",
        "base-uri 'self'",
        "object-src 'none'",
        "frame-ancestors 'none'",
        "form-action 'self'",
        f"script-src {' '.join(script_src)}",
        f"style-src {' '.join(style_src)}",
        f"connect-src {' '.join(connect_src)}",
        f"img-src {' '.join(img_src)}",
        f"frame-src {' '.join(frame_src)}",
    ]
    if _is_prod(app):
        directives.append("upgrade-insecure-requests")
    return "; ".join(directives) + ";"


def apply_security_headers(app: Flask, resp: Response) -> Response:
    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    resp.headers.setdefault("X-Frame-Options", "DENY")
    resp.headers.setdefault("Permissions-Policy", "camera=(), microphone=(), geolocation=(), usb=()")

    if _is_prod(app):
        resp.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return resp


def install_security_headers(app: Flask) -> None:
    if app.extensions.get("avr_security_headers") is True:
        return
    app.extensions["avr_security_headers"] = True

    @app.context_processor
    def _provide_nonce():
        return {"csp_nonce": _get_nonce}

    @app.after_request
    def _security_after(resp: Response):
        resp = apply_security_headers(app, resp)

        if _is_prod(app) or _truthy(os.getenv("AVR_CSP_ENABLE_IN_DEV", "0")):
            header = (
                "Content-Security-Policy-Report-Only"
                if _truthy(os.getenv("AVR_CSP_REPORT_ONLY", "0"))
                else "Content-Security-Policy"
            )
            resp.headers[header] = build_csp(app, _get_nonce())
        return resp
