"""
Blueprint registry.

Registration order is fixed: public pages first, admin last. Operators can
switch individual blueprints off by name and print the route table:

  DISABLE_BPS=blog          # comma-separated blueprint names
  ROUTE_SUMMARY=1           # also on when app.debug
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from importlib import import_module
from typing import Optional

from flask import Blueprint, Flask

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlueprintSpec:
    name: str
    module: str
    prefix: Optional[str] = None


BLUEPRINTS: tuple[BlueprintSpec, ...] = (
    BlueprintSpec("pages", "avrnpo.blueprints.pages"),
    BlueprintSpec("donations", "avrnpo.blueprints.donations"),
    BlueprintSpec("auth", "avrnpo.blueprints.auth"),
    BlueprintSpec("account", "avrnpo.blueprints.account"),
    BlueprintSpec("blog", "avrnpo.blueprints.blog", "/blog"),
    BlueprintSpec("admin", "avrnpo.blueprints.admin", "/admin"),
)

# Never switched off: the donate flow and its webhook depend on them.
_REQUIRED = {"pages", "donations"}


def _parse_disabled(env_value: Optional[str]) -> set[str]:
    return {p.strip().lower() for p in (env_value or "").split(",") if p.strip()}


def _route_summary(app: Flask) -> None:
    want = bool(app.debug) or os.getenv("ROUTE_SUMMARY", "0").strip().lower() in {"1", "true", "yes", "on"}
    if not want:
        return

    lines: list[str] = []
    for rule in sorted(app.url_map.iter_rules(), key=lambda r: (str(r.rule), r.endpoint)):
        methods = ",".join(
            sorted(m for m in (rule.methods or set()) if m in {"GET", "POST", "PUT", "PATCH", "DELETE"})
        )
        lines.append(f"{rule.rule:<44} {methods:<16} -> {rule.endpoint}")
    if lines:
        app.logger.info("Routes:\n%s", "\n".join(lines))


def register_blueprints(app: Flask) -> None:
    disabled = _parse_disabled(os.getenv("DISABLE_BPS")) - _REQUIRED

    for entry in BLUEPRINTS:
        if entry.name in disabled:
            app.logger.info("Blueprint disabled via env: %s", entry.name)
            continue
        if entry.name in app.blueprints:
            continue

        bp = getattr(import_module(entry.module), "bp")
        if not isinstance(bp, Blueprint):
            raise TypeError(f"{entry.module}.bp is not a Blueprint")
        app.register_blueprint(bp, url_prefix=entry.prefix)
        app.logger.debug("Registered blueprint: %-10s prefix=%s", bp.name, entry.prefix or "/")

    _route_summary(app)
    app.logger.info("Blueprint registration complete. (%d total)", len(app.blueprints))
