#!/usr/bin/env python3
"""
Local launcher.

  ./run.py                          development server with reloader
  ./run.py --env production --no-reload
  ./run.py --config avrnpo.config.TestingConfig
"""

from __future__ import annotations

import argparse
import logging
import os

log = logging.getLogger("avrnpo.run")

_CONFIG_ALIASES = {
    "dev": "avrnpo.config.DevelopmentConfig",
    "development": "avrnpo.config.DevelopmentConfig",
    "test": "avrnpo.config.TestingConfig",
    "testing": "avrnpo.config.TestingConfig",
    "prod": "avrnpo.config.ProductionConfig",
    "production": "avrnpo.config.ProductionConfig",
}


def normalize_config_path(value: str | None, *, env_hint: str | None = None) -> str:
    """Alias or dotted path -> dotted config path."""
    raw = (value or "").strip()
    if raw:
        return _CONFIG_ALIASES.get(raw.lower(), raw)
    return _CONFIG_ALIASES.get((env_hint or "development").lower(), _CONFIG_ALIASES["development"])


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run the American Veterans Rebuilding site.")
    p.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    p.add_argument("--port", type=int, default=int(os.getenv("PORT", "5000")))
    p.add_argument("--env", choices=["development", "testing", "production"], default=os.getenv("ENV"))
    p.add_argument("--config", help="Dotted config path or alias (dev/test/prod)")
    p.add_argument("--debug", action=argparse.BooleanOptionalAction, default=None,
                   help="Force debug on/off (default: on outside production).")
    p.add_argument("--no-reload", action="store_true", help="Disable the Werkzeug reloader.")
    return p.parse_args()


def main() -> None:
    args = parse_args()
    env = (args.env or "development").lower()
    os.environ["ENV"] = env

    from avrnpo import create_app

    app = create_app(normalize_config_path(args.config, env_hint=env))
    debug = args.debug if args.debug is not None else env != "production"
    if env == "production" and debug:
        log.warning("Debug mode requested in production; refusing.")
        debug = False

    app.run(host=args.host, port=args.port, debug=debug, use_reloader=debug and not args.no_reload)


if __name__ == "__main__":
    main()
