from __future__ import annotations

from typing import Any, Dict

from flask import g, jsonify, request


def json_response(payload: Dict[str, Any], status: int = 200):
    resp = jsonify(payload)
    resp.status_code = int(status)
    resp.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate, max-age=0")
    resp.headers.setdefault("Pragma", "no-cache")
    return resp


def json_ok(payload: Dict[str, Any], status: int = 200):
    payload.setdefault("ok", True)
    return json_response(payload, status)


def json_error(message: str, status: int, **extra: Any):
    payload: Dict[str, Any] = {
        "ok": False,
        "error": {"code": int(status), "message": str(message), "request_id": getattr(g, "request_id", "-")},
    }
    if extra:
        payload["error"].update(extra)
    return json_response(payload, status)


def wants_json_response() -> bool:
    path = request.path or ""
    if path.startswith("/api/"):
        return True
    accept = (request.headers.get("Accept") or "").lower()
    return ("application/json" in accept and "text/html" not in accept) or bool(request.is_json)
