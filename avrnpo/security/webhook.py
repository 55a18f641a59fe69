"""
Helcim webhook signature verification.

Helcim signs each delivery with HMAC-SHA256 over the raw request body and
sends ``X-Helcim-Signature: sha256=<hex>``. A delivery is trusted only when
the digest recomputed with our shared secret matches in constant time.

No secret configured means every delivery is rejected.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import dataclass
from typing import Optional, Union

from flask import current_app
from werkzeug.exceptions import Forbidden

log = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Helcim-Signature"
SIGNATURE_PREFIX = "sha256="
EXTENSION_KEY = "avr_webhook_verifier"


class SignatureInvalid(Forbidden):
    description = "Webhook signature could not be verified."


def _as_bytes(v: Union[str, bytes]) -> bytes:
    return v if isinstance(v, bytes) else v.encode("utf-8")


def compute_signature(secret: Union[str, bytes], body: bytes) -> str:
    """Hex HMAC-SHA256 of ``body`` keyed by ``secret``."""
    return hmac.new(_as_bytes(secret), body, hashlib.sha256).hexdigest()


@dataclass(frozen=True)
class WebhookVerifier:
    """Holds the shared secret for the life of the process."""

    secret: Optional[str]

    @property
    def configured(self) -> bool:
        return bool((self.secret or "").strip())

    def sign(self, body: bytes) -> str:
        """Header value a correct sender would attach to ``body``."""
        if not self.configured:
            raise RuntimeError("webhook secret not configured")
        return SIGNATURE_PREFIX + compute_signature(self.secret, body)  # type: ignore[arg-type]

    def verify(self, body: bytes, header: Optional[str]) -> bool:
        if not self.configured:
            return False

        supplied = (header or "").strip()
        if supplied[: len(SIGNATURE_PREFIX)].lower() == SIGNATURE_PREFIX:
            supplied = supplied[len(SIGNATURE_PREFIX):]
        supplied = supplied.strip().lower()
        if not supplied:
            return False

        expected = compute_signature(self.secret, body)  # type: ignore[arg-type]
        return hmac.compare_digest(expected.encode("ascii"), supplied.encode("ascii", errors="replace"))

    def require(self, body: bytes, header: Optional[str]) -> None:
        """Raise SignatureInvalid unless ``header`` signs ``body``."""
        if not self.configured:
            log.error("Webhook rejected: HELCIM_WEBHOOK_VERIFIER_TOKEN is not configured")
            raise SignatureInvalid()
        if not header:
            log.warning("Webhook rejected: missing %s header", SIGNATURE_HEADER)
            raise SignatureInvalid()
        if not self.verify(body, header):
            log.warning("Webhook rejected: signature mismatch (%d byte body)", len(body))
            raise SignatureInvalid()


def get_webhook_verifier() -> WebhookVerifier:
    return current_app.extensions[EXTENSION_KEY]


__all__ = [
    "SIGNATURE_HEADER",
    "SIGNATURE_PREFIX",
    "SignatureInvalid",
    "WebhookVerifier",
    "compute_signature",
    "get_webhook_verifier",
]
