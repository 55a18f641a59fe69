from avrnpo.security.csrf import TokenMissingOrMismatch, install_csrf_guard, issue_token, validate_token
from avrnpo.security.headers import install_security_headers
from avrnpo.security.webhook import SignatureInvalid, WebhookVerifier, compute_signature, get_webhook_verifier

__all__ = [
    "TokenMissingOrMismatch",
    "SignatureInvalid",
    "WebhookVerifier",
    "compute_signature",
    "get_webhook_verifier",
    "install_csrf_guard",
    "install_security_headers",
    "issue_token",
    "validate_token",
]
