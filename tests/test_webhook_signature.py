import hashlib
import hmac

import pytest

from avrnpo.security.webhook import SignatureInvalid, WebhookVerifier, compute_signature

SECRET = "test_verifier_token"
BODY = b'{"test":"data"}'


def _hex(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def test_compute_signature_is_hmac_sha256_hex():
    assert compute_signature(SECRET, BODY) == _hex(SECRET, BODY)
    assert len(compute_signature(SECRET, BODY)) == 64


def test_correct_signature_is_accepted():
    verifier = WebhookVerifier(SECRET)
    header = "sha256=" + _hex(SECRET, BODY)

    assert verifier.verify(BODY, header) is True
    verifier.require(BODY, header)


def test_wrong_signature_is_rejected_with_403():
    verifier = WebhookVerifier(SECRET)

    assert verifier.verify(BODY, "sha256=deadbeef") is False
    with pytest.raises(SignatureInvalid) as exc:
        verifier.require(BODY, "sha256=deadbeef")
    assert exc.value.code == 403


def test_changed_secret_rejects_old_signature():
    old_header = "sha256=" + _hex(SECRET, BODY)
    rotated = WebhookVerifier("rotated_verifier_token")

    assert rotated.verify(BODY, old_header) is False
    with pytest.raises(SignatureInvalid):
        rotated.require(BODY, old_header)


def test_missing_header_is_rejected_not_crashing():
    verifier = WebhookVerifier(SECRET)

    assert verifier.verify(BODY, None) is False
    assert verifier.verify(BODY, "") is False
    with pytest.raises(SignatureInvalid):
        verifier.require(BODY, None)


def test_tampered_body_is_rejected():
    verifier = WebhookVerifier(SECRET)
    header = verifier.sign(BODY)

    assert verifier.verify(b'{"test":"date"}', header) is False


@pytest.mark.parametrize("secret", [None, "", "   "])
def test_unconfigured_secret_fails_closed(secret):
    verifier = WebhookVerifier(secret)
    # A sender that also has "no secret" must not get through.
    header = "sha256=" + _hex("", BODY)

    assert verifier.configured is False
    assert verifier.verify(BODY, header) is False
    with pytest.raises(SignatureInvalid):
        verifier.require(BODY, header)
    with pytest.raises(RuntimeError):
        verifier.sign(BODY)


def test_prefix_and_hex_case_are_tolerated():
    verifier = WebhookVerifier(SECRET)
    digest = _hex(SECRET, BODY)

    assert verifier.verify(BODY, "SHA256=" + digest.upper()) is True
    assert verifier.verify(BODY, digest) is True


def test_non_ascii_header_is_rejected():
    verifier = WebhookVerifier(SECRET)

    assert verifier.verify(BODY, "sha256=ééé") is False


def test_rejection_does_not_leak_expected_digest():
    with pytest.raises(SignatureInvalid) as exc:
        WebhookVerifier(SECRET).require(BODY, "sha256=deadbeef")
    assert _hex(SECRET, BODY) not in str(exc.value.description)
