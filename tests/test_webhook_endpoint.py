import json
from decimal import Decimal

import pytest

from avrnpo import create_app
from avrnpo.config import TestingConfig
from avrnpo.extensions import db, mail
from avrnpo.models import Donation
from avrnpo.models.donation import STATUS_COMPLETED, STATUS_PENDING
from avrnpo.security.webhook import WebhookVerifier, compute_signature
from tests.conftest import WEBHOOK_SECRET

URL = "/api/donations/webhook"


def _pending_donation(app, txn="TXN-1001", email="dana@example.org"):
    with app.app_context():
        d = Donation(
            donor_name="Dana Donor",
            donor_email=email,
            donation_type="one-time",
            status=STATUS_PENDING,
            currency="USD",
            helcim_transaction_id=txn,
        )
        d.set_amount(Decimal("50"))
        db.session.add(d)
        db.session.commit()
        return d.id


def _donation_status(app, donation_id):
    with app.app_context():
        return db.session.get(Donation, donation_id).status


def _deliver(client, event, secret=WEBHOOK_SECRET, signature=None):
    body = json.dumps(event).encode() if not isinstance(event, bytes) else event
    headers = {}
    if signature is None and secret is not None:
        signature = "sha256=" + compute_signature(secret, body)
    if signature is not None:
        headers["X-Helcim-Signature"] = signature
    return client.post(URL, data=body, content_type="application/json", headers=headers)


def test_signed_card_transaction_completes_donation_and_sends_receipt(app, client):
    donation_id = _pending_donation(app)

    with mail.record_messages() as outbox:
        resp = _deliver(client, {"id": "TXN-1001", "type": "cardTransaction"})

    assert resp.status_code == 200
    assert resp.get_json()["status"] == "processed"
    assert _donation_status(app, donation_id) == STATUS_COMPLETED
    assert len(outbox) == 1
    assert outbox[0].recipients == ["dana@example.org"]
    assert "50.00" in outbox[0].body


def test_lookup_falls_back_to_transaction_id(app, client):
    with app.app_context():
        d = Donation(donor_name="Sam", donor_email="sam@example.org", transaction_id="ALT-7", status=STATUS_PENDING)
        d.set_amount(Decimal("25"))
        db.session.add(d)
        db.session.commit()
        donation_id = d.id

    resp = _deliver(client, {"id": "ALT-7", "type": "cardTransaction"})
    assert resp.status_code == 200
    assert _donation_status(app, donation_id) == STATUS_COMPLETED


def test_bad_signature_is_403_and_changes_nothing(app, client):
    donation_id = _pending_donation(app)

    resp = _deliver(client, {"id": "TXN-1001", "type": "cardTransaction"}, signature="sha256=deadbeef")

    assert resp.status_code == 403
    assert _donation_status(app, donation_id) == STATUS_PENDING


def test_missing_signature_header_is_403(app, client):
    donation_id = _pending_donation(app)

    resp = _deliver(client, {"id": "TXN-1001", "type": "cardTransaction"}, secret=None)

    assert resp.status_code == 403
    assert _donation_status(app, donation_id) == STATUS_PENDING


def test_signature_from_old_secret_is_403(app, client):
    _pending_donation(app)
    resp = _deliver(client, {"id": "TXN-1001", "type": "cardTransaction"}, secret="previous_secret")
    assert resp.status_code == 403


def test_signature_is_checked_over_raw_bytes(client):
    body = b'{"type": "terminalCancel",   "id": "9"}'
    sig = WebhookVerifier(WEBHOOK_SECRET).sign(body)
    # Same JSON, different bytes.
    resp = _deliver(client, b'{"type":"terminalCancel","id":"9"}', signature=sig)
    assert resp.status_code == 403


def test_rejection_body_is_generic(client):
    resp = _deliver(client, {"id": "1", "type": "cardTransaction"}, signature="sha256=deadbeef")
    payload = resp.get_json()
    assert payload["ok"] is False
    assert payload["error"]["code"] == 403
    assert "deadbeef" not in resp.get_data(as_text=True)


def test_invalid_json_with_valid_signature_is_400(client):
    resp = _deliver(client, b"{not json")
    assert resp.status_code == 400


def test_data_transaction_id_wins_over_event_id(app, client):
    donation_id = _pending_donation(app, txn="TX-DATA")

    resp = _deliver(client, {"id": "EVT-1", "type": "cardTransaction", "data": {"transactionId": "TX-DATA"}})

    assert resp.status_code == 200
    assert resp.get_json()["matched"] is True
    assert _donation_status(app, donation_id) == STATUS_COMPLETED


def test_empty_data_transaction_id_uses_event_id(app, client):
    donation_id = _pending_donation(app)

    resp = _deliver(client, {"id": "TXN-1001", "type": "cardTransaction", "data": {"transactionId": ""}})

    assert resp.status_code == 200
    assert _donation_status(app, donation_id) == STATUS_COMPLETED


@pytest.mark.parametrize("data", ["TX-DATA", ["TX-DATA"], 7])
def test_malformed_transaction_data_is_400(app, client, data):
    donation_id = _pending_donation(app, txn="TX-DATA")

    resp = _deliver(client, {"id": "TX-DATA", "type": "cardTransaction", "data": data})

    assert resp.status_code == 400
    assert _donation_status(app, donation_id) == STATUS_PENDING


def test_unknown_transaction_is_acknowledged(client):
    resp = _deliver(client, {"id": "NOPE", "type": "cardTransaction"})
    assert resp.status_code == 200
    assert resp.get_json()["matched"] is False


def test_duplicate_delivery_sends_one_receipt(app, client):
    _pending_donation(app)
    event = {"id": "TXN-1001", "type": "cardTransaction"}

    with mail.record_messages() as outbox:
        assert _deliver(client, event).status_code == 200
        second = _deliver(client, event)

    assert second.status_code == 200
    assert second.get_json()["duplicate"] is True
    assert len(outbox) == 1


@pytest.mark.parametrize("event_type", ["terminalCancel", "somethingNew"])
def test_other_event_types_are_ignored(client, event_type):
    resp = _deliver(client, {"id": "1", "type": event_type})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "ignored"


def test_without_configured_secret_every_delivery_is_rejected():
    app = create_app(TestingConfig)
    client = app.test_client()
    body = b'{"id":"1","type":"terminalCancel"}'

    empty_key_sig = "sha256=" + compute_signature("", body)
    default_sig = "sha256=" + compute_signature(WEBHOOK_SECRET, body)

    for sig in (empty_key_sig, default_sig, None):
        headers = {"X-Helcim-Signature": sig} if sig else {}
        resp = client.post(URL, data=body, content_type="application/json", headers=headers)
        assert resp.status_code == 403
