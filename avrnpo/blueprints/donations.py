#!/usr/bin/env python3
"""
Donation flow (Helcim)

Pages:
  GET  /donate                 form
  POST /donate                 validate, create pending donation, open HelcimPay checkout
  GET  /donate/payment         HelcimPay.js modal for the donation in session
  GET  /donate/success
  GET  /donate/failed

API (JSON, CSRF via X-CSRF-Token header):
  POST /api/donations/initialize
  POST /api/donations/process
  POST /api/donations/<id>/complete
  GET  /api/donations/<id>/status
  POST /api/donations/webhook    (Helcim; HMAC-signed, the only CSRF-exempt route)

A browser can only act on donations it initialized: the donation id is kept
in the session and checked on every follow-up call.
"""

from __future__ import annotations

import json
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from flask import Blueprint, current_app, flash, redirect, request, session, url_for
from flask_login import current_user

from avrnpo.extensions import commit_or_rollback, csrf, db, donation_completed
from avrnpo.forms.donation import DonationForm
from avrnpo.models import Donation
from avrnpo.models.donation import STATUS_COMPLETED, STATUS_PENDING
from avrnpo.responses import json_error, json_ok
from avrnpo.security.webhook import SIGNATURE_HEADER, get_webhook_verifier
from avrnpo.services.helcim import HelcimError, closest_plan_amount, get_helcim_client
from avrnpo.views import DonatePage, DonationResultPage, PaymentPage, render_page

bp = Blueprint("donations", __name__)

SESSION_DONATION_ID = "donation_id"
SESSION_CHECKOUT_TOKEN = "checkout_token"


# ----------------------------
# Helpers
# ----------------------------
def _create_pending_donation(form: DonationForm) -> Donation:
    donation = Donation(
        currency=str(current_app.config.get("HELCIM_CURRENCY") or "USD"),
        donation_type=form.donation_type.data,
        status=STATUS_PENDING,
        donor_name=form.donor_name,
        donor_email=form.donor_email.data,
        donor_phone=form.donor_phone.data or None,
        address_line1=form.address_line1.data,
        address_line2=form.address_line2.data or None,
        city=form.city.data,
        state=form.state.data,
        zip_code=form.zip_code.data,
        comments=form.comments.data or None,
    )
    donation.set_amount(form.amount_value)
    if current_user.is_authenticated:
        donation.user_id = current_user.id
    db.session.add(donation)
    commit_or_rollback()
    return donation


def _open_checkout(donation: Donation, form: DonationForm) -> None:
    """Ask Helcim for checkout tokens and remember them on the donation + session."""
    checkout = get_helcim_client().initialize_checkout(
        donation.amount,
        first_name=form.first_name.data,
        last_name=form.last_name.data,
        email=form.donor_email.data,
        company_name=str(current_app.config.get("ORGANIZATION_NAME") or ""),
    )
    donation.checkout_token = checkout.checkout_token
    donation.secret_token = checkout.secret_token
    commit_or_rollback()

    session[SESSION_DONATION_ID] = donation.id
    session[SESSION_CHECKOUT_TOKEN] = checkout.checkout_token


def _owned_donation(raw_id: Any) -> Optional[Donation]:
    """Donation ``raw_id`` if this session started it (or an admin asks)."""
    try:
        donation_id = int(str(raw_id).strip())
    except (TypeError, ValueError):
        return None
    donation = db.session.get(Donation, donation_id)
    if donation is None:
        return None
    if session.get(SESSION_DONATION_ID) == donation.id:
        return donation
    if current_user.is_authenticated and (current_user.is_admin or donation.user_id == current_user.id):
        return donation
    return None


def _announce_completed(donation: Donation) -> None:
    donation_completed.send(current_app._get_current_object(), donation=donation)


def _field_errors(form: DonationForm) -> Dict[str, str]:
    return {name: errs[0] for name, errs in form.errors.items() if errs}


# ----------------------------
# Pages
# ----------------------------
@bp.get("/donate")
def donate():
    form = DonationForm()
    preset = request.args.get("amount")
    if preset and not form.amount.data:
        form.amount.data = preset
    return render_page("donations/donate.html", DonatePage(title="Donate", form=form))


@bp.post("/donate")
def donate_submit():
    form = DonationForm()
    if not form.validate():
        return render_page("donations/donate.html", DonatePage(title="Donate", form=form), 422)

    donation = _create_pending_donation(form)
    current_app.logger.info(
        "donation #%s created: %s $%s", donation.id, donation.donation_type, donation.amount
    )

    try:
        _open_checkout(donation, form)
    except HelcimError as e:
        current_app.logger.error("donation #%s: checkout init failed: %s", donation.id, e)
        donation.record_payment_failure(str(e))
        commit_or_rollback()
        flash("Payment system unavailable. Please try again later.", "error")
        return redirect(url_for("donations.donate"))

    return redirect(url_for("donations.payment"))


@bp.get("/donate/payment")
def payment():
    donation = _owned_donation(session.get(SESSION_DONATION_ID))
    token = session.get(SESSION_CHECKOUT_TOKEN)
    if donation is None or not token or donation.status != STATUS_PENDING:
        flash("Your donation session has expired. Please start again.", "warning")
        return redirect(url_for("donations.donate"))

    page = PaymentPage(
        title="Complete Your Donation",
        donation_id=donation.id,
        checkout_token=token,
        amount=donation.amount,
        donor_name=donation.donor_name,
        donation_type=donation.donation_type,
    )
    return render_page("donations/payment.html", page)


@bp.get("/donate/success")
def success():
    donation = _owned_donation(request.args.get("donation_id") or session.get(SESSION_DONATION_ID))
    return render_page(
        "donations/result.html",
        DonationResultPage(title="Thank You", succeeded=True, donation=donation),
    )


@bp.get("/donate/failed")
def failed():
    return render_page(
        "donations/result.html",
        DonationResultPage(title="Donation Not Completed", succeeded=False),
    )


# ----------------------------
# JSON API
# ----------------------------
@bp.post("/api/donations/initialize")
def api_initialize():
    form = DonationForm()
    if not form.validate():
        return json_error("Validation failed", 400, fields=_field_errors(form))

    donation = _create_pending_donation(form)
    try:
        _open_checkout(donation, form)
    except HelcimError as e:
        current_app.logger.error("donation #%s: checkout init failed: %s", donation.id, e)
        donation.record_payment_failure(str(e))
        commit_or_rollback()
        return json_error("Payment system unavailable. Please try again later.", 503)

    return json_ok(
        {
            "success": True,
            "donationId": donation.id,
            "checkoutToken": donation.checkout_token,
            "amount": f"{donation.amount:.2f}",
            "donorName": donation.donor_name,
            "donationType": donation.donation_type,
        }
    )


@bp.post("/api/donations/process")
def api_process():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return json_error("Invalid request data", 400)

    donation = _owned_donation(data.get("donationId"))
    if donation is None:
        return json_error("Donation not found", 404)
    if donation.status != STATUS_PENDING:
        return json_error("Donation already processed", 409, donation_status=donation.status)

    if data.get("amount") not in (None, ""):
        try:
            client_amount = Decimal(str(data.get("amount"))).quantize(Decimal("0.01"))
        except InvalidOperation:
            return json_error("Invalid amount format", 400)
        if client_amount != donation.amount:
            current_app.logger.warning(
                "donation #%s: client amount %s differs from stored %s; charging stored amount",
                donation.id, client_amount, donation.amount,
            )

    customer_code = str(data.get("customerCode") or "").strip() or f"DON_{donation.id}_{int(time.time())}"
    card_token = str(data.get("cardToken") or "").strip()
    if not card_token:
        return json_error("Missing card token", 400)

    client = get_helcim_client()
    try:
        if donation.is_recurring():
            plan_amount = closest_plan_amount(donation.amount)
            plan_id = client.create_payment_plan(plan_amount, f"Monthly Donation - ${plan_amount:.0f}")
            sub = client.create_subscription(
                customer_code=customer_code, payment_plan_id=plan_id, amount=donation.amount
            )
            donation.mark_subscribed(
                subscription_id=sub.id,
                customer_id=customer_code,
                plan_id=plan_id,
                next_billing=sub.next_billing_date,
            )
            commit_or_rollback()
            current_app.logger.info("donation #%s: subscription %s active", donation.id, sub.id)
            _announce_completed(donation)
            return json_ok(
                {
                    "success": True,
                    "type": "recurring",
                    "subscriptionId": sub.id,
                    "nextBilling": sub.next_billing_date.isoformat() if sub.next_billing_date else None,
                }
            )

        result = client.purchase(donation.amount, customer_code=customer_code, card_token=card_token)
    except HelcimError as e:
        current_app.logger.error("donation #%s: payment failed: %s", donation.id, e)
        donation.record_payment_failure(str(e))
        commit_or_rollback()
        return json_error("Payment could not be processed", 502)

    if not result.approved:
        donation.record_payment_failure(f"Helcim status {result.status}")
        commit_or_rollback()
        return json_error("Payment was declined", 402, helcim_status=result.status)

    donation.customer_id = customer_code
    donation.mark_completed(transaction_id=result.transaction_id)
    commit_or_rollback()
    current_app.logger.info("donation #%s: one-time payment approved (%s)", donation.id, result.transaction_id)
    _announce_completed(donation)
    return json_ok({"success": True, "type": "one-time", "transactionId": result.transaction_id})


@bp.post("/api/donations/<int:donation_id>/complete")
def api_complete(donation_id: int):
    donation = _owned_donation(donation_id)
    if donation is None:
        return json_error("Donation not found", 404)

    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return json_error("Invalid completion data", 400)
    transaction_id = str(data.get("transactionId") or "").strip()
    status = str(data.get("status") or "").strip().upper()
    if not transaction_id:
        return json_error("Invalid completion data", 400)
    # Only a pending donation can be completed.
    if donation.status != STATUS_PENDING:
        return json_error("Donation already processed", 409, donation_status=donation.status)

    if not donation.helcim_transaction_id:
        donation.helcim_transaction_id = transaction_id
    approved = status == "APPROVED"
    if approved:
        donation.mark_completed(transaction_id=transaction_id)
    else:
        donation.record_payment_failure(f"Helcim status {status or 'unknown'}")
    commit_or_rollback()

    if approved:
        _announce_completed(donation)
        return json_ok({"success": True, "message": "Thank you for your donation!"})
    return json_error("Payment was declined", 402, helcim_status=status or "unknown")


@bp.get("/api/donations/<int:donation_id>/status")
def api_status(donation_id: int):
    donation = _owned_donation(donation_id)
    if donation is None:
        return json_error("Donation not found", 404)
    return json_ok(donation.as_status_dict())


# ----------------------------
# Helcim webhook
# ----------------------------
def _find_by_transaction(transaction_id: str) -> Optional[Donation]:
    donation = Donation.query.filter_by(helcim_transaction_id=transaction_id).first()
    if donation is None:
        donation = Donation.query.filter_by(transaction_id=transaction_id).first()
    return donation


@bp.post("/api/donations/webhook")
@csrf.exempt
def helcim_webhook():
    # Signature first, over the exact bytes received; parse only afterwards.
    body = request.get_data(cache=True)
    get_webhook_verifier().require(body, request.headers.get(SIGNATURE_HEADER))

    try:
        event = json.loads(body.decode("utf-8") or "null")
    except (UnicodeDecodeError, ValueError):
        return json_error("Invalid JSON payload", 400)
    if not isinstance(event, dict):
        return json_error("Invalid JSON payload", 400)

    etype = str(event.get("type") or "")
    event_id = str(event.get("id") or "")
    current_app.logger.info("helcim webhook: type=%s id=%s", etype, event_id)

    if etype == "cardTransaction":
        data = event.get("data")
        if data is not None and not isinstance(data, dict):
            return json_error("Invalid transaction data", 400)

        # data.transactionId names the transaction; the event id is the fallback.
        transaction_id = str((data or {}).get("transactionId") or "").strip() or event_id
        if not transaction_id:
            return json_error("Missing transaction id", 400)

        donation = _find_by_transaction(transaction_id)
        if donation is None:
            current_app.logger.warning("helcim webhook: no donation for transaction %s", transaction_id)
            return json_ok({"status": "processed", "matched": False})

        if donation.status == STATUS_COMPLETED:
            return json_ok({"status": "processed", "matched": True, "duplicate": True})

        donation.mark_completed(transaction_id=transaction_id)
        commit_or_rollback()
        current_app.logger.info("helcim webhook: donation #%s completed", donation.id)
        _announce_completed(donation)
        return json_ok({"status": "processed", "matched": True})

    # terminalCancel and anything unrecognized are acknowledged so Helcim stops retrying.
    return json_ok({"status": "ignored", "type": etype})
