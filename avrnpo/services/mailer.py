"""
Outgoing mail: donation receipts and contact-form notifications.

Receipts go out from a ``donation_completed`` signal receiver so every path
that completes a donation (checkout, webhook) sends the same message.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Optional

from flask import Flask

from avrnpo.extensions import donation_completed, send_email_async
from avrnpo.models.donation import Donation
from avrnpo.models.mixins import utcnow

log = logging.getLogger(__name__)


@dataclass
class DonationReceipt:
    donor_name: str
    amount: str
    donation_type: str
    donation_date: datetime
    tax_deductible_amount: str
    organization_name: str
    organization_ein: str
    organization_address: str
    transaction_id: str = ""
    subscription_id: str = ""
    next_billing_date: Optional[datetime] = None
    donor_address_lines: list = field(default_factory=list)

    @classmethod
    def from_donation(cls, app: Flask, donation: Donation) -> "DonationReceipt":
        city_line = " ".join(p for p in (
            f"{donation.city}," if donation.city else "",
            donation.state or "",
            donation.zip_code or "",
        ) if p)
        return cls(
            donor_name=donation.donor_name,
            amount=f"{donation.amount:,.2f}",
            donation_type=donation.display_type,
            donation_date=donation.created_at or utcnow(),
            tax_deductible_amount=f"{donation.amount:,.2f}",
            organization_name=str(app.config.get("ORGANIZATION_NAME") or ""),
            organization_ein=str(app.config.get("ORGANIZATION_EIN") or ""),
            organization_address=str(app.config.get("ORGANIZATION_ADDRESS") or ""),
            transaction_id=donation.transaction_id or donation.helcim_transaction_id or "",
            subscription_id=donation.subscription_id or "",
            next_billing_date=donation.next_billing_date,
            donor_address_lines=[x for x in (donation.address_line1, donation.address_line2, city_line) if x],
        )


@dataclass
class ContactMessage:
    name: str
    email: str
    subject: str
    message: str
    submitted_at: datetime = field(default_factory=utcnow)


def _mail_enabled(app: Flask) -> bool:
    if not app.config.get("MAIL_ENABLED"):
        log.info("Mail disabled (MAIL_ENABLED off); skipping send")
        return False
    return True


def send_donation_receipt(app: Flask, donation: Donation):
    if not _mail_enabled(app):
        return None
    receipt = DonationReceipt.from_donation(app, donation)
    return send_email_async(
        app,
        f"Thank you for your donation to {receipt.organization_name}",
        [donation.donor_email],
        html_template="donation_receipt.html",
        text_template="donation_receipt.txt",
        context={"receipt": receipt},
    )


def send_contact_notification(app: Flask, msg: ContactMessage):
    if not _mail_enabled(app):
        return None
    return send_email_async(
        app,
        f"Contact form: {msg.subject}",
        [str(app.config.get("CONTACT_EMAIL"))],
        text_template="contact_notification.txt",
        context=asdict(msg),
        reply_to=msg.email,
    )


@donation_completed.connect
def _on_donation_completed(sender: Any, donation: Optional[Donation] = None, **_: Any) -> None:
    if donation is None:
        return
    log.info("Sending receipt for donation #%s", donation.id)
    send_donation_receipt(sender, donation)
