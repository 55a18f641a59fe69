from __future__ import annotations

# -----------------------------------------------------------------------------
# Donation: one checkout attempt (one-time gift or monthly subscription).
# Amounts are stored in cents; Helcim ids are kept as strings.
# -----------------------------------------------------------------------------
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from avrnpo.extensions import db

from .mixins import TimestampMixin, utcnow

TYPE_ONE_TIME = "one-time"
TYPE_MONTHLY = "monthly"
DONATION_TYPES = (TYPE_ONE_TIME, TYPE_MONTHLY)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_ACTIVE = "active"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"
STATUSES = (STATUS_PENDING, STATUS_COMPLETED, STATUS_ACTIVE, STATUS_FAILED, STATUS_CANCELLED)

MAX_PAYMENT_RETRIES = 3


class Donation(db.Model, TimestampMixin):
    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_donations_amount_positive"),
        Index("ix_donations_status_created", "status", "created_at"),
    )

    # ---- Identifiers ----
    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[Optional[int]] = mapped_column(
        db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    user = relationship("User", back_populates="donations")

    # ---- Helcim references ----
    helcim_transaction_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True, index=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True, index=True)
    checkout_token: Mapped[Optional[str]] = mapped_column(db.String(255), nullable=True)
    secret_token: Mapped[Optional[str]] = mapped_column(
        db.String(255), nullable=True, doc="HelcimPay secret; never rendered or serialized"
    )
    subscription_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True, index=True)
    customer_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)
    payment_plan_id: Mapped[Optional[str]] = mapped_column(db.String(120), nullable=True)

    # ---- Financials (cents) ----
    amount_cents: Mapped[int] = mapped_column(db.Integer, nullable=False)
    currency: Mapped[str] = mapped_column(db.String(3), nullable=False, default="USD")
    donation_type: Mapped[str] = mapped_column(db.String(20), nullable=False, default=TYPE_ONE_TIME)
    status: Mapped[str] = mapped_column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)

    # ---- Donor ----
    donor_name: Mapped[str] = mapped_column(db.String(200), nullable=False)
    donor_email: Mapped[str] = mapped_column(db.String(254), nullable=False, index=True)
    donor_phone: Mapped[Optional[str]] = mapped_column(db.String(40), nullable=True)
    address_line1: Mapped[Optional[str]] = mapped_column(db.String(200), nullable=True)
    address_line2: Mapped[Optional[str]] = mapped_column(db.String(200), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(db.String(100), nullable=True)
    state: Mapped[Optional[str]] = mapped_column(db.String(100), nullable=True)
    zip_code: Mapped[Optional[str]] = mapped_column(db.String(20), nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(db.String(1000), nullable=True)

    # ---- Recurring bookkeeping ----
    next_billing_date: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    payment_retry_count: Mapped[int] = mapped_column(db.Integer, nullable=False, default=0)
    last_payment_attempt: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)
    payment_failure_reason: Mapped[Optional[str]] = mapped_column(db.String(500), nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(db.DateTime, nullable=True)

    # ==========================================================
    # Amount helpers
    # ==========================================================
    @property
    def amount(self) -> Decimal:
        return (Decimal(int(self.amount_cents or 0)) / 100).quantize(Decimal("0.01"))

    def set_amount(self, dollars: Decimal) -> None:
        self.amount_cents = int((Decimal(dollars) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    # ==========================================================
    # State
    # ==========================================================
    def is_recurring(self) -> bool:
        return self.donation_type == TYPE_MONTHLY

    @property
    def display_type(self) -> str:
        return "Monthly" if self.is_recurring() else "One-time"

    def can_retry_payment(self) -> bool:
        return self.status == STATUS_FAILED and (self.payment_retry_count or 0) < MAX_PAYMENT_RETRIES

    def record_payment_failure(self, reason: str) -> None:
        self.status = STATUS_FAILED
        self.payment_retry_count = (self.payment_retry_count or 0) + 1
        self.last_payment_attempt = utcnow()
        self.payment_failure_reason = (reason or "")[:500]

    def mark_completed(self, *, transaction_id: Optional[str] = None) -> None:
        if transaction_id:
            self.transaction_id = self.transaction_id or transaction_id
            self.helcim_transaction_id = self.helcim_transaction_id or transaction_id
        self.status = STATUS_COMPLETED
        self.completed_at = self.completed_at or utcnow()
        self.last_payment_attempt = utcnow()
        self.payment_failure_reason = None

    def mark_subscribed(self, *, subscription_id: str, customer_id: str, plan_id: str,
                        next_billing: Optional[datetime] = None) -> None:
        self.subscription_id = subscription_id
        self.customer_id = customer_id
        self.payment_plan_id = plan_id
        self.next_billing_date = next_billing
        self.status = STATUS_ACTIVE
        self.last_payment_attempt = utcnow()

    # ==========================================================
    # Serialization (never includes secret_token)
    # ==========================================================
    def as_status_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "amount": f"{self.amount:.2f}",
            "currency": self.currency,
            "donorName": self.donor_name,
            "donationType": self.donation_type,
            "status": self.status,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Donation #{self.id} ${self.amount:,.2f} {self.donation_type} {self.status}>"
