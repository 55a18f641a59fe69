"""
Helcim API client (HelcimPay.js checkout, purchases, recurring billing).

Base: https://api.helcim.com/v2, auth via the ``api-token`` header.

Endpoints used:
  POST   /helcim-pay/initialize      (paymentType=verify, returns checkout + secret tokens)
  POST   /payment/purchase
  POST   /payment-plans
  POST   /subscriptions
  GET    /subscriptions/<id>
  DELETE /subscriptions/<id>

Without an API key, development and testing get ``MockHelcimClient``; any
other environment refuses to start.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, Optional, Union

import requests
from flask import current_app

log = logging.getLogger(__name__)

EXTENSION_KEY = "avr_helcim"
DEFAULT_BASE_URL = "https://api.helcim.com/v2"

# Plans are shared across donors; the subscription carries the exact amount.
STANDARD_PLAN_AMOUNTS = (5, 10, 25, 50, 100, 250, 500, 1000)


class HelcimError(Exception):
    def __init__(self, message: str, status: int = 502, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status = int(status)
        self.payload = payload or {}


@dataclass(frozen=True)
class CheckoutSession:
    checkout_token: str
    secret_token: str


@dataclass(frozen=True)
class PaymentResult:
    transaction_id: str
    status: str
    amount: Decimal

    @property
    def approved(self) -> bool:
        return self.status.upper() == "APPROVED"


@dataclass(frozen=True)
class Subscription:
    id: str
    customer_code: str
    payment_plan_id: str
    amount: Decimal
    status: str
    next_billing_date: Optional[datetime] = None


def _money(v: Union[Decimal, float, int, str]) -> float:
    return float(Decimal(str(v)).quantize(Decimal("0.01")))


def _parse_date(raw: Any) -> Optional[datetime]:
    s = str(raw or "").strip()
    if not s:
        return None
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        pass
    try:
        return datetime.strptime(s[:10], "%Y-%m-%d")
    except ValueError:
        return None


def closest_plan_amount(amount: Decimal) -> Decimal:
    if amount >= 1000:
        return amount
    best = min(STANDARD_PLAN_AMOUNTS, key=lambda a: abs(Decimal(a) - amount))
    return Decimal(best)


def _subscription_from(obj: Dict[str, Any]) -> Subscription:
    return Subscription(
        id=str(obj.get("id") or obj.get("subscriptionId") or ""),
        customer_code=str(obj.get("customerCode") or obj.get("customerId") or ""),
        payment_plan_id=str(obj.get("paymentPlanId") or ""),
        amount=Decimal(str(obj.get("recurringAmount") or obj.get("amount") or 0)),
        status=str(obj.get("status") or ""),
        next_billing_date=_parse_date(obj.get("nextBillingDate") or obj.get("dateBilling")),
    )


def _unwrap_first(obj: Dict[str, Any], what: str) -> Dict[str, Any]:
    """Helcim wraps list endpoints as {"status": "ok", "data": [...]}."""
    if "data" not in obj:
        return obj
    status = str(obj.get("status") or "ok").lower()
    data = obj.get("data") or []
    if status != "ok" or not isinstance(data, list) or not data:
        raise HelcimError(f"Helcim returned no {what}", 502, obj)
    return data[0]


class HelcimClient:
    def __init__(self, api_token: str, *, base_url: str = DEFAULT_BASE_URL, currency: str = "USD", timeout: int = 30):
        if not api_token:
            raise ValueError("api_token is required")
        self.api_token = api_token
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.currency = (currency or "USD").upper()
        self.timeout = int(timeout)

    def __repr__(self) -> str:
        return f"<HelcimClient {self.base_url} {self.currency}>"

    def _request(
        self,
        path: str,
        *,
        method: str = "POST",
        payload: Optional[Dict[str, Any]] = None,
        idempotent: bool = False,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"api-token": self.api_token, "Accept": "application/json"}
        if idempotent:
            headers["Idempotency-Key"] = str(uuid.uuid4())

        started = time.perf_counter()
        try:
            resp = requests.request(method.upper(), url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            log.warning("helcim %s %s unreachable: %s", method.upper(), path, str(e)[:200])
            raise HelcimError("Helcim unreachable", 503) from e

        log.info(
            "helcim %s %s -> %s (%dms)",
            method.upper(),
            path,
            resp.status_code,
            int((time.perf_counter() - started) * 1000),
        )

        try:
            obj = resp.json() if resp.content else {}
        except ValueError as e:
            if resp.ok:
                raise HelcimError("Helcim returned invalid JSON", 502) from e
            obj = {}

        if not resp.ok:
            log.warning("helcim %s %s failed: HTTP %s", method.upper(), path, resp.status_code)
            raise HelcimError(f"Helcim HTTP {resp.status_code}", resp.status_code, obj if isinstance(obj, dict) else {})
        return obj if isinstance(obj, dict) else {"data": obj}

    # ---- HelcimPay.js ----
    def initialize_checkout(self, amount: Decimal, *, first_name: str, last_name: str, email: str,
                            company_name: str = "") -> CheckoutSession:
        obj = self._request(
            "/helcim-pay/initialize",
            payload={
                "paymentType": "verify",
                "amount": _money(amount),
                "currency": self.currency,
                "customer": {"firstName": first_name, "lastName": last_name, "email": email},
                "companyName": company_name,
            },
        )
        checkout = str(obj.get("checkoutToken") or "")
        secret = str(obj.get("secretToken") or "")
        if not checkout or not secret:
            raise HelcimError("Helcim checkout tokens missing", 502, obj)
        return CheckoutSession(checkout_token=checkout, secret_token=secret)

    # ---- One-time ----
    def purchase(self, amount: Decimal, *, customer_code: str, card_token: str) -> PaymentResult:
        obj = self._request(
            "/payment/purchase",
            payload={
                "amount": _money(amount),
                "currency": self.currency,
                "customerCode": customer_code,
                "cardData": {"cardToken": card_token},
            },
            idempotent=True,
        )
        return PaymentResult(
            transaction_id=str(obj.get("transactionId") or ""),
            status=str(obj.get("status") or ""),
            amount=Decimal(str(obj.get("amount") or amount)),
        )

    # ---- Recurring ----
    def create_payment_plan(self, amount: Decimal, name: str) -> str:
        obj = self._request(
            "/payment-plans",
            payload={
                "paymentPlans": [
                    {
                        "name": name,
                        "description": f"Monthly donation plan for ${_money(amount):.2f}",
                        "type": "subscription",
                        "currency": self.currency,
                        "recurringAmount": _money(amount),
                        "billingPeriod": "monthly",
                        "billingPeriodIncrements": 1,
                        "dateBilling": "Sign-up",
                        "termType": "forever",
                        "paymentMethod": "card",
                        "taxType": "no_tax",
                        "status": "active",
                    }
                ]
            },
            idempotent=True,
        )
        plan = _unwrap_first(obj, "payment plan")
        return str(plan.get("id") or "")

    def create_subscription(self, *, customer_code: str, payment_plan_id: str, amount: Decimal) -> Subscription:
        obj = self._request(
            "/subscriptions",
            payload={
                "subscriptions": [
                    {
                        "customerCode": customer_code,
                        "paymentPlanId": int(payment_plan_id) if str(payment_plan_id).isdigit() else payment_plan_id,
                        "recurringAmount": _money(amount),
                        "paymentMethod": "card",
                        "dateActivated": datetime.now(timezone.utc).strftime("%Y-%m-%d"),
                    }
                ]
            },
            idempotent=True,
        )
        return _subscription_from(_unwrap_first(obj, "subscription"))

    def get_subscription(self, subscription_id: str) -> Subscription:
        obj = self._request(f"/subscriptions/{subscription_id}", method="GET")
        return _subscription_from(_unwrap_first(obj, "subscription"))

    def cancel_subscription(self, subscription_id: str) -> None:
        self._request(f"/subscriptions/{subscription_id}", method="DELETE")


class MockHelcimClient:
    """Approves everything; used when no API key is configured outside production."""

    currency = "USD"

    def __init__(self, currency: str = "USD"):
        self.currency = (currency or "USD").upper()

    def __repr__(self) -> str:
        return "<MockHelcimClient>"

    @staticmethod
    def _stamp() -> str:
        return uuid.uuid4().hex[:12]

    def initialize_checkout(self, amount: Decimal, **_: Any) -> CheckoutSession:
        s = self._stamp()
        return CheckoutSession(checkout_token=f"dev_checkout_{s}", secret_token=f"dev_secret_{s}")

    def purchase(self, amount: Decimal, *, customer_code: str, card_token: str) -> PaymentResult:
        return PaymentResult(transaction_id=f"dev_txn_{self._stamp()}", status="APPROVED", amount=Decimal(amount))

    def create_payment_plan(self, amount: Decimal, name: str) -> str:
        return f"dev_plan_{int(amount)}"

    def create_subscription(self, *, customer_code: str, payment_plan_id: str, amount: Decimal) -> Subscription:
        return Subscription(
            id=f"dev_sub_{self._stamp()}",
            customer_code=customer_code,
            payment_plan_id=str(payment_plan_id),
            amount=Decimal(amount),
            status="active",
            next_billing_date=datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=30),
        )

    def get_subscription(self, subscription_id: str) -> Subscription:
        return Subscription(
            id=subscription_id,
            customer_code="dev_customer",
            payment_plan_id="dev_plan",
            amount=Decimal("0"),
            status="active",
            next_billing_date=datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=30),
        )

    def cancel_subscription(self, subscription_id: str) -> None:
        return None


def build_helcim_client(config: Dict[str, Any]) -> Union[HelcimClient, MockHelcimClient]:
    """Construct the client for ``config`` (called once from create_app)."""
    key = (config.get("HELCIM_PRIVATE_API_KEY") or "").strip()
    env = str(config.get("ENV") or "").lower()
    currency = str(config.get("HELCIM_CURRENCY") or "USD")

    if key:
        return HelcimClient(
            key,
            base_url=str(config.get("HELCIM_API_BASE_URL") or DEFAULT_BASE_URL),
            currency=currency,
            timeout=int(config.get("HELCIM_TIMEOUT_SECONDS") or 30),
        )

    if env in {"development", "testing"} and not config.get("HELCIM_LIVE_TESTING"):
        log.warning("HELCIM_PRIVATE_API_KEY not set; using MockHelcimClient (%s)", env)
        return MockHelcimClient(currency)

    raise RuntimeError("HELCIM_PRIVATE_API_KEY is required outside development/testing")


def get_helcim_client() -> Union[HelcimClient, MockHelcimClient]:
    return current_app.extensions[EXTENSION_KEY]
