"""
Payments: hosted checkout sessions and post-checkout verification against
the Dodo Payments REST API.

A verified session is recorded once; verifying the same session again
returns the stored payment.
"""
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from core.config_manager import config
from core.document_store import DocumentStore
from core.event_log import append_event
from core.exceptions import NotFoundError, PaymentProviderError, PreconditionError, ValidationError
from core.logger import get_logger
from core.models import PaymentStatus, PaymentType
from core.stores import PaymentStore, UserStore

logger = get_logger("payments")

PROVIDER_BASE_URLS = {
    "test_mode": "https://test.dodopayments.com",
    "live_mode": "https://live.dodopayments.com",
}


@dataclass
class Product:
    key: str
    id: Optional[str]
    name: str
    price: int
    currency: str
    type: PaymentType


def get_product_by_key(key: Optional[str]) -> Optional[Product]:
    """Catalogue lookup; provider product ids come from the environment."""
    entry = (config.PRODUCTS or {}).get(key or "")
    if entry is None:
        return None
    return Product(
        key=key,
        id=os.environ.get(entry["id_env"]),
        name=entry["name"],
        price=int(entry["price"]),
        currency=entry.get("currency", "USD"),
        type=PaymentType(entry.get("type", "one_time")),
    )


class DodoPaymentsClient:
    """Minimal client for the checkout session and payment endpoints."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        environment: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = api_key or os.environ.get("DODO_PAYMENTS_API_KEY")
        self.environment = environment or config.PAYMENT_ENVIRONMENT
        if self.environment not in PROVIDER_BASE_URLS:
            raise ValidationError(f"Unknown payment environment '{self.environment}'")
        self.base_url = PROVIDER_BASE_URLS[self.environment]
        self.timeout = timeout
        self._transport = transport

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise PaymentProviderError("DODO_PAYMENTS_API_KEY is not configured")
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.request(
                    method,
                    url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error("Payment provider returned %d for %s %s", status, method, path)
            raise PaymentProviderError(f"HTTP {status} - {e.response.text[:200]}", provider_status=status) from e
        except httpx.HTTPError as e:
            logger.error("Payment provider request failed: %s", e)
            raise PaymentProviderError(str(e)) from e

    def create_checkout_session(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/checkouts", payload)

    def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/checkouts/{session_id}")

    def retrieve_payment(self, payment_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/payments/{payment_id}")


class PaymentService:

    def __init__(self, db: Optional[DocumentStore] = None, client: Optional[DodoPaymentsClient] = None):
        self.db = db if db is not None else DocumentStore()
        self.users = UserStore(self.db)
        self.payments = PaymentStore(self.db)
        self._client = client

    @property
    def client(self) -> DodoPaymentsClient:
        if self._client is None:
            self._client = DodoPaymentsClient()
        return self._client

    def create_checkout(self, user_id: str, product_key: str, quantity: int = 1) -> Dict[str, Any]:
        product = get_product_by_key(product_key)
        if not product_key or product is None:
            raise ValidationError("Invalid product")
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        user = self.users.get(user_id)
        if user is None:
            raise NotFoundError("User", user_id, "User record not found. Please sign in correctly.")

        session = self.client.create_checkout_session({
            "product_cart": [{"product_id": product.id, "quantity": quantity}],
            "customer": {"email": user.email, "name": user.name or "Valued Customer"},
            "return_url": (
                f"{config.SITE_BASE_URL}/dashboard/success"
                f"?session_id={{CHECKOUT_SESSION_ID}}&product_key={product.key}"
            ),
        })
        logger.info("Checkout session %s created for %s (%s)", session.get("session_id"), user_id, product.key)
        return {
            "checkout_url": session.get("checkout_url"),
            "session_id": session.get("session_id"),
        }

    def verify(self, user_id: str, session_id: str, product_key: str) -> Dict[str, Any]:
        """
        Record a succeeded checkout. Returns {"payment", "already_recorded"}.
        """
        if not session_id or not product_key:
            raise ValidationError("Missing session_id or product_key")

        existing = self.payments.find_by_provider_id(session_id)
        if existing is not None:
            return {"payment": existing, "already_recorded": True}

        session = self.client.retrieve_checkout_session(session_id)
        if session.get("payment_status") != PaymentStatus.SUCCEEDED.value:
            raise PreconditionError("Payment not completed yet")
        payment_id = session.get("payment_id")
        if not payment_id:
            raise PaymentProviderError("Payment ID missing from session")

        details = self.client.retrieve_payment(payment_id)
        product = get_product_by_key(product_key)

        with self.db.transaction():
            # a concurrent verify may have recorded it while we talked to the provider
            existing = self.payments.find_by_provider_id(session_id)
            if existing is not None:
                return {"payment": existing, "already_recorded": True}

            payment = self.payments.create({
                "user_id": user_id,
                "amount": details.get("total_amount") or (product.price if product else 0),
                "currency": details.get("currency") or (product.currency if product else "USD"),
                "status": PaymentStatus.SUCCEEDED,
                "type": product.type if product else PaymentType.ONE_TIME,
                "product_id": product_key,
                "provider_id": session_id,
                "metadata": {
                    "customer_email": (details.get("customer") or {}).get("email") or session.get("customer_email"),
                    "provider_product_id": product.id if product else None,
                    "payment_id": details.get("payment_id", payment_id),
                },
            })

        append_event({
            "type": "payment_recorded",
            "user_id": user_id,
            "payload": {"payment_id": payment.id, "provider_id": session_id, "product_key": product_key},
        })
        logger.info("Payment %s recorded for %s", payment.id, user_id)
        return {"payment": payment, "already_recorded": False}
