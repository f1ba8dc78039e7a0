# storefront/services/payment_providers.py
"""
Payment provider port and adapters.

Raw provider statuses are mapped to ProviderStatus here and nowhere else;
the reconciler only ever sees the ProviderStatusKind vocabulary.

- StripeProvider: client-secret flow (PaymentIntents), signed webhooks
- MercadoPagoProvider: redirect flow (Checkout Pro preferences)
- FakeProvider: in-process provider for development and tests
"""
import hashlib
import hmac
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal

import requests

from storefront.data.models.order import OrderModel
from storefront.domain.errors import PaymentProviderError, ValidationError
from storefront.domain.status import ProviderStatus, ProviderStatusKind
from storefront.utils import settings
from storefront.utils.logging import get_logger
from storefront.utils.retry import http_retry

logger = get_logger(__name__)


@dataclass(frozen=True)
class PaymentIntent:
    provider: str
    provider_ref_id: str
    redirect_url: str | None = None
    client_secret: str | None = None


@dataclass(frozen=True)
class Notification:
    provider_ref_id: str
    status: ProviderStatus


class PaymentProvider(ABC):
    name: str

    @abstractmethod
    def create_payment_intent(self, order: OrderModel) -> PaymentIntent:
        """Start collecting order.total. Raises PaymentProviderError."""

    @abstractmethod
    def get_payment_status(self, provider_ref_id: str) -> ProviderStatus:
        """Current status of one payment attempt. Raises PaymentProviderError."""

    @abstractmethod
    def parse_notification(self, body: bytes, payload: dict, headers: dict) -> Notification | None:
        """Webhook body -> notification, None when the event is not about a payment."""


def _minor_units(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value())


# --- Stripe ----------------------------------------------------------------

_STRIPE_INTENT_STATUS = {
    "succeeded": ProviderStatusKind.APPROVED,
    "processing": ProviderStatusKind.PENDING,
    "requires_capture": ProviderStatusKind.PENDING,
    "requires_payment_method": ProviderStatusKind.PENDING,
    "requires_confirmation": ProviderStatusKind.PENDING,
    "requires_action": ProviderStatusKind.PENDING,
    "canceled": ProviderStatusKind.REJECTED,
}


def map_stripe_status(raw: str) -> ProviderStatus:
    kind = _STRIPE_INTENT_STATUS.get(raw)
    return ProviderStatus(kind, raw) if kind else ProviderStatus.unknown(raw)


class StripeProvider(PaymentProvider):
    name = "stripe"

    def __init__(
        self,
        secret_key: str | None = None,
        webhook_secret: str | None = None,
        api_url: str | None = None,
        timeout: int = 5,
        signature_tolerance: int = 300,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        self.api_url = (api_url or settings.STRIPE_API_URL).rstrip("/")
        self.timeout = timeout
        self.signature_tolerance = signature_tolerance

    @http_retry()
    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.api_url}{path}"
        logger.info(f"Stripe {method} {url}")
        resp = requests.request(method, url, auth=(self.secret_key, ""), timeout=self.timeout, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def create_payment_intent(self, order: OrderModel) -> PaymentIntent:
        try:
            data = self._request(
                "POST",
                "/payment_intents",
                data={
                    "amount": _minor_units(order.total),
                    "currency": order.currency.lower(),
                    "metadata[order_id]": str(order.id),
                },
                headers={"Idempotency-Key": f"order-{order.id}-{uuid.uuid4().hex}"},
            )
        except requests.RequestException as e:
            logger.error(f"Stripe payment intent for order {order.id} failed: {e}")
            raise PaymentProviderError(provider=self.name) from e

        return PaymentIntent(
            provider=self.name,
            provider_ref_id=data["id"],
            client_secret=data.get("client_secret"),
        )

    def get_payment_status(self, provider_ref_id: str) -> ProviderStatus:
        try:
            data = self._request("GET", f"/payment_intents/{provider_ref_id}")
        except requests.RequestException as e:
            logger.error(f"Stripe status lookup for {provider_ref_id} failed: {e}")
            raise PaymentProviderError(provider=self.name) from e
        return map_stripe_status(data.get("status", ""))

    def verify_signature(self, body: bytes, header: str) -> bool:
        if not self.webhook_secret:
            # unsigned webhooks only when no secret is configured (dev)
            return True
        try:
            parts = dict(item.split("=", 1) for item in header.split(","))
            timestamp = int(parts["t"])
            signature = parts["v1"]
        except (KeyError, ValueError):
            return False

        if abs(time.time() - timestamp) > self.signature_tolerance:
            return False

        signed = f"{timestamp}.".encode() + body
        expected = hmac.new(self.webhook_secret.encode(), signed, hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, signature)

    def parse_notification(self, body: bytes, payload: dict, headers: dict) -> Notification | None:
        if not self.verify_signature(body, headers.get("stripe-signature", "")):
            raise ValidationError("Invalid webhook signature", provider=self.name)

        event_type = payload.get("type", "")
        obj = payload.get("data", {}).get("object", {})

        if event_type.startswith("payment_intent."):
            ref = obj.get("id")
            if event_type == "payment_intent.payment_failed":
                status = ProviderStatus(ProviderStatusKind.REJECTED, event_type)
            else:
                status = map_stripe_status(obj.get("status", ""))
        elif event_type == "charge.refunded":
            ref = obj.get("payment_intent")
            kind = ProviderStatusKind.REFUNDED if obj.get("refunded") else ProviderStatusKind.PARTIALLY_REFUNDED
            status = ProviderStatus(kind, event_type)
        elif event_type.startswith("charge.dispute."):
            ref = obj.get("payment_intent")
            status = ProviderStatus(ProviderStatusKind.DISPUTED, event_type)
        else:
            logger.info(f"Unhandled Stripe event type: {event_type}")
            return None

        if not ref:
            logger.warning(f"Stripe event {event_type} without payment intent reference")
            return None
        return Notification(provider_ref_id=ref, status=status)


# --- Mercado Pago ------------------------------------------------------------

_MERCADOPAGO_STATUS = {
    "approved": ProviderStatusKind.APPROVED,
    "pending": ProviderStatusKind.PENDING,
    "in_process": ProviderStatusKind.PENDING,
    "authorized": ProviderStatusKind.PENDING,
    "rejected": ProviderStatusKind.REJECTED,
    "cancelled": ProviderStatusKind.REJECTED,
    "refunded": ProviderStatusKind.REFUNDED,
    "charged_back": ProviderStatusKind.DISPUTED,
}


def map_mercadopago_status(raw: str) -> ProviderStatus:
    # in_mediation and anything new falls through to UNKNOWN
    kind = _MERCADOPAGO_STATUS.get(raw)
    return ProviderStatus(kind, raw) if kind else ProviderStatus.unknown(raw)


class MercadoPagoProvider(PaymentProvider):
    """
    Redirect flow. The payment id only exists once the buyer pays, so the
    reference we store is our own external_reference, which Mercado Pago
    echoes back on every payment.
    """

    name = "mercadopago"

    def __init__(
        self,
        access_token: str | None = None,
        api_url: str | None = None,
        public_base_url: str | None = None,
        timeout: int = 5,
    ):
        self.access_token = access_token if access_token is not None else settings.MERCADOPAGO_ACCESS_TOKEN
        self.api_url = (api_url or settings.MERCADOPAGO_API_URL).rstrip("/")
        self.public_base_url = (public_base_url or settings.PUBLIC_BASE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.api_url}{path}"
        logger.info(f"MercadoPago {method} {url}")
        resp = requests.request(
            method,
            url,
            headers={"Authorization": f"Bearer {self.access_token}"},
            timeout=self.timeout,
            **kwargs,
        )
        resp.raise_for_status()
        return resp.json()

    def create_payment_intent(self, order: OrderModel) -> PaymentIntent:
        reference = f"order-{order.id}-{uuid.uuid4().hex[:12]}"
        base = self.public_base_url
        items = [
            {
                "id": str(item.variant_id),
                "title": f"{item.name} Size {item.size} Color {item.color}",
                "quantity": item.quantity,
                "unit_price": float(item.unit_price),
                "currency_id": order.currency,
            }
            for item in order.items
        ]
        # tax and shipping travel as their own lines so the charged amount equals order.total
        for title, amount in (("Tax", order.tax), ("Shipping", order.shipping_cost)):
            if amount and Decimal(amount) > 0:
                items.append(
                    {"title": title, "quantity": 1, "unit_price": float(amount), "currency_id": order.currency}
                )

        try:
            data = self._request(
                "POST",
                "/checkout/preferences",
                json={
                    "items": items,
                    "external_reference": reference,
                    "back_urls": {
                        "success": f"{base}/checkout/success?order={order.id}",
                        "pending": f"{base}/checkout/success?order={order.id}&state=pending",
                        "failure": f"{base}/checkout/success?order={order.id}&state=failure",
                    },
                    "auto_return": "approved",
                    "notification_url": f"{base}/payments/webhooks/{self.name}",
                },
            )
        except requests.RequestException as e:
            logger.error(f"MercadoPago preference for order {order.id} failed: {e}")
            raise PaymentProviderError(provider=self.name) from e

        return PaymentIntent(
            provider=self.name,
            provider_ref_id=reference,
            redirect_url=data.get("init_point") or data.get("sandbox_init_point"),
        )

    def get_payment_status(self, provider_ref_id: str) -> ProviderStatus:
        try:
            data = self._request(
                "GET",
                "/v1/payments/search",
                params={"external_reference": provider_ref_id, "sort": "date_created", "criteria": "desc"},
            )
        except requests.RequestException as e:
            logger.error(f"MercadoPago status lookup for {provider_ref_id} failed: {e}")
            raise PaymentProviderError(provider=self.name) from e

        results = data.get("results") or []
        if not results:
            # preference created, nobody paid yet
            return ProviderStatus(ProviderStatusKind.PENDING, "no_payment")
        return map_mercadopago_status(results[0].get("status", ""))

    def parse_notification(self, body: bytes, payload: dict, headers: dict) -> Notification | None:
        if payload.get("type") != "payment":
            logger.info(f"Ignoring MercadoPago notification type {payload.get('type')}")
            return None

        payment_id = payload.get("data", {}).get("id") or payload.get("data.id")
        if not payment_id:
            return None

        try:
            payment = self._request("GET", f"/v1/payments/{payment_id}")
        except requests.RequestException as e:
            logger.error(f"MercadoPago payment {payment_id} lookup failed: {e}")
            raise PaymentProviderError(provider=self.name) from e

        reference = payment.get("external_reference")
        if not reference:
            logger.warning(f"MercadoPago payment {payment_id} has no external_reference")
            return None
        return Notification(provider_ref_id=reference, status=map_mercadopago_status(payment.get("status", "")))


# --- Fake --------------------------------------------------------------------


class FakeProvider(PaymentProvider):
    """Configurable provider without network calls. Statuses use Mercado Pago's words."""

    def __init__(self, name: str = "fake", redirect: bool = True):
        self.name = name
        self.redirect = redirect
        self.should_fail = False
        self.statuses: dict[str, str] = {}
        self.calls: list[dict] = []

    def configure(self, should_fail: bool):
        self.should_fail = should_fail

    def set_status(self, provider_ref_id: str, raw: str):
        self.statuses[provider_ref_id] = raw

    def create_payment_intent(self, order: OrderModel) -> PaymentIntent:
        self.calls.append({"method": "create_payment_intent", "order_id": order.id, "amount": order.total})
        if self.should_fail:
            raise PaymentProviderError(provider=self.name)

        ref = f"{self.name}_{uuid.uuid4().hex[:12]}"
        self.statuses[ref] = "pending"
        if self.redirect:
            return PaymentIntent(self.name, ref, redirect_url=f"https://pay.example/{ref}")
        return PaymentIntent(self.name, ref, client_secret=f"{ref}_secret")

    def get_payment_status(self, provider_ref_id: str) -> ProviderStatus:
        self.calls.append({"method": "get_payment_status", "provider_ref_id": provider_ref_id})
        if self.should_fail:
            raise PaymentProviderError(provider=self.name)
        return map_mercadopago_status(self.statuses.get(provider_ref_id, "pending"))

    def parse_notification(self, body: bytes, payload: dict, headers: dict) -> Notification | None:
        ref = payload.get("ref")
        if not ref:
            return None
        raw = payload.get("status", "")
        self.statuses[ref] = raw
        return Notification(provider_ref_id=ref, status=map_mercadopago_status(raw))


# --- registry ------------------------------------------------------------------

_providers: dict[str, PaymentProvider] = {}


def _default_provider(name: str) -> PaymentProvider:
    if settings.PAYMENT_PROVIDERS_FAKE:
        return FakeProvider(name=name, redirect=name != StripeProvider.name)
    if name == StripeProvider.name:
        return StripeProvider()
    if name == MercadoPagoProvider.name:
        return MercadoPagoProvider()
    raise KeyError(name)


def get_provider(name: str) -> PaymentProvider | None:
    if name not in _providers:
        try:
            _providers[name] = _default_provider(name)
        except KeyError:
            return None
    return _providers[name]


def set_provider(name: str, provider: PaymentProvider):
    """Override a provider, mostly for tests."""
    _providers[name] = provider


def reset_providers():
    _providers.clear()
