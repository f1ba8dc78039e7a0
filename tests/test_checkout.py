from decimal import Decimal

import pytest

from storefront.domain.cart import Cart, CartLine
from storefront.domain.errors import (
    InsufficientStockError,
    NotFoundError,
    PaymentProviderError,
    UnauthorizedError,
    ValidationError,
)
from storefront.domain.results import Ok, error_of
from storefront.domain.status import OrderStatus, PaymentStatus
from storefront.repos.order_repo import OrderRepo
from storefront.services.checkout_service import CheckoutService

CONTACT = {"email": "ana@example.com", "name": "Ana"}


def cart_with(*lines):
    return Cart(id="c1", lines=tuple(CartLine(*line) for line in lines))


@pytest.fixture()
def provider(providers):
    return providers["mercadopago"]


@pytest.fixture()
def service(db, provider):
    return CheckoutService(db, provider)


class TestCheckout:
    def test_creates_pending_order_with_frozen_prices(self, db, service, provider):
        result = service.checkout(cart_with((1, "L", "black", 2), (2, "M", "blue", 1)), 1, CONTACT)

        assert isinstance(result, Ok)
        out = result.value
        assert out.status == OrderStatus.PENDING.value
        assert out.redirect_url.startswith("https://pay.example/")

        order = OrderRepo(db).get_order(out.order_id)
        assert [(i.name, i.quantity, i.unit_price) for i in order.items] == [
            ("Classic Tee", 2, Decimal("10500.00")),
            ("Denim Jacket", 1, Decimal("25000.00")),
        ]
        assert order.subtotal == Decimal("46000.00")
        assert order.tax == Decimal("9660.00")
        assert order.shipping_cost == Decimal("0.00")
        assert order.total == Decimal("55660.00")
        assert order.contact_info == CONTACT

        payment = order.payments[0]
        assert payment.provider_ref_id == out.provider_ref_id
        assert payment.status == PaymentStatus.REQUIRES_ACTION.value
        assert payment.amount == order.total

    def test_stock_is_not_touched_at_checkout(self, catalog, service):
        variant = catalog.get_variant(1, "M", "black")
        service.checkout(cart_with((1, "M", "black", 3)), 1, CONTACT)
        assert catalog.get_stock(variant.id) == 3

    def test_empty_cart(self, service):
        result = service.checkout(Cart(id="c1"), 1, CONTACT)
        assert isinstance(error_of(result), ValidationError)

    def test_stock_is_revalidated(self, service, provider):
        result = service.checkout(cart_with((1, "M", "black", 4)), 1, CONTACT)

        assert isinstance(error_of(result), InsufficientStockError)
        assert provider.calls == []

    def test_provider_failure_keeps_draft_order(self, db, service, provider):
        provider.configure(should_fail=True)

        result = service.checkout(cart_with((1, "S", "black", 1)), 1, CONTACT)

        assert isinstance(error_of(result), PaymentProviderError)
        order = OrderRepo(db).get_order(error_of(result).details["order_id"])
        assert order.status == OrderStatus.DRAFT.value
        assert order.payments == []


class TestRetryPayment:
    def _failed_order(self, db, service):
        out = service.checkout(cart_with((1, "S", "black", 1)), 1, CONTACT).value
        order = OrderRepo(db).get_order(out.order_id)
        order.status = OrderStatus.FAILED.value
        db.commit()
        return out

    def test_new_attempt_after_failure(self, db, service):
        first = self._failed_order(db, service)

        retry = service.retry_payment(first.order_id, 1)

        assert isinstance(retry, Ok)
        assert retry.value.provider_ref_id != first.provider_ref_id
        db.expire_all()
        order = OrderRepo(db).get_order(first.order_id)
        assert order.status == OrderStatus.PENDING.value
        assert len(order.payments) == 2

    def test_pending_order_cannot_be_retried(self, service):
        out = service.checkout(cart_with((1, "S", "black", 1)), 1, CONTACT).value
        assert isinstance(error_of(service.retry_payment(out.order_id, 1)), ValidationError)

    def test_other_user(self, db, service):
        first = self._failed_order(db, service)
        assert isinstance(error_of(service.retry_payment(first.order_id, 2)), UnauthorizedError)

    def test_unknown_order(self, service):
        assert isinstance(error_of(service.retry_payment(404, 1)), NotFoundError)

    def test_failed_order_with_succeeded_payment_is_not_charged_again(self, db, service):
        first = self._failed_order(db, service)
        order = OrderRepo(db).get_order(first.order_id)
        order.payments[0].status = PaymentStatus.SUCCEEDED.value
        db.commit()

        result = service.retry_payment(first.order_id, 1)

        assert isinstance(error_of(result), ValidationError)
        assert "already paid" in error_of(result).message
        db.expire_all()
        assert len(OrderRepo(db).get_order(first.order_id).payments) == 1
