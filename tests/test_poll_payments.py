from datetime import datetime, timedelta, timezone

from storefront.domain.cart import Cart, CartLine
from storefront.domain.status import OrderStatus
from storefront.repos.order_repo import OrderRepo
from storefront.services.checkout_service import CheckoutService
from storefront.services.payment_providers import map_mercadopago_status
from storefront.services.reconciler import PaymentReconciler
from storefront.tasks.poll_payments import poll_stale_payments


def _checkout(db, provider):
    cart = Cart(id="c1", lines=(CartLine(1, "S", "black", 1),))
    return CheckoutService(db, provider).checkout(cart, 1, {"email": "ana@example.com"}).value


class TestPollStalePayments:
    def test_stale_order_is_reconciled(self, db, providers, notifications):
        provider = providers["mercadopago"]
        out = _checkout(db, provider)
        provider.set_status(out.provider_ref_id, "approved")

        later = datetime.now(timezone.utc) + timedelta(hours=1)
        summary = poll_stale_payments(db, now=later, notifications=notifications)

        assert summary == {"checked": 1, "applied": 1, "skipped": 0, "errors": 0}
        db.expire_all()
        assert OrderRepo(db).get_order(out.order_id).status == OrderStatus.PAID.value
        assert notifications.sent == [("order_confirmation", out.order_id)]

    def test_recent_orders_are_left_to_webhooks(self, db, providers, notifications):
        provider = providers["mercadopago"]
        _checkout(db, provider)

        summary = poll_stale_payments(db, notifications=notifications)

        assert summary["checked"] == 0
        assert not any(call["method"] == "get_payment_status" for call in provider.calls)

    def test_provider_outage_is_counted(self, db, providers, notifications):
        provider = providers["mercadopago"]
        _checkout(db, provider)
        provider.configure(should_fail=True)

        later = datetime.now(timezone.utc) + timedelta(hours=1)
        summary = poll_stale_payments(db, now=later, notifications=notifications)

        assert summary["errors"] == 1

    def test_paid_order_on_hold_completes_after_restock(self, db, catalog, providers, notifications):
        provider = providers["mercadopago"]
        cart = Cart(id="c2", lines=(CartLine(1, "M", "black", 3),))
        out = CheckoutService(db, provider).checkout(cart, 1, {"email": "ana@example.com"}).value
        variant_id = catalog.get_variant(1, "M", "black").id
        catalog.set_stock(variant_id, 1)
        catalog.commit()
        PaymentReconciler(db, notifications=notifications).apply(
            out.provider_ref_id, map_mercadopago_status("approved")
        )
        db.expire_all()
        assert OrderRepo(db).get_order(out.order_id).status == OrderStatus.REQUIRES_ACTION.value

        catalog.set_stock(variant_id, 5)
        catalog.commit()
        provider.set_status(out.provider_ref_id, "approved")
        later = datetime.now(timezone.utc) + timedelta(hours=2)
        summary = poll_stale_payments(db, now=later, notifications=notifications)

        assert summary == {"checked": 1, "applied": 1, "skipped": 0, "errors": 0}
        db.expire_all()
        assert OrderRepo(db).get_order(out.order_id).status == OrderStatus.PAID.value
        assert catalog.get_stock(variant_id) == 2
        assert notifications.sent == [("order_confirmation", out.order_id)]

    def test_unknown_status_on_hold_is_not_polled(self, db, providers, notifications):
        provider = providers["mercadopago"]
        out = _checkout(db, provider)
        PaymentReconciler(db, notifications=notifications).apply(
            out.provider_ref_id, map_mercadopago_status("in_mediation")
        )

        later = datetime.now(timezone.utc) + timedelta(hours=2)
        summary = poll_stale_payments(db, now=later, notifications=notifications)

        assert summary["checked"] == 0
