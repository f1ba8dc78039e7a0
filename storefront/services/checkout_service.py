# storefront/services/checkout_service.py
from dataclasses import dataclass

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderItemModel, OrderModel
from storefront.data.models.payment import PaymentModel
from storefront.domain.cart import Cart
from storefront.domain.catalog import VariantSelector
from storefront.domain.errors import (
    NotFoundError,
    PaymentProviderError,
    StorefrontError,
    UnauthorizedError,
    ValidationError,
)
from storefront.domain.results import Error, Ok, Result
from storefront.domain.status import OrderStatus, PaymentStatus
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.payment_providers import PaymentProvider
from storefront.services.pricing import PricingResolver
from storefront.services.stock_validator import StockValidator
from storefront.services.totals import OrderTotals, TotalsPolicy, compute_totals
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

# a payment attempt can be started again from these
RETRYABLE_STATUSES = frozenset({OrderStatus.DRAFT, OrderStatus.FAILED})


@dataclass(frozen=True)
class CheckoutResult:
    order_id: int
    status: str
    provider: str
    provider_ref_id: str
    totals: OrderTotals
    currency: str
    redirect_url: str | None = None
    client_secret: str | None = None


class CheckoutService:
    """
    Use Case: cart -> order -> payment attempt.

    1. Re-validates every line against current stock
    2. Freezes unit prices into order lines
    3. Computes totals once, through compute_totals
    4. Asks the provider for a payment intent and moves the order to PENDING

    Stock is not reserved here; it is committed when the payment is
    confirmed (see PaymentReconciler).
    """

    def __init__(self, db: Session, provider: PaymentProvider, policy: TotalsPolicy | None = None):
        self.db = db
        self.provider = provider
        self.orders = OrderRepo(db)
        self.catalog = CatalogRepo(db)
        self.validator = StockValidator(self.catalog)
        self.pricing = PricingResolver(self.catalog)
        self.policy = policy or TotalsPolicy.from_settings()

    def checkout(
        self,
        cart: Cart,
        user_id: int | None,
        contact_info: dict,
        shipping_info: dict | None = None,
    ) -> Result[CheckoutResult, StorefrontError]:
        if not cart.lines:
            return Error(ValidationError("Cart is empty"))

        validation = self.validator.validate_all(cart.lines)
        if not validation.is_valid:
            logger.info(f"Checkout of cart {cart.id} rejected: {validation.errors[0].message}")
            return Error(validation.errors[0])

        products = self.catalog.get_products(line.product_id for line in validation.lines)
        items, currencies = [], set()
        try:
            for line in validation.lines:
                quote = self.pricing.resolve_price(line.product_id, VariantSelector.by_id(line.variant_id))
                items.append(
                    OrderItemModel(
                        product_id=line.product_id,
                        variant_id=quote.variant_id,
                        size=line.size,
                        color=line.color,
                        name=products[line.product_id].name,
                        quantity=line.quantity,
                        unit_price=quote.unit_price,
                    )
                )
                currencies.add(quote.currency)
        except NotFoundError as e:
            return Error(e)

        if len(currencies) != 1:
            return Error(ValidationError("Cart mixes currencies", currencies=sorted(currencies)))

        totals = compute_totals(items, self.policy)
        order = OrderModel(
            user_id=user_id,
            status=OrderStatus.DRAFT.value,
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping_cost=totals.shipping,
            total=totals.total,
            currency=currencies.pop(),
            contact_info=contact_info,
            shipping_info=shipping_info,
            items=items,
        )

        try:
            self.orders.create_order(order)
            self.orders.commit()
        except Exception:
            self.orders.rollback()
            raise

        logger.info(f"Order {order.id} created from cart {cart.id}, total {order.total} {order.currency}")
        return self._start_payment(order)

    def retry_payment(self, order_id: int, user_id: int | None) -> Result[CheckoutResult, StorefrontError]:
        """New payment attempt for an order whose previous attempt failed (or never started)."""
        order = self.orders.get_order(order_id)
        if order is None:
            return Error(NotFoundError(f"Order {order_id} not found", order_id=order_id))
        if order.user_id is not None and order.user_id != user_id:
            return Error(UnauthorizedError("No access to this order", order_id=order_id))

        status = OrderStatus(order.status)
        if status not in RETRYABLE_STATUSES:
            return Error(
                ValidationError(f"Order {order_id} is {status.value}, payment cannot be retried", order_id=order_id)
            )
        if self.orders.latest_payment(order.id, status=PaymentStatus.SUCCEEDED.value) is not None:
            # a late approval already collected the money
            return Error(ValidationError(f"Order {order_id} is already paid", order_id=order_id))
        return self._start_payment(order)

    def _start_payment(self, order: OrderModel) -> Result[CheckoutResult, StorefrontError]:
        try:
            intent = self.provider.create_payment_intent(order)
        except PaymentProviderError as e:
            # order stays where it was, the customer can retry
            logger.error(f"Payment intent for order {order.id} failed: {e.details}")
            return Error(PaymentProviderError(order_id=order.id))

        try:
            self.orders.create_payment(
                PaymentModel(
                    order_id=order.id,
                    provider=intent.provider,
                    provider_ref_id=intent.provider_ref_id,
                    amount=order.total,
                    currency=order.currency,
                    status=PaymentStatus.REQUIRES_ACTION.value,
                )
            )
            order.status = OrderStatus.PENDING.value
            self.orders.commit()
        except Exception:
            self.orders.rollback()
            raise

        logger.info(f"Order {order.id} awaiting {intent.provider} payment {intent.provider_ref_id}")
        return Ok(
            CheckoutResult(
                order_id=order.id,
                status=order.status,
                provider=intent.provider,
                provider_ref_id=intent.provider_ref_id,
                totals=OrderTotals(order.subtotal, order.tax, order.shipping_cost, order.total),
                currency=order.currency,
                redirect_url=intent.redirect_url,
                client_secret=intent.client_secret,
            )
        )
