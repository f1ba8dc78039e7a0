# storefront/services/order_service.py
from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.domain.errors import NotFoundError, StorefrontError, UnauthorizedError, ValidationError
from storefront.domain.identity import UserIdentity
from storefront.domain.results import Error, Ok, Result
from storefront.domain.status import CANCELLABLE_STATUSES, OrderStatus, can_transition
from storefront.repos.order_repo import OrderRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def order_to_dict(order: OrderModel) -> dict:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "status": order.status,
        "currency": order.currency,
        "subtotal": order.subtotal,
        "tax": order.tax,
        "shipping": order.shipping_cost,
        "total": order.total,
        "items": [
            {
                "product_id": item.product_id,
                "variant_id": item.variant_id,
                "name": item.name,
                "size": item.size,
                "color": item.color,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }
            for item in order.items
        ],
        "payments": [
            {
                "provider": payment.provider,
                "provider_ref_id": payment.provider_ref_id,
                "amount": payment.amount,
                "status": payment.status,
            }
            for payment in order.payments
        ],
        "created_at": order.created_at,
        "paid_at": order.paid_at,
    }


class OrderService:
    """
    Reads and fulfillment actions on orders. Payment-driven transitions
    belong to PaymentReconciler, creation to CheckoutService.
    """

    def __init__(self, db: Session):
        self.db = db
        self.repo = OrderRepo(db)

    def get_order(self, order_id: int, user: UserIdentity | None) -> Result[dict, StorefrontError]:
        """
        Use Case: order details (Query).
        """
        match self._visible_order(order_id, user):
            case Ok(order):
                return Ok(order_to_dict(order))
            case failed:
                return failed

    def get_status(self, order_id: int, user: UserIdentity | None) -> Result[dict, StorefrontError]:
        """Read-only, safe to poll from the payment return page."""
        match self._visible_order(order_id, user):
            case Ok(order):
                return Ok({"id": order.id, "status": order.status, "paid_at": order.paid_at})
            case failed:
                return failed

    def cancel(self, order_id: int, admin: UserIdentity | None) -> Result[dict, StorefrontError]:
        return self._admin_transition(order_id, admin, OrderStatus.CANCELLED, allowed_from=CANCELLABLE_STATUSES)

    def mark_shipped(self, order_id: int, admin: UserIdentity | None) -> Result[dict, StorefrontError]:
        return self._admin_transition(order_id, admin, OrderStatus.SHIPPED)

    def mark_delivered(self, order_id: int, admin: UserIdentity | None) -> Result[dict, StorefrontError]:
        return self._admin_transition(order_id, admin, OrderStatus.DELIVERED)

    def _visible_order(self, order_id: int, user: UserIdentity | None) -> Result[OrderModel, StorefrontError]:
        order = self.repo.get_order(order_id)
        if not order:
            return Error(NotFoundError(f"Order {order_id} not found", order_id=order_id))

        # guest orders are reachable by id, user orders by their owner or an admin
        if order.user_id is not None and not (user and (user.is_admin or user.id == order.user_id)):
            return Error(UnauthorizedError("No access to this order", order_id=order_id))
        return Ok(order)

    def _admin_transition(
        self, order_id, admin, target: OrderStatus, allowed_from=None
    ) -> Result[dict, StorefrontError]:
        if admin is None or not admin.is_admin:
            return Error(UnauthorizedError("Admin only", order_id=order_id))

        order = self.repo.get_order(order_id)
        if not order:
            return Error(NotFoundError(f"Order {order_id} not found", order_id=order_id))

        current = OrderStatus(order.status)
        if current == target:
            return Ok(order_to_dict(order))
        if not can_transition(current, target) or (allowed_from is not None and current not in allowed_from):
            return Error(
                ValidationError(
                    f"Order {order_id} cannot go from {current.value} to {target.value}",
                    order_id=order_id,
                )
            )

        try:
            self.repo.update_order_status(order_id, target.value)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise

        logger.info(f"Admin {admin.id} moved order {order_id} {current.value} -> {target.value}")
        return Ok(order_to_dict(order))
