# storefront/services/reconciler.py
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.payment import PaymentModel
from storefront.domain.errors import (
    ConcurrencyConflictError,
    InsufficientStockError,
    ReconciliationConflictError,
    StorefrontError,
)
from storefront.domain.results import Error, Ok, Result
from storefront.domain.status import (
    RECONCILE_TABLE,
    TERMINAL_STATUSES,
    OrderStatus,
    PaymentStatus,
    ProviderStatus,
    can_transition,
    transition_path,
)
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.lock_service import LockBusyError, LockService
from storefront.services.notification_service import NotificationService
from storefront.services.payment_providers import PaymentProvider
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReconcileOutcome:
    provider_ref_id: str
    applied: bool
    order_id: int | None = None
    order_status: str | None = None
    payment_status: str | None = None
    reason: str | None = None


class PaymentReconciler:
    """
    Applies provider payment statuses to orders.

    Keyed on the provider reference id: a notification only changes
    anything when the stored status differs from the status it implies, so
    duplicate deliveries are no-ops. Status changes, stock commitment and
    the payment record are written in one transaction; notifications go out
    only after it committed.
    """

    def __init__(
        self,
        db: Session,
        notifications: NotificationService | None = None,
        lock_service: LockService | None = None,
    ):
        self.db = db
        self.orders = OrderRepo(db)
        self.catalog = CatalogRepo(db)
        self.notifications = notifications or NotificationService()
        self.lock_service = lock_service

    def apply(self, provider_ref_id: str, status: ProviderStatus) -> Result[ReconcileOutcome, StorefrontError]:
        if self.lock_service is None:
            return self._apply(provider_ref_id, status)

        try:
            with self.lock_service.payment_lock(provider_ref_id):
                return self._apply(provider_ref_id, status)
        except LockBusyError as e:
            logger.warning(str(e))
            return Error(
                ConcurrencyConflictError("Notification is already being processed", provider_ref_id=provider_ref_id)
            )

    def poll(self, provider: PaymentProvider, provider_ref_id: str) -> Result[ReconcileOutcome, StorefrontError]:
        """Ask the provider for the current status and feed it through apply()."""
        status = provider.get_payment_status(provider_ref_id)
        logger.info(f"Polled {provider.name} payment {provider_ref_id}: {status.raw} -> {status.kind.value}")
        return self.apply(provider_ref_id, status)

    def _apply(self, provider_ref_id: str, status: ProviderStatus) -> Result[ReconcileOutcome, StorefrontError]:
        payment = self.orders.get_payment_by_ref(provider_ref_id, for_update=True)
        if payment is None:
            # provider retries are expected, unknown references are not an alarm
            return self._ignored(provider_ref_id, "unknown payment reference")

        order = payment.order
        current = OrderStatus(order.status)
        order_target, payment_target = RECONCILE_TABLE[status.kind]

        if current in TERMINAL_STATUSES:
            return self._ignored(provider_ref_id, f"order {order.id} is already {current.value}", order, payment)

        if current == order_target and payment.status == payment_target.value:
            return self._ignored(provider_ref_id, "already applied", order, payment)

        path = [] if current == order_target else transition_path(current, order_target)
        if path is None:
            conflict = ReconciliationConflictError(
                f"Order {order.id} cannot go from {current.value} to {order_target.value}",
                order_id=order.id,
            )
            return self._ignored(provider_ref_id, conflict.message, order, payment)

        logger.info(
            f"Reconciling payment {provider_ref_id} ({status.raw}): order {order.id} "
            f"{current.value} -> {order_target.value}, payment {payment.status} -> {payment_target.value}"
        )

        try:
            self._record_payment(payment, payment_target)
            for step in path:
                if step == OrderStatus.PAID:
                    self._commit_stock(order)
                    order.paid_at = datetime.now(timezone.utc)
                order.status = step.value
            self.db.commit()
        except InsufficientStockError as e:
            self.db.rollback()
            logger.error(f"Stock shortfall while confirming order {order.id}: {e.message}")
            return self._hold_for_action(provider_ref_id, payment_target, e)
        except Exception:
            self.db.rollback()
            logger.error(f"Reconciliation of {provider_ref_id} failed, rolled back")
            raise

        self._notify(order, path)
        return Ok(
            ReconcileOutcome(
                provider_ref_id=provider_ref_id,
                applied=True,
                order_id=order.id,
                order_status=order.status,
                payment_status=payment.status,
            )
        )

    def _record_payment(self, payment: PaymentModel, target: PaymentStatus):
        now = datetime.now(timezone.utc)
        payment.status = target.value
        if target == PaymentStatus.SUCCEEDED and payment.paid_at is None:
            payment.paid_at = now
        elif target == PaymentStatus.FAILED:
            payment.failed_at = now

    def _commit_stock(self, order: OrderModel):
        """Atomic conditional decrement per line, at most once per order."""
        if order.stock_committed:
            return
        for item in order.items:
            if not self.catalog.decrement_stock(item.variant_id, item.quantity):
                available = self.catalog.get_stock(item.variant_id) or 0
                raise InsufficientStockError(
                    requested=item.quantity,
                    available=available,
                    variant_id=item.variant_id,
                    order_id=order.id,
                )
        order.stock_committed = True

    def _hold_for_action(self, provider_ref_id: str, payment_target: PaymentStatus, error: InsufficientStockError):
        # money was collected but stock is gone: keep the payment, park the order
        payment = self.orders.get_payment_by_ref(provider_ref_id, for_update=True)
        order = payment.order
        current = OrderStatus(order.status)
        changed = payment.status != payment_target.value or current != OrderStatus.REQUIRES_ACTION
        try:
            self._record_payment(payment, payment_target)
            if current != OrderStatus.REQUIRES_ACTION:
                if not can_transition(current, OrderStatus.REQUIRES_ACTION):
                    raise ReconciliationConflictError(
                        f"Paid order {order.id} cannot be parked from {current.value}", order_id=order.id
                    )
                order.status = OrderStatus.REQUIRES_ACTION.value
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        return Ok(
            ReconcileOutcome(
                provider_ref_id=provider_ref_id,
                applied=changed,
                order_id=order.id,
                order_status=order.status,
                payment_status=payment.status,
                reason=error.message,
            )
        )

    def _notify(self, order: OrderModel, path: list[OrderStatus]):
        email = (order.contact_info or {}).get("email")
        try:
            if OrderStatus.PAID in path:
                self.notifications.send_order_confirmation(order.id, order.user_id, email)
            elif OrderStatus.FAILED in path:
                self.notifications.send_payment_failed(order.id, order.user_id, email)
        except Exception as e:
            # state is committed, a lost email must not turn into a provider retry
            logger.error(f"Could not enqueue notification for order {order.id}: {e}")

    def _ignored(self, provider_ref_id, reason, order=None, payment=None) -> Result[ReconcileOutcome, StorefrontError]:
        logger.info(f"Notification for {provider_ref_id} ignored: {reason}")
        return Ok(
            ReconcileOutcome(
                provider_ref_id=provider_ref_id,
                applied=False,
                order_id=order.id if order is not None else None,
                order_status=order.status if order is not None else None,
                payment_status=payment.status if payment is not None else None,
                reason=reason,
            )
        )
