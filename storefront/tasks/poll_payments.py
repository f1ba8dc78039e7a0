# storefront/tasks/poll_payments.py
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from storefront.celery_worker import celery_app
from storefront.data.database import SessionLocal
from storefront.domain.errors import PaymentProviderError
from storefront.domain.results import Ok
from storefront.domain.status import AWAITING_PAYMENT_STATUSES, OrderStatus, PaymentStatus
from storefront.repos.order_repo import OrderRepo
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.payment_providers import get_provider
from storefront.services.reconciler import PaymentReconciler
from storefront.utils.logging import get_logger
from storefront.utils.settings import PAYMENT_POLL_AFTER_SECONDS

logger = get_logger(__name__)


def poll_stale_payments(
    db: Session,
    now: datetime | None = None,
    lock_service: LockService | None = None,
    notifications: NotificationService | None = None,
) -> dict:
    """
    Orders stuck waiting for a webhook: ask the provider about their latest
    payment and run the answer through the reconciler.

    Paid orders parked in REQUIRES_ACTION (stock ran out before the payment
    was confirmed) are polled too, so a restock lets them complete.
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(seconds=PAYMENT_POLL_AFTER_SECONDS)
    orders = OrderRepo(db)
    reconciler = PaymentReconciler(db, notifications=notifications, lock_service=lock_service)

    stale = [
        (order, orders.latest_payment(order.id))
        for order in orders.list_awaiting_payment([s.value for s in AWAITING_PAYMENT_STATUSES], cutoff)
    ]
    on_hold = [
        (order, orders.latest_payment(order.id, status=PaymentStatus.SUCCEEDED.value))
        for order in orders.list_paid_on_hold(
            OrderStatus.REQUIRES_ACTION.value, PaymentStatus.SUCCEEDED.value, cutoff
        )
    ]
    logger.info(
        f"Found {len(stale)} orders awaiting payment and {len(on_hold)} paid orders on hold "
        f"since before {cutoff.isoformat()}"
    )

    applied = skipped = errors = 0
    for order, payment in stale + on_hold:
        provider = get_provider(payment.provider) if payment else None
        if provider is None:
            skipped += 1
            continue

        try:
            result = reconciler.poll(provider, payment.provider_ref_id)
        except PaymentProviderError as e:
            logger.warning(f"Polling {payment.provider_ref_id} failed: {e.message}")
            errors += 1
            continue

        match result:
            case Ok(outcome) if outcome.applied:
                applied += 1
            case _:
                skipped += 1

    return {"checked": len(stale) + len(on_hold), "applied": applied, "skipped": skipped, "errors": errors}


@celery_app.task(name="storefront.tasks.poll_payments.poll_stale_payments_task")
def poll_stale_payments_task():
    logger.info("Poll stale payments task started")

    db = SessionLocal()
    try:
        summary = poll_stale_payments(db, lock_service=LockService())
        logger.info(f"Poll stale payments task finished: {summary}")
        return summary
    finally:
        db.close()
