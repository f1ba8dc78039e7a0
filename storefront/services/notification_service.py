# storefront/services/notification_service.py
from storefront.celery_worker import celery_app
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Customer notifications, delivered asynchronously by Celery.
    Callers enqueue only after their transaction committed.
    """

    def send_order_confirmation(self, order_id: int, user_id: int | None, contact_email: str | None = None):
        send_order_confirmation_task.delay(order_id, user_id, contact_email)

    def send_payment_failed(self, order_id: int, user_id: int | None, contact_email: str | None = None):
        send_payment_failed_task.delay(order_id, user_id, contact_email)


@celery_app.task(name="storefront.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(order_id: int, user_id: int | None, contact_email: str | None):
    """
    Would hand the confirmation to an email provider; for now it is logged.
    """
    logger.info(f"[NOTIFICATION] Order {order_id} confirmed (user {user_id}, email {contact_email})")
    return {"order_id": order_id, "kind": "order_confirmation", "status": "sent"}


@celery_app.task(name="storefront.services.notification_service.send_payment_failed_task")
def send_payment_failed_task(order_id: int, user_id: int | None, contact_email: str | None):
    logger.info(f"[NOTIFICATION] Payment for order {order_id} failed (user {user_id}, email {contact_email})")
    return {"order_id": order_id, "kind": "payment_failed", "status": "sent"}
