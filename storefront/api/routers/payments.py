# storefront/api/routers/payments.py
import json

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from storefront.api.deps import get_lock_service, get_notifications, raise_error, raise_for, raw_body
from storefront.data.database import get_db
from storefront.domain.errors import NotFoundError, StorefrontError, ValidationError
from storefront.domain.schemas import WebhookAck
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.payment_providers import get_provider
from storefront.services.reconciler import PaymentReconciler
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhooks/{provider_name}", response_model=WebhookAck)
def payment_webhook(
    provider_name: str,
    request: Request,
    body: bytes = Depends(raw_body),
    db: Session = Depends(get_db),
    lock_service: LockService | None = Depends(get_lock_service),
    notifications: NotificationService = Depends(get_notifications),
):
    """
    Provider notifications. Anything we cannot act on (other event types,
    unknown references, orders already closed) is acknowledged with 200 so
    the provider stops retrying.
    """
    provider = get_provider(provider_name)
    if provider is None:
        raise_error(NotFoundError(f"Unknown payment provider {provider_name}", provider=provider_name))

    try:
        payload = json.loads(body or b"{}")
    except ValueError:
        raise_error(ValidationError("Webhook body is not JSON"))
    # mercadopago sends the topic and id as query params too
    payload = {**dict(request.query_params), **payload} if isinstance(payload, dict) else dict(request.query_params)

    try:
        notification = provider.parse_notification(body, payload, dict(request.headers))
    except StorefrontError as e:
        logger.warning(f"{provider_name} webhook rejected: {e.message}")
        raise_error(e)
    if notification is None:
        logger.info(f"{provider_name} webhook ignored: not a payment event")
        return WebhookAck(reason="not a payment event")

    reconciler = PaymentReconciler(db, notifications=notifications, lock_service=lock_service)
    outcome = raise_for(reconciler.apply(notification.provider_ref_id, notification.status))
    return WebhookAck(
        applied=outcome.applied,
        order_id=outcome.order_id,
        status=outcome.order_status,
        reason=outcome.reason,
    )
