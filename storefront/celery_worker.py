# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, PAYMENT_POLL_AFTER_SECONDS

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# import task modules explicitly so the worker registers them
celery_app.conf.imports = (
    "storefront.tasks.poll_payments",
    "storefront.services.notification_service",
)

celery_app.conf.beat_schedule = {
    "poll-stale-payments": {
        "task": "storefront.tasks.poll_payments.poll_stale_payments_task",
        "schedule": float(max(PAYMENT_POLL_AFTER_SECONDS // 2, 60)),
    },
}

celery_app.conf.timezone = "UTC"
