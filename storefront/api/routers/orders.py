# storefront/api/routers/orders.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import current_user, raise_error, raise_for, require_admin
from storefront.api.routers.checkout import get_service as get_checkout_service, to_checkout_out
from storefront.data.database import get_db
from storefront.domain.errors import NotFoundError
from storefront.domain.identity import UserIdentity
from storefront.domain.schemas import CheckoutOut, OrderOut, OrderStatusOut
from storefront.repos.order_repo import OrderRepo
from storefront.services.order_service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


def get_service(db: Session):
    return OrderService(db)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    user: UserIdentity | None = Depends(current_user),
    db: Session = Depends(get_db),
):
    return raise_for(get_service(db).get_order(order_id, user))


@router.get("/{order_id}/status", response_model=OrderStatusOut)
def get_order_status(
    order_id: int,
    user: UserIdentity | None = Depends(current_user),
    db: Session = Depends(get_db),
):
    """
    Polled by the payment return page. Never changes anything;
    status moves only through webhooks and the poll task.
    """
    return raise_for(get_service(db).get_status(order_id, user))


@router.post("/{order_id}/payments", response_model=CheckoutOut, status_code=201)
def retry_payment(
    order_id: int,
    user: UserIdentity | None = Depends(current_user),
    db: Session = Depends(get_db),
):
    """New payment attempt with the provider of the last one."""
    last = OrderRepo(db).latest_payment(order_id)
    if last is None:
        raise_error(NotFoundError(f"Order {order_id} has no payment to retry", order_id=order_id))

    svc = get_checkout_service(db, last.provider)
    return to_checkout_out(raise_for(svc.retry_payment(order_id, user.id if user else None)))


@router.post("/{order_id}/cancel", response_model=OrderOut)
def cancel_order(order_id: int, admin: UserIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    return raise_for(get_service(db).cancel(order_id, admin))


@router.post("/{order_id}/ship", response_model=OrderOut)
def ship_order(order_id: int, admin: UserIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    return raise_for(get_service(db).mark_shipped(order_id, admin))


@router.post("/{order_id}/deliver", response_model=OrderOut)
def deliver_order(order_id: int, admin: UserIdentity = Depends(require_admin), db: Session = Depends(get_db)):
    return raise_for(get_service(db).mark_delivered(order_id, admin))
