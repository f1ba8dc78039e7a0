# storefront/api/routers/checkout.py
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from storefront.api.deps import CartContext, cart_context, raise_error, raise_for
from storefront.data.database import get_db
from storefront.domain.errors import ValidationError
from storefront.domain.results import error_of
from storefront.domain.schemas import CheckoutIn, CheckoutOut
from storefront.services.checkout_service import CheckoutResult, CheckoutService
from storefront.services.cart_store import CookieCartStore
from storefront.services.payment_providers import get_provider
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["checkout"])


def get_service(db: Session, provider_name: str) -> CheckoutService:
    provider = get_provider(provider_name)
    if provider is None:
        raise_error(ValidationError(f"Unknown payment provider {provider_name}", provider=provider_name))
    return CheckoutService(db, provider)


def to_checkout_out(result: CheckoutResult) -> CheckoutOut:
    return CheckoutOut(
        order_id=result.order_id,
        status=result.status,
        provider=result.provider,
        provider_ref_id=result.provider_ref_id,
        currency=result.currency,
        totals=result.totals.to_dict(),
        redirect_url=result.redirect_url,
        client_secret=result.client_secret,
    )


@router.post("/checkout", response_model=CheckoutOut, status_code=201)
def checkout(
    payload: CheckoutIn,
    response: Response,
    ctx: CartContext = Depends(cart_context),
    db: Session = Depends(get_db),
):
    """
    Turns the current cart into an order and starts the payment.
    The cart is emptied only once the payment attempt exists.
    """
    svc = get_service(db, payload.provider)
    cart = ctx.service.current()

    result = raise_for(
        svc.checkout(
            cart,
            user_id=ctx.user.id if ctx.user else None,
            contact_info=payload.contact.model_dump(),
            shipping_info=payload.shipping.model_dump() if payload.shipping else None,
        )
    )

    if isinstance(ctx.store, CookieCartStore):
        ctx.store.discard()
        ctx.write_cookie(response)
    else:
        error = error_of(ctx.service.clear(cart))
        if error is not None:
            # the order exists, a stale cart is not worth failing the checkout for
            logger.warning(f"Cart {cart.id} not cleared after order {result.order_id}: {error.message}")

    return to_checkout_out(result)
