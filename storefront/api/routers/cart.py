# storefront/api/routers/cart.py
from fastapi import APIRouter, Depends, Request, Response

from storefront.api.deps import CartContext, cart_context, raise_error, raise_for
from storefront.domain.cart import CartLine
from storefront.domain.cookie import parse_cookie_cart
from storefront.domain.errors import UnauthorizedError
from storefront.domain.schemas import AddItemsIn, CartOut, ItemIn, QuantityIn, TotalsOut
from storefront.services.cart_service import CartView
from storefront.utils.settings import CART_COOKIE_NAME

router = APIRouter(prefix="/cart", tags=["cart"])


def to_cart_out(view: CartView) -> CartOut:
    cart = view.cart
    return CartOut(
        id=cart.id,
        user_id=cart.user_id,
        is_synced=cart.is_synced,
        last_error=cart.last_error,
        item_count=cart.item_count,
        items=[
            {
                "line_id": line.line_id,
                "product_id": line.product_id,
                "size": line.size,
                "color": line.color,
                "quantity": line.quantity,
                "variant_id": line.variant_id,
                "unit_price": line.unit_price,
                "currency": line.currency,
                "available_stock": line.available_stock,
            }
            for line in cart.lines
        ],
        totals=view.totals.to_dict(),
        warnings=[
            {"line_id": w.line_id, "requested": w.requested, "applied": w.applied}
            for w in view.warnings
        ],
    )


def _respond(ctx: CartContext, response: Response, result) -> CartOut:
    view = raise_for(result)
    ctx.write_cookie(response)
    return to_cart_out(view)


@router.get("", response_model=CartOut)
def get_cart(response: Response, ctx: CartContext = Depends(cart_context)):
    if ctx.user is not None:
        return _respond(ctx, response, ctx.service.load_from_server())
    return _respond(ctx, response, ctx.service.view(ctx.service.current()))


@router.get("/totals", response_model=TotalsOut)
def get_totals(ctx: CartContext = Depends(cart_context)):
    view = raise_for(ctx.service.view(ctx.service.current()))
    return view.totals.to_dict()


@router.post("/items", response_model=CartOut)
def add_items(
    payload: ItemIn | AddItemsIn,
    response: Response,
    ctx: CartContext = Depends(cart_context),
):
    """
    Adds one selection or a batch. The merged quantity is validated
    against stock before anything is stored.
    """
    items = payload.items if isinstance(payload, AddItemsIn) else [payload]
    lines = [
        CartLine(product_id=item.product_id, size=item.size, color=item.color, quantity=item.quantity)
        for item in items
    ]
    return _respond(ctx, response, ctx.service.add_items(ctx.service.current(), lines))


@router.patch("/items/{line_id}", response_model=CartOut)
def update_item(
    line_id: str,
    payload: QuantityIn,
    response: Response,
    ctx: CartContext = Depends(cart_context),
):
    cart = ctx.service.current()
    return _respond(ctx, response, ctx.service.update_quantity(cart, line_id, payload.quantity))


@router.delete("/items/{line_id}", response_model=CartOut)
def remove_item(line_id: str, response: Response, ctx: CartContext = Depends(cart_context)):
    return _respond(ctx, response, ctx.service.remove_item(ctx.service.current(), line_id))


@router.delete("", response_model=CartOut)
def clear_cart(response: Response, ctx: CartContext = Depends(cart_context)):
    return _respond(ctx, response, ctx.service.clear(ctx.service.current()))


@router.post("/sync", response_model=CartOut)
def sync_cart(request: Request, response: Response, ctx: CartContext = Depends(cart_context)):
    """
    After login: fold the guest cookie cart into the user's cart, once,
    then drop the cookie.
    """
    if ctx.user is None:
        raise_error(UnauthorizedError("Log in to sync the cart"))

    guest = parse_cookie_cart(request.cookies.get(CART_COOKIE_NAME))
    if guest is None:
        out = _respond(ctx, response, ctx.service.load_from_server())
    else:
        out = _respond(ctx, response, ctx.service.sync_with_server(guest))
    response.delete_cookie(CART_COOKIE_NAME, path="/")
    return out
