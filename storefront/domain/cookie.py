# storefront/domain/cookie.py
import json
from urllib.parse import quote, unquote

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from storefront.domain.cart import Cart, CartLine
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CookieCartItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: int = Field(..., alias="productId", gt=0)
    size: str = Field(..., min_length=1)
    color: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)


class CookieCart(BaseModel):
    id: str = Field(..., min_length=1)
    items: list[CookieCartItem] = Field(default_factory=list)


def serialize_cookie_cart(cart: Cart) -> str:
    payload = CookieCart(
        id=cart.id,
        items=[
            CookieCartItem(
                product_id=line.product_id,
                size=line.size,
                color=line.color,
                quantity=line.quantity,
            )
            for line in cart.lines
        ],
    )
    # percent-encoded so the cookie value needs no quoting
    return quote(payload.model_dump_json(by_alias=True), safe="")


def parse_cookie_cart(raw: str | None) -> Cart | None:
    """Malformed or missing cookie is treated as no cart at all."""
    if not raw:
        return None
    try:
        parsed = CookieCart.model_validate(json.loads(unquote(raw)))
    except (ValueError, PydanticValidationError) as e:
        logger.warning(f"Ignoring malformed cart cookie: {e}")
        return None

    lines = [
        CartLine(
            product_id=item.product_id,
            size=item.size,
            color=item.color,
            quantity=item.quantity,
        )
        for item in parsed.items
    ]
    return Cart(id=parsed.id, lines=tuple(lines))
