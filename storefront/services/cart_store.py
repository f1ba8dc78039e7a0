# storefront/services/cart_store.py
from abc import ABC, abstractmethod

from fastapi import Response

from storefront.domain.cart import Cart
from storefront.domain.cookie import parse_cookie_cart, serialize_cookie_cart
from storefront.repos.cart_repo import CartRepo
from storefront.utils.logging import get_logger
from storefront.utils.settings import CART_COOKIE_MAX_AGE, CART_COOKIE_NAME

logger = get_logger(__name__)


class CartStore(ABC):
    """Where a cart snapshot lives between requests."""

    @abstractmethod
    def load(self) -> Cart: ...

    @abstractmethod
    def save(self, cart: Cart) -> Cart: ...


class CookieCartStore(CartStore):
    """
    Ephemeral cart held by the client. save() only stages the cookie,
    write_to() puts it on the outgoing response.
    """

    def __init__(self, raw_cookie: str | None = None):
        self._cart = parse_cookie_cart(raw_cookie) or Cart.new_ephemeral()
        self._pending: str | None = None
        self._delete = False

    def load(self) -> Cart:
        return self._cart

    def save(self, cart: Cart) -> Cart:
        self._cart = cart
        self._pending = serialize_cookie_cart(cart)
        self._delete = False
        return cart

    def discard(self):
        self._pending = None
        self._delete = True

    def write_to(self, response: Response):
        if self._delete:
            response.delete_cookie(CART_COOKIE_NAME, path="/")
        elif self._pending is not None:
            response.set_cookie(
                key=CART_COOKIE_NAME,
                value=self._pending,
                max_age=CART_COOKIE_MAX_AGE,
                path="/",
                httponly=True,
                samesite="lax",
            )


class DurableCartStore(CartStore):
    """Server-side cart of an authenticated user, one per user."""

    def __init__(self, repo: CartRepo, user_id: int):
        self.repo = repo
        self.user_id = user_id

    def load(self) -> Cart:
        cart = self.repo.get_cart(self.user_id)
        if cart is None:
            return Cart(id=f"user:{self.user_id}", user_id=self.user_id, is_synced=True)
        return cart

    def save(self, cart: Cart) -> Cart:
        try:
            saved = self.repo.put_cart(cart)
            self.repo.commit()
        except Exception:
            self.repo.rollback()
            raise
        logger.info(f"Persisted cart of user {self.user_id}, version {saved.version}")
        return saved
