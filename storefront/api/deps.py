# storefront/api/deps.py
from dataclasses import dataclass

from fastapi import Depends, Header, HTTPException, Request, Response
from sqlalchemy.orm import Session

from storefront.data.database import get_db
from storefront.domain.errors import StorefrontError, UnauthorizedError
from storefront.domain.identity import UserIdentity
from storefront.domain.results import Error, Ok, Result
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.services.cart_service import CartService
from storefront.services.cart_store import CartStore, CookieCartStore, DurableCartStore
from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService
from storefront.services.user_service import UserService
from storefront.utils.settings import CART_COOKIE_NAME

_lock_service: LockService | None = None


def current_user(
    x_user_id: int | None = Header(default=None),
    db: Session = Depends(get_db),
) -> UserIdentity | None:
    """Identity comes from the upstream auth layer as X-User-Id; no header means a guest."""
    return UserService(db).identify(x_user_id)


def require_admin(user: UserIdentity | None = Depends(current_user)) -> UserIdentity:
    if user is None or not user.is_admin:
        raise_error(UnauthorizedError("Admin only"))
    return user


def get_lock_service() -> LockService | None:
    global _lock_service
    if _lock_service is None:
        _lock_service = LockService()
    return _lock_service


def get_notifications() -> NotificationService:
    return NotificationService()


@dataclass
class CartContext:
    service: CartService
    store: CartStore
    user: UserIdentity | None

    def write_cookie(self, response: Response):
        if isinstance(self.store, CookieCartStore):
            self.store.write_to(response)


def cart_context(
    request: Request,
    db: Session = Depends(get_db),
    user: UserIdentity | None = Depends(current_user),
) -> CartContext:
    if user is None:
        store = CookieCartStore(request.cookies.get(CART_COOKIE_NAME))
    else:
        store = DurableCartStore(CartRepo(db), user.id)
    return CartContext(service=CartService(CatalogRepo(db), store), store=store, user=user)


def raise_error(error: StorefrontError):
    raise HTTPException(status_code=error.http_status, detail=error.to_dict())


def raise_for(result: Result):
    """Unwrap a use-case result or turn its error into an HTTP error."""
    match result:
        case Ok(value):
            return value
        case Error(error):
            raise_error(error)


async def raw_body(request: Request) -> bytes:
    """Request body as sent; signature checks need the exact bytes."""
    return await request.body()
