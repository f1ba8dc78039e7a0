# storefront/repos/cart_repo.py
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_item import CartItemModel
from storefront.domain.cart import Cart, CartLine
from storefront.domain.errors import ConcurrencyConflictError


class CartRepo:
    """Durable carts, one per user. Lines are replaced wholesale on every put."""

    def __init__(self, db: Session):
        self.db = db

    def get_cart(self, user_id: int) -> Cart | None:
        model = self.db.execute(
            select(CartModel)
            .where(CartModel.user_id == user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        if not model:
            return None

        items = self.db.execute(
            select(CartItemModel)
            .where(CartItemModel.cart_id == model.id)
            .order_by(CartItemModel.id)
        ).scalars().all()

        return Cart(
            id=str(model.id),
            user_id=model.user_id,
            lines=tuple(
                CartLine(
                    product_id=i.product_id,
                    size=i.size,
                    color=i.color,
                    quantity=i.quantity,
                    variant_id=i.variant_id,
                    available_stock=i.available_stock,
                )
                for i in items
            ),
            is_synced=True,
            absorbed_cart_ids=frozenset(model.absorbed_cart_ids or ()),
            version=model.version,
        )

    def put_cart(self, cart: Cart) -> Cart:
        model = self.db.execute(
            select(CartModel)
            .where(CartModel.user_id == cart.user_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        absorbed = sorted(cart.absorbed_cart_ids)

        if model is None:
            model = CartModel(
                user_id=cart.user_id,
                status="ACTIVE",
                version=1,
                absorbed_cart_ids=absorbed,
            )
            self.db.add(model)
            try:
                self.db.flush()
            except IntegrityError as e:
                # another request created this user's cart first
                raise ConcurrencyConflictError(
                    "Cart was created by another request",
                    user_id=cart.user_id,
                ) from e
            new_version = 1
        else:
            if cart.version is None:
                # snapshot taken before the cart existed
                raise ConcurrencyConflictError(
                    "Cart was created by another request",
                    cart_id=model.id,
                )
            old_version = cart.version
            new_version = old_version + 1
            # optimistic locking, e.g. update ... set version 3 where id 1 and version 2
            rowcount = self.update_cart_version(
                cart_id=model.id,
                old_version=old_version,
                new_data={
                    "version": new_version,
                    "absorbed_cart_ids": absorbed,
                    "updated_at": datetime.now(timezone.utc),
                },
            )
            if rowcount == 0:
                raise ConcurrencyConflictError(
                    "Cart was modified by another request",
                    cart_id=model.id,
                )

        self.db.execute(delete(CartItemModel).where(CartItemModel.cart_id == model.id))
        for line in cart.lines:
            self.db.add(
                CartItemModel(
                    cart_id=model.id,
                    product_id=line.product_id,
                    size=line.size,
                    color=line.color,
                    quantity=line.quantity,
                    variant_id=line.variant_id,
                    available_stock=line.available_stock,
                )
            )
        self.db.flush()

        return Cart(
            id=str(model.id),
            user_id=cart.user_id,
            lines=cart.lines,
            is_synced=True,
            last_error=cart.last_error,
            absorbed_cart_ids=cart.absorbed_cart_ids,
            version=new_version,
        )

    def update_cart_version(self, cart_id: int, old_version: int, new_data: dict) -> int:
        result = self.db.execute(
            update(CartModel)
            .where(CartModel.id == cart_id, CartModel.version == old_version)
            .values(**new_data)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
