# storefront/services/inventory_service.py
from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session

from storefront.domain.errors import (
    InsufficientStockError,
    NotFoundError,
    StorefrontError,
    UnauthorizedError,
    ValidationError,
)
from storefront.domain.results import Error, Ok, Result
from storefront.repos.catalog_repo import CatalogRepo
from storefront.repos.user_repo import UserRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class StockOperation(str, Enum):
    INCREMENT = "increment"
    DECREMENT = "decrement"
    SET = "set"


@dataclass(frozen=True)
class StockAdjustment:
    variant_id: int
    operation: StockOperation
    quantity: int
    stock_before: int
    stock_after: int
    admin_id: int


class InventoryService:
    """
    Admin stock adjustments. Decrements use the same conditional update as
    payment confirmation, so an admin can never push stock below zero.
    Every adjustment leaves an audit row with the admin id.
    """

    def __init__(self, db: Session):
        self.catalog = CatalogRepo(db)
        self.users = UserRepo(db)

    def adjust(
        self, variant_id: int, operation: StockOperation, quantity: int, admin_id: int
    ) -> Result[StockAdjustment, StorefrontError]:
        if not self.users.is_admin(admin_id):
            return Error(UnauthorizedError("Only admins can adjust inventory", user_id=admin_id))
        if quantity < 0 or (quantity == 0 and operation != StockOperation.SET):
            return Error(ValidationError("Quantity must be positive", quantity=quantity))

        before = self.catalog.get_stock(variant_id)
        if before is None:
            return Error(NotFoundError(f"Variant {variant_id} not found", variant_id=variant_id))

        try:
            if operation == StockOperation.INCREMENT:
                self.catalog.increment_stock(variant_id, quantity)
            elif operation == StockOperation.DECREMENT:
                if not self.catalog.decrement_stock(variant_id, quantity):
                    self.catalog.rollback()
                    available = self.catalog.get_stock(variant_id) or 0
                    return Error(
                        InsufficientStockError(requested=quantity, available=available, variant_id=variant_id)
                    )
            else:
                self.catalog.set_stock(variant_id, quantity)

            after = self.catalog.get_stock(variant_id)
            self.catalog.record_adjustment(variant_id, operation.value, quantity, after, admin_id)
            self.catalog.commit()
        except Exception:
            self.catalog.rollback()
            raise

        logger.info(f"Admin {admin_id} {operation.value} variant {variant_id} by {quantity}: {before} -> {after}")
        return Ok(
            StockAdjustment(
                variant_id=variant_id,
                operation=operation,
                quantity=quantity,
                stock_before=before,
                stock_after=after,
                admin_id=admin_id,
            )
        )
