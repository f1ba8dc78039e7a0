# storefront/repos/catalog_repo.py
from decimal import Decimal
from typing import Iterable

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.inventory import InventoryAdjustmentModel
from storefront.data.models.product import ProductModel, VariantModel
from storefront.domain.catalog import Product, Variant


def to_product(model: ProductModel) -> Product:
    return Product(
        id=model.id,
        name=model.name,
        base_price=Decimal(model.base_price),
        currency=model.currency,
        sizes=tuple(model.sizes or ()),
        colors=tuple(model.colors or ()),
        sale_price=Decimal(model.sale_price) if model.sale_price is not None else None,
    )


def to_variant(model: VariantModel) -> Variant:
    return Variant(
        id=model.id,
        product_id=model.product_id,
        size=model.size,
        color=model.color,
        price_delta=Decimal(model.price_delta or 0),
        stock=model.stock,
    )


class CatalogRepo:
    """Read side of the catalog plus the single atomic stock update primitive."""

    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> Product | None:
        model = self.db.get(ProductModel, product_id)
        return to_product(model) if model else None

    def get_products(self, product_ids: Iterable[int]) -> dict[int, Product]:
        ids = set(product_ids)
        if not ids:
            return {}
        rows = self.db.execute(select(ProductModel).where(ProductModel.id.in_(ids))).scalars().all()
        return {row.id: to_product(row) for row in rows}

    # stock changes through bulk UPDATEs, variant reads refresh rows already loaded
    def get_variant(self, product_id: int, size: str, color: str) -> Variant | None:
        model = self.db.execute(
            select(VariantModel).where(
                VariantModel.product_id == product_id,
                VariantModel.size == size,
                VariantModel.color == color,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return to_variant(model) if model else None

    def get_variant_by_id(self, variant_id: int) -> Variant | None:
        model = self.db.get(VariantModel, variant_id, populate_existing=True)
        return to_variant(model) if model else None

    def get_variants_for(self, product_id: int) -> list[Variant]:
        rows = self.db.execute(
            select(VariantModel)
            .where(VariantModel.product_id == product_id)
            .order_by(VariantModel.id)
            .execution_options(populate_existing=True)
        ).scalars().all()
        return [to_variant(row) for row in rows]

    def get_stock(self, variant_id: int) -> int | None:
        return self.db.execute(
            select(VariantModel.stock).where(VariantModel.id == variant_id)
        ).scalar_one_or_none()

    # writes, caller owns the transaction

    def decrement_stock(self, variant_id: int, quantity: int) -> bool:
        """UPDATE ... SET stock = stock - q WHERE stock >= q. False means insufficient."""
        result = self.db.execute(
            update(VariantModel)
            .where(VariantModel.id == variant_id, VariantModel.stock >= quantity)
            .values(stock=VariantModel.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def increment_stock(self, variant_id: int, quantity: int) -> bool:
        result = self.db.execute(
            update(VariantModel)
            .where(VariantModel.id == variant_id)
            .values(stock=VariantModel.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def set_stock(self, variant_id: int, quantity: int) -> bool:
        result = self.db.execute(
            update(VariantModel)
            .where(VariantModel.id == variant_id)
            .values(stock=quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def record_adjustment(
        self,
        variant_id: int,
        operation: str,
        quantity: int,
        stock_after: int,
        admin_id: int,
    ) -> InventoryAdjustmentModel:
        entry = InventoryAdjustmentModel(
            variant_id=variant_id,
            operation=operation,
            quantity=quantity,
            stock_after=stock_after,
            admin_id=admin_id,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
