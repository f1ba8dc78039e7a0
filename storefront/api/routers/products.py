# storefront/api/routers/products.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.api.deps import raise_error
from storefront.data.database import get_db
from storefront.domain.errors import NotFoundError
from storefront.domain.schemas import ProductOut
from storefront.repos.catalog_repo import CatalogRepo
from storefront.services.pricing import effective_unit_price

router = APIRouter(prefix="/products", tags=["products"])


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    catalog = CatalogRepo(db)
    product = catalog.get_product(product_id)
    if not product:
        raise_error(NotFoundError(f"Product {product_id} not found", product_id=product_id))

    return ProductOut(
        id=product.id,
        name=product.name,
        currency=product.currency,
        base_price=product.base_price,
        sale_price=product.sale_price,
        sizes=list(product.sizes),
        colors=list(product.colors),
        variants=[
            {
                "id": variant.id,
                "size": variant.size,
                "color": variant.color,
                "stock": variant.stock,
                "unit_price": effective_unit_price(product, variant),
            }
            for variant in catalog.get_variants_for(product_id)
        ],
    )
