# storefront/data/models/product.py
from sqlalchemy import Column, ForeignKey, Integer, JSON, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class ProductModel(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)

    base_price = Column(Numeric(12, 2), nullable=False)
    sale_price = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=False, default="ARS")

    # advertised options, a combination without a variant row is unavailable
    sizes = Column(JSON, nullable=False, default=list)
    colors = Column(JSON, nullable=False, default=list)

    variants = relationship(
        "VariantModel",
        back_populates="product",
        cascade="all, delete-orphan",
    )


class VariantModel(Base):
    __tablename__ = "variants"

    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    size = Column(String, nullable=False)
    color = Column(String, nullable=False)

    price_delta = Column(Numeric(12, 2), nullable=False, default=0)
    stock = Column(Integer, nullable=False, default=0)

    product = relationship("ProductModel", back_populates="variants")

    __table_args__ = (UniqueConstraint("product_id", "size", "color", name="u_variant_option"),)
