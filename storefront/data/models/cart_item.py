from sqlalchemy import Column, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from storefront.data.database import Base


class CartItemModel(Base):
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True)
    cart_id = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(Integer, nullable=False)
    size = Column(String, nullable=False)
    color = Column(String, nullable=False)

    quantity = Column(Integer, nullable=False)
    variant_id = Column(Integer, nullable=True)
    available_stock = Column(Integer, nullable=True)

    cart = relationship("CartModel", back_populates="items")

    __table_args__ = (
        UniqueConstraint("cart_id", "product_id", "size", "color", name="u_cart_line"),
    )
