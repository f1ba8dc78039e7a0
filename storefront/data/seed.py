# storefront/data/seed.py
from decimal import Decimal

from sqlalchemy.orm import Session

from storefront.data.database import Base, SessionLocal, engine
from storefront.data.models import ProductModel, UserModel, VariantModel

# (size, color, price_delta, stock)
DEMO_CATALOG = [
    {
        "id": 1,
        "name": "Classic Tee",
        "base_price": Decimal("10000.00"),
        "sale_price": None,
        "sizes": ["S", "M", "L"],
        "colors": ["black", "white"],
        "variants": [
            ("S", "black", Decimal("0"), 10),
            ("M", "black", Decimal("0"), 3),
            ("L", "black", Decimal("500.00"), 5),
            ("M", "white", Decimal("0"), 0),
        ],
    },
    {
        "id": 2,
        "name": "Denim Jacket",
        "base_price": Decimal("30000.00"),
        "sale_price": Decimal("25000.00"),
        "sizes": ["M", "L"],
        "colors": ["blue"],
        "variants": [
            ("M", "blue", Decimal("0"), 2),
            ("L", "blue", Decimal("1000.00"), 1),
        ],
    },
]

DEMO_USERS = [
    {"id": 1, "name": "Ana", "is_admin": False},
    {"id": 99, "name": "Admin", "is_admin": True},
]


def seed(db: Session | None = None):
    owns_session = db is None
    db = db or SessionLocal()
    try:
        # not forcing: only seed if empty
        if db.query(ProductModel).first():
            return

        for user in DEMO_USERS:
            db.add(UserModel(**user))

        for entry in DEMO_CATALOG:
            product = ProductModel(
                id=entry["id"],
                name=entry["name"],
                base_price=entry["base_price"],
                sale_price=entry["sale_price"],
                sizes=entry["sizes"],
                colors=entry["colors"],
            )
            product.variants = [
                VariantModel(size=size, color=color, price_delta=delta, stock=stock)
                for size, color, delta, stock in entry["variants"]
            ]
            db.add(product)
        db.commit()
    finally:
        if owns_session:
            db.close()


if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    seed()
