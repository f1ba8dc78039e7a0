import os

# must be set before storefront.utils.settings is imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["PAYMENT_PROVIDERS_FAKE"] = "true"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import storefront.data.models  # noqa: F401
from storefront.api.deps import get_lock_service, get_notifications
from storefront.data.database import Base, get_db
from storefront.data.seed import seed
from storefront.main import create_app
from storefront.repos.cart_repo import CartRepo
from storefront.repos.catalog_repo import CatalogRepo
from storefront.services.cart_service import CartService
from storefront.services.cart_store import CookieCartStore, DurableCartStore
from storefront.services.payment_providers import FakeProvider, reset_providers, set_provider


class FakeNotifications:
    """Stands in for the Celery-backed NotificationService."""

    def __init__(self):
        self.sent = []

    def send_order_confirmation(self, order_id, user_id, contact_email=None):
        self.sent.append(("order_confirmation", order_id))

    def send_payment_failed(self, order_id, user_id, contact_email=None):
        self.sent.append(("payment_failed", order_id))


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    """Session on a seeded demo catalog (see storefront.data.seed)."""
    session = session_factory()
    seed(session)
    yield session
    session.close()


@pytest.fixture()
def catalog(db):
    return CatalogRepo(db)


@pytest.fixture()
def guest_service(catalog):
    return CartService(catalog, CookieCartStore())


@pytest.fixture()
def user_service(db, catalog):
    return CartService(catalog, DurableCartStore(CartRepo(db), user_id=1))


@pytest.fixture()
def notifications():
    return FakeNotifications()


@pytest.fixture()
def providers():
    reset_providers()
    fakes = {
        "mercadopago": FakeProvider(name="mercadopago"),
        "stripe": FakeProvider(name="stripe", redirect=False),
    }
    for name, provider in fakes.items():
        set_provider(name, provider)
    yield fakes
    reset_providers()


@pytest.fixture()
def client(session_factory, db, notifications, providers):
    app = create_app()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_lock_service] = lambda: None
    app.dependency_overrides[get_notifications] = lambda: notifications
    return TestClient(app)

