# tests/conftest.py
import os

#avant tout import de app.*: base en memoire, Celery en mode eager
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"

from decimal import Decimal

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api import create_app
from app.api.deps import get_cache_service
from app.celery_worker import celery_app
from app.data.database import Base, get_db
from app.data.models import ProductModel, UserModel
from app.services.cache_service import CacheService

CUSTOMER_ID = 1
ADMIN_ID = 2


@pytest.fixture(autouse=True)
def eager_celery():
    celery_app.conf.task_always_eager = True


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def users(db):
    customer = UserModel(id=CUSTOMER_ID, name="Karim", email="karim@example.dz", phone="0550000000")
    admin = UserModel(id=ADMIN_ID, name="Admin", email="admin@mjchauffage.dz", is_admin=True)
    db.add_all([customer, admin])
    db.commit()
    return {"customer": customer, "admin": admin}


@pytest.fixture
def products(db):
    """Catalogue de test: stock 5 / 3 / inactif / rupture / faible."""
    items = {
        "boiler": ProductModel(
            id="p-boiler", sku="CH-MUR-24", name="Chaudière murale", price=Decimal("1200.00"),
            stock_quantity=5, is_active=True,
        ),
        "radiator": ProductModel(
            id="p-radiator", sku="RAD-ALU-10", name="Radiateur aluminium", price=Decimal("400.00"),
            sale_price=Decimal("300.00"), stock_quantity=3, is_active=True,
        ),
        "old": ProductModel(
            id="p-old", sku="CH-OLD-01", name="Ancienne chaudière", price=Decimal("900.00"),
            stock_quantity=10, is_active=False,
        ),
        "thermostat": ProductModel(
            id="p-thermostat", sku="THE-CON-01", name="Thermostat connecté", price=Decimal("95.00"),
            stock_quantity=0, is_active=True,
        ),
        "pump": ProductModel(
            id="p-pump", sku="PAC-AIR-09", name="Pompe à chaleur", price=Decimal("48000.00"),
            stock_quantity=20, is_active=True,
        ),
    }
    db.add_all(items.values())
    db.commit()
    return items


@pytest.fixture
def fake_redis():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def cache(fake_redis):
    return CacheService(client=fake_redis)


@pytest.fixture
def client(db, cache):
    app = create_app()

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache_service] = lambda: cache

    with TestClient(app) as c:
        yield c


@pytest.fixture
def customer_headers(users):
    return {"X-User-Id": str(CUSTOMER_ID)}


@pytest.fixture
def admin_headers(users):
    return {"X-User-Id": str(ADMIN_ID)}
