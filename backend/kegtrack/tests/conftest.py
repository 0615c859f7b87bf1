import os

# Antes de importar kegtrack: base en memoria y sin datos de demostración
os.environ["KEGTRACK_DATABASE_URL"] = "sqlite://"
os.environ["KEGTRACK_ENV"] = "test"

import pytest
from fastapi.testclient import TestClient

from kegtrack.core.database import SessionLocal, engine
from kegtrack.core.security import create_token
from kegtrack.main import create_app
from kegtrack.models import Base, User
from kegtrack.services.asset_service import create_asset
from kegtrack.services.customer_service import create_customer


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def app():
    return create_app()


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def _headers(sub: str, email: str) -> dict:
    return {"Authorization": f"Bearer {create_token(sub, email=email)}"}


@pytest.fixture
def auth_headers():
    return _headers("operador-1", "operador@cerveceria.test")


@pytest.fixture
def admin_headers(db):
    db.add(User(id="admin-1", email="admin@cerveceria.test", role="Admin"))
    db.commit()
    return _headers("admin-1", "admin@cerveceria.test")


@pytest.fixture
def keg(db):
    return create_asset(db, "BARRIL", "50L")


@pytest.fixture
def cylinder(db):
    return create_asset(db, "CO2", "6kg")


@pytest.fixture
def bar(db):
    return create_customer(db, "Bar La Esquina", phone="+56 9 1234 5678")


@pytest.fixture
def distributor(db):
    return create_customer(db, "Distribuidora del Sur", customer_type="DISTRIBUIDOR")
