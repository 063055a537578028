import os

# The module-level app in fleetkeeper.main reads these at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from fastapi.testclient import TestClient

from fleetkeeper.core.config import Settings
from fleetkeeper.core.data_client import DataClient, MemoryStorage
from fleetkeeper.core.database import create_db_engine, create_session_factory, init_db
from fleetkeeper.main import create_app

PASSWORD = "hunter22"

VALID_TRUCK = {
    "vin": "1FUJGLDR5CLBP8834",
    "license_plate": "ABC1234",
    "year": "2019",
    "make": "Freightliner",
    "model": "Cascadia",
    "current_mileage": "120000",
    "notes": "",
}


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite://",
        "SECRET_KEY": "test-secret-key",
        "SESSION_INIT_TIMEOUT_SECONDS": 1.0,
        "_env_file": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def session_factory(settings):
    engine = create_db_engine(settings)
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture
def data_client(session_factory, settings) -> DataClient:
    return DataClient(session_factory, settings, MemoryStorage())


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


def register(client: TestClient, email: str, company_name: str = "Acme Hauling", **overrides):
    data = {
        "company_name": company_name,
        "address": "100 Main Street",
        "phone": "5551234567",
        "email": email,
        "password": PASSWORD,
        "confirm_password": PASSWORD,
    }
    data.update(overrides)
    return client.post("/register", data=data, follow_redirects=False)


def login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/login", data={"email": email, "password": password}, follow_redirects=False)


def sign_up_and_in(client: TestClient, email: str, company_name: str = "Acme Hauling") -> None:
    assert register(client, email, company_name).status_code == 303
    assert login(client, email).status_code == 303


def add_truck(client: TestClient, **overrides) -> int:
    data = dict(VALID_TRUCK)
    data.update(overrides)
    response = client.post("/trucks/add", data=data, follow_redirects=False)
    assert response.status_code == 303, response.text
    return int(response.headers["location"].rsplit("/", 1)[1])


@pytest.fixture
def signed_in(client):
    sign_up_and_in(client, "owner@acme.test")
    return client
