import os
import tempfile
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient

_TMP_DIR = tempfile.mkdtemp(prefix="equipment-marketplace-tests-")

os.environ.setdefault("DATABASE_URL", "sqlite:///" + os.path.join(_TMP_DIR, "test.db"))
os.environ.setdefault("RATE_LIMITING_ENABLED", "false")
os.environ.setdefault("METRICS_ENABLED", "false")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP_DIR, "uploads"))
os.environ.setdefault("LOG_DIR", os.path.join(_TMP_DIR, "logs"))

from common.config import reset_settings_cache  # noqa: E402

reset_settings_cache()

from common.database import Base, SessionLocal, engine  # noqa: E402
from common.models import RoleEnum  # noqa: E402
from services.equipment.app import app as equipment_app  # noqa: E402
from services.requests.app import app as requests_app  # noqa: E402
from services.users.app import app as users_app  # noqa: E402

PASSWORD = "secret123"


@pytest.fixture(autouse=True, scope="function")
def _create_test_database() -> Generator[None, None, None]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db_session() -> Generator:
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def users_client() -> Generator[TestClient, None, None]:
    with TestClient(users_app) as client:
        yield client


@pytest.fixture()
def equipment_client() -> Generator[TestClient, None, None]:
    with TestClient(equipment_app) as client:
        yield client


@pytest.fixture()
def requests_client() -> Generator[TestClient, None, None]:
    with TestClient(requests_app) as client:
        yield client


def user_payload(role: RoleEnum, suffix: str, phone: str) -> dict[str, str]:
    return {
        "name": f"{role.value.title()} {suffix}",
        "email": f"{role.value}.{suffix}@example.com",
        "phone": phone,
        "password": PASSWORD,
        "role": role.value,
        "city": "Tripoli",
    }


@pytest.fixture()
def register(users_client) -> Callable[[RoleEnum, str, str], dict]:
    """Register a user and return ``{"user": ..., "headers": ...}``."""

    def _register(role: RoleEnum, suffix: str, phone: str) -> dict:
        response = users_client.post("/api/auth/register", json=user_payload(role, suffix, phone))
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return {"user": data["user"], "headers": {"Authorization": f"Bearer {data['token']}"}}

    return _register


@pytest.fixture()
def owner(register) -> dict:
    return register(RoleEnum.OWNER, "one", "0911234567")


@pytest.fixture()
def other_owner(register) -> dict:
    return register(RoleEnum.OWNER, "two", "0921234567")


@pytest.fixture()
def customer(register) -> dict:
    return register(RoleEnum.CUSTOMER, "one", "0931234567")


@pytest.fixture()
def other_customer(register) -> dict:
    return register(RoleEnum.CUSTOMER, "two", "0941234567")


EQUIPMENT_FORM = {
    "title": "Caterpillar 320 excavator",
    "category": "excavator",
    "description": "Tracked excavator with operator available on request",
    "price_per_day": "450",
    "price_per_hour": "60",
    "city": "Tripoli",
    "phone_number": "0911234567",
}


@pytest.fixture()
def create_equipment(equipment_client) -> Callable[..., dict]:
    def _create(headers: dict[str, str], **overrides: str) -> dict:
        form = {**EQUIPMENT_FORM, **overrides}
        response = equipment_client.post("/api/equipment", data=form, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create
