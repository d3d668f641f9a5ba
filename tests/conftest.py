import time
from typing import Optional

import jwt
import pytest
from fastapi.testclient import TestClient

from tilehub.clock import FixedClock
from tilehub.domain import Product
from tilehub.main import create_app
from tilehub.repositories import (
    InMemoryNotificationRepository,
    InMemoryOrderRepository,
    InMemoryProductRepository,
)
from tilehub.services import OrderService
from tilehub.settings import Settings

CARRARA_ID = "3f1c2a9e-8b4d-4c6a-9e2f-1a7b5c3d9e01"
SLATE_ID = "7a2d4e6f-1b3c-4d5e-8f9a-0b1c2d3e4f02"
TERRACOTTA_ID = "c9e8d7f6-5a4b-4c3d-9e2f-1a0b9c8d7e03"
GROUT_ID = "e1f2a3b4-c5d6-4e7f-8a9b-0c1d2e3f4a04"
UNKNOWN_ID = "00000000-0000-4000-8000-000000000000"

ADDRESS = {"street": "12 Kiln Road", "city": "Morbi", "state": "Gujarat", "zipCode": "363641"}


class SequentialIds:
    def __init__(self) -> None:
        self._counter = 0

    def new_id(self) -> str:
        self._counter += 1
        return f"00000000-0000-4000-8000-{self._counter:012d}"


def make_product(product_id: str, stock: int = 100, **overrides) -> Product:
    fields = {"name": f"Product {product_id[:4]}", "price": 10.0, "stock": stock}
    fields.update(overrides)
    return Product(id=product_id, **fields)


@pytest.fixture
def settings() -> Settings:
    return Settings(JWT_SECRET="test-secret", JWT_ISSUER="test-issuer", JWT_AUDIENCE="authenticated")


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def container(app):
    return app.state.container


@pytest.fixture
def make_token(settings):
    def _make(sub: str = "user-builder-1", user_type: Optional[str] = "builder", **claims) -> str:
        payload = {
            "sub": sub,
            "iss": settings.jwt_issuer,
            "aud": settings.jwt_audience,
            "exp": int(time.time()) + 3600,
        }
        if user_type is not None:
            payload["user_type"] = user_type
        payload.update(claims)
        return jwt.encode(payload, settings.jwt_secret, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(user_type: Optional[str] = "builder", sub: str = "user-builder-1") -> dict:
        return {"Authorization": f"Bearer {make_token(sub=sub, user_type=user_type)}"}

    return _headers


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def notifications() -> InMemoryNotificationRepository:
    return InMemoryNotificationRepository()


@pytest.fixture
def orders() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest.fixture
def products() -> InMemoryProductRepository:
    return InMemoryProductRepository(
        [
            make_product(CARRARA_ID, stock=500, length_mm=300, width_mm=300, box_moq=10),
            make_product(SLATE_ID, stock=0, length_mm=600, width_mm=300, box_moq=6),
            make_product(TERRACOTTA_ID, stock=50, length_mm=200, width_mm=200),
            make_product(GROUT_ID, stock=5),
        ]
    )


@pytest.fixture
def order_service(products, orders, notifications, clock) -> OrderService:
    return OrderService(products, orders, notifications, clock, SequentialIds())
