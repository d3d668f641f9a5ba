from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .clock import Clock, SystemClock
from .id_provider import IdProvider, UUIDProvider
from .persistence.db import Database
from .persistence.repositories import (
    SqlAlchemyNotificationRepository,
    SqlAlchemyOrderRepository,
    SqlAlchemyProductRepository,
)
from .persistence.seed import seed_products_if_empty
from .repositories import (
    InMemoryNotificationRepository,
    InMemoryOrderRepository,
    InMemoryProductRepository,
    NotificationRepository,
    OrderRepository,
    ProductRepository,
)
from .seed import load_product_seed
from .services import IdentityService, OrderService, PermissionService, ProductService
from .settings import Settings


@dataclass
class Container:
    settings: Settings
    identity_service: IdentityService
    permission_service: PermissionService
    product_service: ProductService
    order_service: OrderService
    products: ProductRepository
    orders: OrderRepository
    notifications: NotificationRepository
    clock: Clock
    id_provider: IdProvider
    db: Optional[Database] = None


def build_container(settings: Settings) -> Container:
    clock = SystemClock()
    ids = UUIDProvider()
    db: Optional[Database] = None

    if settings.database_url:
        db = Database(settings.database_url, echo=settings.db_echo)
        db.create_tables()
        seed_products_if_empty(db, settings.product_seed_path)
        products = SqlAlchemyProductRepository(db)
        orders = SqlAlchemyOrderRepository(db)
        notifications = SqlAlchemyNotificationRepository(db)
    else:
        products = InMemoryProductRepository(load_product_seed(settings.product_seed_path))
        orders = InMemoryOrderRepository()
        notifications = InMemoryNotificationRepository()

    order_service = OrderService(
        products,
        orders,
        notifications,
        clock,
        ids,
        atomic_stock=settings.atomic_stock_decrement,
    )

    return Container(
        settings=settings,
        identity_service=IdentityService(settings),
        permission_service=PermissionService(),
        product_service=ProductService(products),
        order_service=order_service,
        products=products,
        orders=orders,
        notifications=notifications,
        clock=clock,
        id_provider=ids,
        db=db,
    )
