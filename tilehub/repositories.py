from __future__ import annotations

import math
import threading
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .domain import (
    AdminNotification,
    Order,
    OrderFilter,
    Product,
    ProductDimensions,
    StockDecrement,
)
from .errors import InsufficientStockError


class ProductRepository(Protocol):
    def get(self, product_id: str) -> Optional[Product]: ...

    def list(self, limit: int) -> List[Product]: ...

    def dimensions(self, product_ids: Iterable[str]) -> Dict[str, ProductDimensions]: ...

    def decrement_stock(self, product_id: str, quantity: int) -> bool: ...

    def decrement_stock_all(self, lines: Sequence[StockDecrement]) -> None: ...


class OrderRepository(Protocol):
    def add(self, order: Order) -> Order: ...

    def get(self, order_id: str) -> Optional[Order]: ...

    def update(self, order: Order) -> Order: ...

    def list_filtered(self, query: OrderFilter) -> Tuple[List[Order], int]: ...


class NotificationRepository(Protocol):
    def add(self, notification: AdminNotification) -> AdminNotification: ...


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


class InMemoryProductRepository(ProductRepository):
    """Product store kept in a dict.

    The lock plays the role of the database row lock: every stock change is a
    compare-and-set performed while holding it.
    """

    def __init__(self, products: Iterable[Product]) -> None:
        self._products: Dict[str, Product] = {product.id: product for product in products}
        self._lock = threading.Lock()

    def get(self, product_id: str) -> Optional[Product]:
        return self._products.get(product_id)

    def list(self, limit: int) -> List[Product]:
        return sorted(self._products.values(), key=lambda product: product.name)[:limit]

    def dimensions(self, product_ids: Iterable[str]) -> Dict[str, ProductDimensions]:
        found: Dict[str, ProductDimensions] = {}
        for product_id in set(product_ids):
            product = self._products.get(product_id)
            if product:
                found[product_id] = ProductDimensions(
                    id=product.id,
                    length_mm=product.length_mm,
                    width_mm=product.width_mm,
                    box_moq=product.box_moq,
                )
        return found

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        with self._lock:
            return self._apply(product_id, quantity)

    def decrement_stock_all(self, lines: Sequence[StockDecrement]) -> None:
        with self._lock:
            snapshot = dict(self._products)
            for line in lines:
                if not self._apply(line.product_id, line.quantity):
                    self._products = snapshot
                    raise InsufficientStockError(line.product_id, line.quantity)

    def _apply(self, product_id: str, quantity: int) -> bool:
        product = self._products.get(product_id)
        if not product or product.stock < quantity:
            return False
        self._products[product_id] = product.model_copy(update={"stock": product.stock - quantity})
        return True


class InMemoryOrderRepository(OrderRepository):
    def __init__(self) -> None:
        self._orders: Dict[str, Order] = {}

    def add(self, order: Order) -> Order:
        self._orders[order.id] = order
        return order

    def get(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    def update(self, order: Order) -> Order:
        self._orders[order.id] = order
        return order

    def list_filtered(self, query: OrderFilter) -> Tuple[List[Order], int]:
        orders = list(self._orders.values())
        if query.status:
            orders = [order for order in orders if order.status == query.status]
        if query.user_id:
            orders = [order for order in orders if order.user_id == query.user_id]
        if query.from_date:
            orders = [order for order in orders if order.created_at >= query.from_date]
        if query.to_date:
            orders = [order for order in orders if order.created_at <= query.to_date]
        orders.sort(key=lambda order: order.created_at, reverse=True)
        return orders[query.offset : query.offset + query.limit], len(orders)


class InMemoryNotificationRepository(NotificationRepository):
    def __init__(self) -> None:
        self._notifications: List[AdminNotification] = []

    def add(self, notification: AdminNotification) -> AdminNotification:
        self._notifications.append(notification)
        return notification

    def list_all(self) -> List[AdminNotification]:
        return list(self._notifications)
