from __future__ import annotations

from typing import Dict, List, Optional

import jwt

from .clock import Clock
from .domain import (
    AdminNotification,
    AuthContext,
    CartItem,
    CreateOrderInput,
    NotificationType,
    Order,
    OrderFilter,
    OrderLine,
    OrderLookup,
    OrderPage,
    OrderStatus,
    OrderStatusUpdate,
    OrderStatusView,
    PaymentStatus,
    Product,
    ProductDimensions,
    ProductList,
    ProductLookup,
    StockDecrement,
    TokenInput,
)
from .errors import (
    DomainError,
    ForbiddenError,
    InsufficientStockError,
    NotFoundError,
    OrderPlacementError,
    StoreError,
    UnauthorizedError,
)
from .id_provider import IdProvider
from .logging import ServiceLogger
from .quantity import resolve_quantity
from .repositories import NotificationRepository, OrderRepository, ProductRepository, total_pages
from .settings import Settings

ROLE_PERMISSIONS: Dict[str, Dict[str, List[str]]] = {
    "builder": {
        "products": ["read"],
        "orders": ["create", "read"],
        "cart": ["create", "read", "update", "delete"],
    },
    "architect": {
        "products": ["read"],
        "orders": ["create", "read"],
        "cart": ["create", "read", "update", "delete"],
    },
    "dealer": {
        "products": ["read"],
        "orders": ["create", "read", "update"],
        "cart": ["create", "read", "update", "delete"],
    },
    "salesperson": {
        "products": ["read"],
        "orders": ["read"],
        "cart": ["read"],
    },
    "admin": {
        "products": ["create", "read", "update", "delete"],
        "orders": ["create", "read", "update", "delete", "manage"],
        "cart": ["create", "read", "update", "delete"],
        "users": ["create", "read", "update", "delete"],
    },
}


def resolve_line(item: CartItem, dimensions: Optional[ProductDimensions]) -> OrderLine:
    """Resolve one cart line. Unknown products fall back to the requested quantity."""
    if dimensions is None:
        quantity = resolve_quantity(item.quantity, None, None, None)
    else:
        quantity = resolve_quantity(
            item.quantity,
            item.coverage,
            dimensions.length_mm,
            dimensions.width_mm,
            dimensions.box_moq,
        )
    return OrderLine(product_id=str(item.product_id), quantity=quantity, coverage=item.coverage)


class IdentityService:
    """Verifies access tokens minted by the external identity provider."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

    def verify_token(self, payload: TokenInput) -> AuthContext:
        try:
            decoded = jwt.decode(
                payload.token,
                self._settings.jwt_secret,
                algorithms=["HS256"],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
            )
        except jwt.PyJWTError as exc:
            raise UnauthorizedError() from exc
        return AuthContext(**decoded)


class PermissionService:
    def __init__(self, permissions: Optional[Dict[str, Dict[str, List[str]]]] = None) -> None:
        self._permissions = permissions if permissions is not None else ROLE_PERMISSIONS

    def has_permission(self, user_type: Optional[str], resource: str, action: str) -> bool:
        role = self._permissions.get(user_type or "")
        if not role:
            return False
        return action in role.get(resource, [])

    def check(self, auth: AuthContext, resource: str, action: str) -> None:
        if not self.has_permission(auth.user_type, resource, action):
            raise ForbiddenError(resource, action)


class ProductService:
    def __init__(self, products: ProductRepository) -> None:
        self._products = products

    def list_products(self, limit: int) -> ProductList:
        return ProductList(items=self._products.list(limit))

    def get_product(self, lookup: ProductLookup) -> Product:
        product = self._products.get(lookup.product_id)
        if not product:
            raise NotFoundError()
        return product


class OrderService:
    def __init__(
        self,
        products: ProductRepository,
        orders: OrderRepository,
        notifications: NotificationRepository,
        clock: Clock,
        ids: IdProvider,
        atomic_stock: bool = False,
    ) -> None:
        self._products = products
        self._orders = orders
        self._notifications = notifications
        self._clock = clock
        self._ids = ids
        self._atomic_stock = atomic_stock
        self._logger = ServiceLogger("orders")

    def place_order(self, payload: CreateOrderInput) -> Order:
        """Persist an order with resolved quantities and take its stock.

        A stock failure leaves the order persisted as cancelled and raises
        OrderPlacementError. In sequential mode decrements applied before the
        failing line are kept; in atomic mode none are.
        """
        items = payload.order.items
        dimensions = self._products.dimensions({str(item.product_id) for item in items})
        lines = [resolve_line(item, dimensions.get(str(item.product_id))) for item in items]

        order = self._build_order(payload, lines)
        log = self._logger.bind(order_id=order.id)
        self._orders.add(order)
        log.info("Order created", user_id=order.user_id, lines=len(lines))

        try:
            self._decrement_stock(lines)
        except (InsufficientStockError, StoreError) as exc:
            log.warning("Stock update failed, cancelling", reason=exc)
            self._cancel(order)
            raise OrderPlacementError("Failed to update product stock", order_id=order.id) from exc

        self._notify_new_order(order)
        return order

    def list_for_user(self, user_id: str, page: int, limit: int) -> OrderPage:
        return self.list_all(OrderFilter(user_id=user_id, page=page, limit=limit))

    def list_all(self, query: OrderFilter) -> OrderPage:
        orders, total = self._orders.list_filtered(query)
        return OrderPage(
            data=orders,
            page=query.page,
            limit=query.limit,
            total=total,
            total_pages=total_pages(total, query.limit),
        )

    def get_order(self, lookup: OrderLookup) -> Order:
        order = self._orders.get(lookup.order_id)
        if not order:
            raise NotFoundError()
        return order

    def get_status(self, lookup: OrderLookup) -> OrderStatusView:
        order = self.get_order(lookup)
        return OrderStatusView(
            id=order.id,
            status=order.status,
            payment_status=order.payment_status,
            updated_at=order.updated_at,
        )

    def update_status(self, lookup: OrderLookup, payload: OrderStatusUpdate) -> Order:
        order = self.get_order(lookup)
        updated = order.model_copy(
            update={
                "status": payload.status,
                "admin_notes": payload.notes,
                "updated_at": self._clock.now(),
            }
        )
        self._orders.update(updated)
        self._logger.info("Order status updated", order_id=order.id, status=payload.status.value)
        return updated

    def _build_order(self, payload: CreateOrderInput, lines: List[OrderLine]) -> Order:
        now = self._clock.now()
        return Order(
            id=self._ids.new_id(),
            user_id=payload.user_id,
            items=lines,
            total_amount=payload.order.total_amount,
            shipping_address=payload.order.shipping_address,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    def _decrement_stock(self, lines: List[OrderLine]) -> None:
        if self._atomic_stock:
            self._products.decrement_stock_all(
                [StockDecrement(product_id=line.product_id, quantity=line.quantity) for line in lines]
            )
            return
        for line in lines:
            if not self._products.decrement_stock(line.product_id, line.quantity):
                raise InsufficientStockError(line.product_id, line.quantity)

    def _cancel(self, order: Order) -> Order:
        cancelled = order.model_copy(
            update={
                "status": OrderStatus.CANCELLED,
                "payment_status": PaymentStatus.CANCELLED,
                "updated_at": self._clock.now(),
            }
        )
        self._orders.update(cancelled)
        return cancelled

    def _notify_new_order(self, order: Order) -> None:
        notification = AdminNotification(
            id=self._ids.new_id(),
            type=NotificationType.NEW_ORDER,
            user_id=order.user_id,
            content=f"New order #{order.id} created",
            created_at=self._clock.now(),
        )
        try:
            self._notifications.add(notification)
        except DomainError as exc:
            self._logger.warning("Admin notification failed", order_id=order.id, reason=exc)
