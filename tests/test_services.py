import threading

import pytest

from tilehub.domain import (
    CartItem,
    CreateOrderInput,
    OrderCreate,
    OrderFilter,
    OrderLookup,
    OrderStatus,
    OrderStatusUpdate,
    PaymentStatus,
    ProductDimensions,
)
from tilehub.errors import NotFoundError, OrderPlacementError, StoreError, ValidationError
from tilehub.logging import ServiceLogger
from tilehub.repositories import InMemoryOrderRepository, InMemoryProductRepository
from tilehub.services import OrderService, PermissionService, resolve_line

from conftest import (
    ADDRESS,
    CARRARA_ID,
    GROUT_ID,
    SLATE_ID,
    TERRACOTTA_ID,
    UNKNOWN_ID,
    SequentialIds,
    make_product,
)


def order_input(items, user_id="user-1", total=100.0) -> CreateOrderInput:
    return CreateOrderInput(
        user_id=user_id,
        order=OrderCreate(items=items, totalAmount=total, shippingAddress=ADDRESS),
    )


class FailingNotifications:
    def add(self, notification):
        raise StoreError("notifications table unavailable")


class TestResolveLine:
    def test_unknown_product_falls_back_to_quantity(self):
        line = resolve_line(CartItem(product_id=UNKNOWN_ID, quantity=3, coverage=200), None)
        assert line.quantity == 3
        assert line.coverage == 200

    def test_known_product_uses_coverage(self):
        dims = ProductDimensions(id=CARRARA_ID, length_mm=300, width_mm=300, box_moq=10)
        line = resolve_line(CartItem(product_id=CARRARA_ID, quantity=1, coverage=100), dims)
        assert line.product_id == CARRARA_ID
        assert line.quantity == 110


class TestPlaceOrder:
    def test_success_resolves_quantities_and_decrements_stock(self, order_service, products, notifications):
        order = order_service.place_order(
            order_input(
                [
                    CartItem(product_id=CARRARA_ID, quantity=1, coverage=100),
                    CartItem(product_id=GROUT_ID, quantity=2),
                ]
            )
        )

        assert order.status == OrderStatus.PENDING
        assert order.payment_status == PaymentStatus.PENDING
        assert [(line.product_id, line.quantity) for line in order.items] == [(CARRARA_ID, 110), (GROUT_ID, 2)]
        assert products.get(CARRARA_ID).stock == 390
        assert products.get(GROUT_ID).stock == 3

        [notification] = notifications.list_all()
        assert notification.type.value == "new_order"
        assert notification.content == f"New order #{order.id} created"
        assert notification.user_id == "user-1"

    def test_total_amount_is_taken_from_caller(self, order_service):
        order = order_service.place_order(order_input([CartItem(product_id=GROUT_ID, quantity=1)], total=999.99))
        assert order.total_amount == 999.99

    def test_last_line_without_stock_cancels_order(self, order_service, orders, products, notifications):
        with pytest.raises(OrderPlacementError) as excinfo:
            order_service.place_order(
                order_input(
                    [
                        CartItem(product_id=TERRACOTTA_ID, quantity=5),
                        CartItem(product_id=SLATE_ID, quantity=1),
                    ]
                )
            )

        assert excinfo.value.retry is True
        cancelled = orders.get(excinfo.value.order_id)
        assert cancelled.status == OrderStatus.CANCELLED
        assert cancelled.payment_status == PaymentStatus.CANCELLED
        # earlier lines keep their decrement in sequential mode
        assert products.get(TERRACOTTA_ID).stock == 45
        assert notifications.list_all() == []

    def test_atomic_mode_restores_every_line(self, products, orders, notifications, clock):
        service = OrderService(products, orders, notifications, clock, SequentialIds(), atomic_stock=True)

        with pytest.raises(OrderPlacementError) as excinfo:
            service.place_order(
                order_input(
                    [
                        CartItem(product_id=TERRACOTTA_ID, quantity=5),
                        CartItem(product_id=SLATE_ID, quantity=1),
                    ]
                )
            )

        assert orders.get(excinfo.value.order_id).status == OrderStatus.CANCELLED
        assert products.get(TERRACOTTA_ID).stock == 50

    def test_atomic_mode_success(self, products, orders, notifications, clock):
        service = OrderService(products, orders, notifications, clock, SequentialIds(), atomic_stock=True)
        service.place_order(
            order_input(
                [
                    CartItem(product_id=TERRACOTTA_ID, quantity=5),
                    CartItem(product_id=GROUT_ID, quantity=5),
                ]
            )
        )
        assert products.get(TERRACOTTA_ID).stock == 45
        assert products.get(GROUT_ID).stock == 0

    def test_unknown_product_is_persisted_then_cancelled(self, order_service, orders):
        with pytest.raises(OrderPlacementError) as excinfo:
            order_service.place_order(order_input([CartItem(product_id=UNKNOWN_ID, quantity=2, coverage=30)]))

        order = orders.get(excinfo.value.order_id)
        assert order.items[0].quantity == 2
        assert order.status == OrderStatus.CANCELLED

    def test_unresolvable_line_is_rejected_before_persisting(self, order_service, orders):
        with pytest.raises(ValidationError):
            order_service.place_order(order_input([CartItem(product_id=GROUT_ID, coverage=30)]))
        assert orders.list_filtered(OrderFilter())[1] == 0

    def test_notification_failure_does_not_fail_order(self, products, orders, clock):
        service = OrderService(products, orders, FailingNotifications(), clock, SequentialIds())
        order = service.place_order(order_input([CartItem(product_id=GROUT_ID, quantity=1)]))
        assert orders.get(order.id).status == OrderStatus.PENDING

    def test_resolved_lines_survive_later_product_changes(self, order_service, orders, products):
        order = order_service.place_order(order_input([CartItem(product_id=CARRARA_ID, coverage=100)]))
        products.decrement_stock(CARRARA_ID, 390)
        assert orders.get(order.id).items[0].quantity == 110

    def test_concurrent_orders_never_oversell(self, clock):
        products = InMemoryProductRepository([make_product(GROUT_ID, stock=10)])
        orders = InMemoryOrderRepository()
        service = OrderService(products, orders, FailingNotifications(), clock, SequentialIds())
        outcomes = []
        lock = threading.Lock()

        def place():
            try:
                service.place_order(order_input([CartItem(product_id=GROUT_ID, quantity=1)]))
                result = "ok"
            except OrderPlacementError:
                result = "cancelled"
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=place) for _ in range(25)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert outcomes.count("ok") == 10
        assert outcomes.count("cancelled") == 15
        assert products.get(GROUT_ID).stock == 0


class TestOrderQueries:
    def _place(self, service, user_id, product_id=GROUT_ID):
        return service.place_order(order_input([CartItem(product_id=product_id, quantity=1)], user_id=user_id))

    def test_list_for_user_is_newest_first_and_paginated(self, order_service, clock):
        first = self._place(order_service, "user-a")
        clock.advance(60)
        second = self._place(order_service, "user-a")
        clock.advance(60)
        self._place(order_service, "user-b")

        page = order_service.list_for_user("user-a", page=1, limit=1)
        assert page.total == 2
        assert page.total_pages == 2
        assert [order.id for order in page.data] == [second.id]
        assert [order.id for order in order_service.list_for_user("user-a", 2, 1).data] == [first.id]

    def test_list_all_filters_by_status_and_date(self, order_service, clock):
        self._place(order_service, "user-a")
        clock.advance(3600)
        later = self._place(order_service, "user-b")
        with pytest.raises(OrderPlacementError):
            self._place(order_service, "user-b", product_id=SLATE_ID)

        pending = order_service.list_all(OrderFilter(status=OrderStatus.PENDING, from_date=later.created_at))
        assert [order.id for order in pending.data] == [later.id]
        cancelled = order_service.list_all(OrderFilter(status=OrderStatus.CANCELLED))
        assert cancelled.total == 1

    def test_update_status_records_notes(self, order_service, clock):
        order = self._place(order_service, "user-a")
        clock.advance(30)
        updated = order_service.update_status(
            OrderLookup(order_id=order.id),
            OrderStatusUpdate(status=OrderStatus.APPROVED, notes="credit checked"),
        )
        assert updated.status == OrderStatus.APPROVED
        assert updated.admin_notes == "credit checked"
        assert updated.updated_at > order.updated_at
        assert updated.items == order.items

        status = order_service.get_status(OrderLookup(order_id=order.id))
        assert status.status == OrderStatus.APPROVED
        assert status.payment_status == PaymentStatus.PENDING

    def test_missing_order(self, order_service):
        with pytest.raises(NotFoundError):
            order_service.get_status(OrderLookup(order_id="missing"))


class TestPermissions:
    @pytest.mark.parametrize(
        "user_type, resource, action, allowed",
        [
            ("builder", "orders", "create", True),
            ("architect", "orders", "create", True),
            ("salesperson", "orders", "create", False),
            ("dealer", "orders", "update", True),
            ("dealer", "orders", "manage", False),
            ("admin", "orders", "manage", True),
            ("builder", "users", "read", False),
            (None, "products", "read", False),
            ("ghost", "products", "read", False),
        ],
    )
    def test_role_table(self, user_type, resource, action, allowed):
        assert PermissionService().has_permission(user_type, resource, action) is allowed


class TestLogging:
    def test_stock_failure_is_logged_with_order_id(self, order_service, caplog):
        caplog.set_level("WARNING", logger="tilehub.orders")
        with pytest.raises(OrderPlacementError) as excinfo:
            order_service.place_order(order_input([CartItem(product_id=SLATE_ID, quantity=1)]))

        [record] = [r for r in caplog.records if "Stock update failed" in r.getMessage()]
        assert f"order_id={excinfo.value.order_id}" in record.getMessage()
        assert "Insufficient stock" in record.getMessage()

    def test_bound_context_is_merged(self, caplog):
        caplog.set_level("INFO", logger="tilehub.test")
        ServiceLogger("test", service="orders").bind(order_id="o-1").info("hello", line=2)
        assert caplog.records[-1].getMessage() == "hello | service=orders | order_id=o-1 | line=2"
