from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..deps import (
    get_container,
    get_identity_service,
    get_order_service,
    get_permission_service,
    get_product_service,
    get_settings,
)
from ..container import Container
from ..domain import (
    AuthContext,
    CreateOrderInput,
    HealthStatus,
    OrderCreate,
    OrderEnvelope,
    OrderFilter,
    OrderLookup,
    OrderPage,
    OrderStatus,
    OrderStatusUpdate,
    OrderStatusView,
    Product,
    ProductLookup,
    TokenInput,
)
from ..services import IdentityService, OrderService, PermissionService, ProductService
from ..settings import Settings

security = HTTPBearer()

router = APIRouter()


def auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    identity: IdentityService = Depends(get_identity_service),
) -> AuthContext:
    return identity.verify_token(TokenInput(token=credentials.credentials))


def require_permission(resource: str, action: str):
    def dependency(
        auth: AuthContext = Depends(auth_context),
        permissions: PermissionService = Depends(get_permission_service),
    ) -> AuthContext:
        permissions.check(auth, resource, action)
        return auth

    return dependency


@router.get("/health", response_model=HealthStatus)
async def health(container: Container = Depends(get_container)):
    return HealthStatus(status="ok", time=container.clock.now())


@router.get("/products", response_model=list[Product])
def list_products(
    limit: int = Query(50, ge=1, le=200),
    _: AuthContext = Depends(require_permission("products", "read")),
    service: ProductService = Depends(get_product_service),
):
    return service.list_products(limit).items


@router.get("/products/{product_id}", response_model=Product)
def get_product(
    product_id: str,
    _: AuthContext = Depends(require_permission("products", "read")),
    service: ProductService = Depends(get_product_service),
):
    return service.get_product(ProductLookup(product_id=product_id))


@router.post("/orders", response_model=OrderEnvelope, status_code=201)
def create_order(
    payload: OrderCreate,
    auth: AuthContext = Depends(require_permission("orders", "create")),
    service: OrderService = Depends(get_order_service),
):
    order = service.place_order(CreateOrderInput(user_id=auth.sub, order=payload))
    return OrderEnvelope(message="Order created successfully", data=order)


@router.get("/orders/my-orders", response_model=OrderPage)
def my_orders(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    auth: AuthContext = Depends(require_permission("orders", "read")),
    settings: Settings = Depends(get_settings),
    service: OrderService = Depends(get_order_service),
):
    return service.list_for_user(auth.sub, page, limit or settings.default_page_size)


@router.get("/orders/admin/orders", response_model=OrderPage)
def admin_orders(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=100),
    status: Optional[str] = None,
    from_date: Optional[datetime] = Query(None, alias="fromDate"),
    to_date: Optional[datetime] = Query(None, alias="toDate"),
    user_id: Optional[str] = Query(None, alias="userId"),
    _: AuthContext = Depends(require_permission("orders", "manage")),
    settings: Settings = Depends(get_settings),
    service: OrderService = Depends(get_order_service),
):
    try:
        status_value = OrderStatus(status) if status else None
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid status") from exc
    query = OrderFilter(
        status=status_value,
        from_date=from_date,
        to_date=to_date,
        user_id=user_id,
        page=page,
        limit=limit or settings.default_page_size,
    )
    return service.list_all(query)


@router.patch("/orders/admin/orders/{order_id}", response_model=OrderEnvelope)
def update_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    _: AuthContext = Depends(require_permission("orders", "manage")),
    service: OrderService = Depends(get_order_service),
):
    order = service.update_status(OrderLookup(order_id=order_id), payload)
    return OrderEnvelope(message="Order status updated successfully", data=order)


@router.get("/orders/{order_id}/status", response_model=OrderStatusView)
def order_status(
    order_id: str,
    _: AuthContext = Depends(require_permission("orders", "read")),
    service: OrderService = Depends(get_order_service),
):
    return service.get_status(OrderLookup(order_id=order_id))
