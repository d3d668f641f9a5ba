from __future__ import annotations

from fastapi import Depends, Request

from .container import Container
from .services import IdentityService, OrderService, PermissionService, ProductService


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_settings(container: Container = Depends(get_container)):
    return container.settings


def get_identity_service(container: Container = Depends(get_container)) -> IdentityService:
    return container.identity_service


def get_permission_service(container: Container = Depends(get_container)) -> PermissionService:
    return container.permission_service


def get_product_service(container: Container = Depends(get_container)) -> ProductService:
    return container.product_service


def get_order_service(container: Container = Depends(get_container)) -> OrderService:
    return container.order_service
