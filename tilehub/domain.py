from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    confloat,
    conint,
    constr,
    field_validator,
    model_validator,
)

from .quantity import tile_area_sqft


class OrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    CANCELLED = "cancelled"


class NotificationType(str, Enum):
    NEW_ORDER = "new_order"


class NotificationStatus(str, Enum):
    UNREAD = "unread"
    READ = "read"


class AuthContext(BaseModel):
    sub: str
    iss: str
    exp: int
    user_type: Optional[str] = None


class TokenInput(BaseModel):
    token: str


class Product(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    price: float
    stock: conint(ge=0) = 0
    length_mm: Optional[float] = None
    width_mm: Optional[float] = None
    box_moq: conint(ge=1) = 1
    is_featured: bool = False

    @computed_field
    @property
    def tile_coverage_sqft(self) -> Optional[float]:
        return tile_area_sqft(self.length_mm, self.width_mm)


class ProductDimensions(BaseModel):
    id: str
    length_mm: Optional[float] = None
    width_mm: Optional[float] = None
    box_moq: int = 1


class ProductList(BaseModel):
    items: List[Product]


class ProductLookup(BaseModel):
    product_id: str


class CartItem(BaseModel):
    product_id: UUID
    quantity: Optional[conint(ge=1)] = None
    coverage: Optional[confloat(ge=0, allow_inf_nan=False)] = None

    @model_validator(mode="after")
    def quantity_or_coverage(self) -> "CartItem":
        if self.quantity is None and self.coverage is None:
            raise ValueError("Either quantity or coverage is required")
        return self


class ShippingAddress(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    street: constr(strip_whitespace=True, min_length=1)
    city: constr(strip_whitespace=True, min_length=1)
    state: constr(strip_whitespace=True, min_length=1)
    zip_code: constr(strip_whitespace=True, min_length=1) = Field(alias="zipCode")


class OrderCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: List[CartItem] = Field(min_length=1)
    total_amount: confloat(ge=0, allow_inf_nan=False) = Field(alias="totalAmount")
    shipping_address: ShippingAddress = Field(alias="shippingAddress")


class OrderLine(BaseModel):
    """Resolved line as stored on the order. A snapshot, not a product reference."""

    product_id: str
    quantity: int
    coverage: Optional[float] = None


class Order(BaseModel):
    id: str
    user_id: str
    items: List[OrderLine]
    total_amount: float
    shipping_address: ShippingAddress
    status: OrderStatus
    payment_status: PaymentStatus
    tracking_number: Optional[str] = None
    admin_notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OrderEnvelope(BaseModel):
    message: str
    data: Order


class CreateOrderInput(BaseModel):
    user_id: str
    order: OrderCreate


class OrderLookup(BaseModel):
    order_id: str


class OrderStatusView(BaseModel):
    id: str
    status: OrderStatus
    payment_status: PaymentStatus
    updated_at: datetime


class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = None


class OrderFilter(BaseModel):
    status: Optional[OrderStatus] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    user_id: Optional[str] = None
    page: conint(ge=1) = 1
    limit: conint(ge=1, le=100) = 20

    @field_validator("from_date", "to_date")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class OrderPage(BaseModel):
    data: List[Order]
    page: int
    limit: int
    total: int
    total_pages: int


class StockDecrement(BaseModel):
    product_id: str
    quantity: int


class AdminNotification(BaseModel):
    id: str
    type: NotificationType
    user_id: Optional[str] = None
    content: str
    status: NotificationStatus = NotificationStatus.UNREAD
    created_at: datetime


class HealthStatus(BaseModel):
    status: str
    time: datetime
