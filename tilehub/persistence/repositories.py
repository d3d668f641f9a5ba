from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from ..domain import (
    AdminNotification,
    Order,
    OrderFilter,
    OrderLine,
    OrderStatus,
    PaymentStatus,
    Product,
    ProductDimensions,
    ShippingAddress,
    StockDecrement,
)
from ..errors import InsufficientStockError
from .db import Database
from .models import AdminNotificationRecord, OrderRecord, ProductRecord


def product_from_record(record: ProductRecord) -> Product:
    return Product(
        id=record.id,
        name=record.name,
        description=record.description,
        price=record.price,
        stock=record.stock,
        length_mm=record.length_mm,
        width_mm=record.width_mm,
        box_moq=record.box_moq,
        is_featured=record.is_featured,
    )


def order_from_record(record: OrderRecord) -> Order:
    return Order(
        id=record.id,
        user_id=record.user_id,
        items=[OrderLine(**item) for item in record.items],
        total_amount=record.total_amount,
        shipping_address=ShippingAddress(**record.shipping_address),
        status=OrderStatus(record.status),
        payment_status=PaymentStatus(record.payment_status),
        tracking_number=record.tracking_number,
        admin_notes=record.admin_notes,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


class SqlAlchemyProductRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def get(self, product_id: str) -> Optional[Product]:
        with self._db.session() as session:
            record = session.get(ProductRecord, product_id)
            return product_from_record(record) if record else None

    def list(self, limit: int) -> List[Product]:
        with self._db.session() as session:
            stmt = select(ProductRecord).order_by(ProductRecord.name.asc()).limit(limit)
            return [product_from_record(record) for record in session.execute(stmt).scalars().all()]

    def dimensions(self, product_ids: Iterable[str]) -> Dict[str, ProductDimensions]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        with self._db.session() as session:
            stmt = select(
                ProductRecord.id,
                ProductRecord.length_mm,
                ProductRecord.width_mm,
                ProductRecord.box_moq,
            ).where(ProductRecord.id.in_(ids))
            return {
                row.id: ProductDimensions(
                    id=row.id,
                    length_mm=row.length_mm,
                    width_mm=row.width_mm,
                    box_moq=row.box_moq,
                )
                for row in session.execute(stmt)
            }

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        with self._db.session() as session:
            return self._conditional_decrement(session, product_id, quantity)

    def decrement_stock_all(self, lines: Sequence[StockDecrement]) -> None:
        with self._db.session() as session:
            for line in lines:
                if not self._conditional_decrement(session, line.product_id, line.quantity):
                    raise InsufficientStockError(line.product_id, line.quantity)

    @staticmethod
    def _conditional_decrement(session: Session, product_id: str, quantity: int) -> bool:
        # single UPDATE ... WHERE stock >= qty; no read-then-write
        stmt = (
            update(ProductRecord)
            .where(ProductRecord.id == product_id, ProductRecord.stock >= quantity)
            .values(stock=ProductRecord.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return session.execute(stmt).rowcount == 1


class SqlAlchemyOrderRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, order: Order) -> Order:
        with self._db.session() as session:
            session.add(
                OrderRecord(
                    id=order.id,
                    user_id=order.user_id,
                    items=[item.model_dump(mode="json") for item in order.items],
                    total_amount=order.total_amount,
                    shipping_address=order.shipping_address.model_dump(mode="json", by_alias=True),
                    status=order.status.value,
                    payment_status=order.payment_status.value,
                    tracking_number=order.tracking_number,
                    admin_notes=order.admin_notes,
                    created_at=order.created_at,
                    updated_at=order.updated_at,
                )
            )
        return order

    def get(self, order_id: str) -> Optional[Order]:
        with self._db.session() as session:
            record = session.get(OrderRecord, order_id)
            return order_from_record(record) if record else None

    def update(self, order: Order) -> Order:
        # the line snapshot is immutable once placed; only workflow fields change
        with self._db.session() as session:
            record = session.get(OrderRecord, order.id)
            if not record:
                return order
            record.status = order.status.value
            record.payment_status = order.payment_status.value
            record.tracking_number = order.tracking_number
            record.admin_notes = order.admin_notes
            record.updated_at = order.updated_at
        return order

    def list_filtered(self, query: OrderFilter) -> Tuple[List[Order], int]:
        conditions = []
        if query.status:
            conditions.append(OrderRecord.status == query.status.value)
        if query.user_id:
            conditions.append(OrderRecord.user_id == query.user_id)
        if query.from_date:
            conditions.append(OrderRecord.created_at >= query.from_date)
        if query.to_date:
            conditions.append(OrderRecord.created_at <= query.to_date)

        with self._db.session() as session:
            total = session.execute(select(func.count()).select_from(OrderRecord).where(*conditions)).scalar_one()
            stmt = (
                select(OrderRecord)
                .where(*conditions)
                .order_by(OrderRecord.created_at.desc())
                .offset(query.offset)
                .limit(query.limit)
            )
            records = session.execute(stmt).scalars().all()
            return [order_from_record(record) for record in records], int(total)


class SqlAlchemyNotificationRepository:
    def __init__(self, db: Database) -> None:
        self._db = db

    def add(self, notification: AdminNotification) -> AdminNotification:
        with self._db.session() as session:
            session.add(
                AdminNotificationRecord(
                    id=notification.id,
                    type=notification.type.value,
                    user_id=notification.user_id,
                    content=notification.content,
                    status=notification.status.value,
                    created_at=notification.created_at,
                )
            )
        return notification

    def list_all(self) -> List[AdminNotification]:
        with self._db.session() as session:
            stmt = select(AdminNotificationRecord).order_by(AdminNotificationRecord.created_at.desc())
            return [
                AdminNotification(
                    id=record.id,
                    type=record.type,
                    user_id=record.user_id,
                    content=record.content,
                    status=record.status,
                    created_at=record.created_at,
                )
                for record in session.execute(stmt).scalars().all()
            ]
