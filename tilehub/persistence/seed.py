from __future__ import annotations

from sqlalchemy import select

from ..seed import load_product_seed
from .db import Database
from .models import ProductRecord


def seed_products_if_empty(db: Database, seed_path: str) -> None:
    items = load_product_seed(seed_path)
    if not items:
        return

    with db.session() as session:
        existing = session.execute(select(ProductRecord.id).limit(1)).first()
        if existing:
            return
        session.add_all(
            [
                ProductRecord(
                    id=item.id,
                    name=item.name,
                    description=item.description,
                    price=item.price,
                    stock=item.stock,
                    length_mm=item.length_mm,
                    width_mm=item.width_mm,
                    box_moq=item.box_moq,
                    is_featured=item.is_featured,
                )
                for item in items
            ]
        )
