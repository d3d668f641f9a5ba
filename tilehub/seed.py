from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import List

from pydantic import BaseModel, field_validator

from .domain import Product


class ProductSeed(BaseModel):
    items: List[Product]

    @field_validator("items")
    @classmethod
    def unique_ids(cls, items: List[Product]) -> List[Product]:
        duplicates = [product_id for product_id, count in Counter(item.id for item in items).items() if count > 1]
        if duplicates:
            raise ValueError(f"Duplicate product ids in seed: {', '.join(sorted(duplicates))}")
        return items


def load_product_seed(path: str) -> List[Product]:
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    return ProductSeed(**data).items
