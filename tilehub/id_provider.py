from __future__ import annotations

from typing import Protocol
from uuid import uuid4


class IdProvider(Protocol):
    def new_id(self) -> str: ...


class UUIDProvider:
    """Canonical hyphenated UUIDs, the format product and order ids share."""

    def new_id(self) -> str:
        return str(uuid4())
