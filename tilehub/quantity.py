"""Tile quantity resolution.

Cart lines may ask for a floor area (``coverage``, square feet) instead of a
piece count. Pieces are derived from the tile's nominal millimetre dimensions,
always rounded up, then rounded up again to whole boxes when the product is
sold in boxes of ``box_moq`` pieces.
"""

from __future__ import annotations

import math
from typing import Optional

from .errors import ValidationError

MM2_PER_M2 = 1_000_000
SQFT_PER_M2 = 10.764


def tile_area_sqft(length_mm: Optional[float], width_mm: Optional[float]) -> Optional[float]:
    """Area covered by a single tile, or None when the product is not a sized unit."""
    if not length_mm or not width_mm or length_mm <= 0 or width_mm <= 0:
        return None
    return (length_mm * width_mm) / MM2_PER_M2 * SQFT_PER_M2


def round_up_to_box(pieces: int, box_moq: int) -> int:
    if box_moq > 1:
        return math.ceil(pieces / box_moq) * box_moq
    return pieces


def resolve_quantity(
    quantity: Optional[int],
    coverage: Optional[float],
    length_mm: Optional[float],
    width_mm: Optional[float],
    box_moq: Optional[int] = 1,
) -> int:
    """Final piece count for one cart line.

    Coverage drives the count only when it is non-zero and both dimensions are
    positive. Otherwise the requested quantity passes through unchanged.
    """
    has_dimensions = bool(length_mm and width_mm and length_mm > 0 and width_mm > 0)
    if not coverage or not has_dimensions:
        if quantity is None:
            raise ValidationError("quantity is required when coverage cannot be applied")
        return quantity

    if not math.isfinite(coverage):
        raise ValidationError("coverage must be a finite number")

    area = tile_area_sqft(length_mm, width_mm)
    # positive dimensions can still underflow to a zero area
    if not area:
        raise ValidationError(f"Tile area is zero for dimensions {length_mm}x{width_mm} mm")

    pieces = math.ceil(coverage / area)
    return round_up_to_box(pieces, box_moq or 1)
