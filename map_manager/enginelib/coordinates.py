"""Conversion between image pixel space and map display space.

Image pixels grow downward from the top-left corner while the display
surface measures its vertical axis upward from the bottom edge.
"""
from __future__ import annotations

import math
from typing import Tuple


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""

    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"coordinate must be finite, got {value!r}")
    if number >= 0:
        return int(math.floor(number + 0.5))
    return -int(math.floor(-number + 0.5))


class CoordinateTransform:
    def __init__(self, image_height: int):
        self.image_height = int(image_height)

    def to_display(self, x: float, y: float) -> Tuple[float, float]:
        return (self.image_height - y, x)

    def from_display(self, lat: float, lng: float) -> Tuple[int, int]:
        return (round_half_up(lng), round_half_up(self.image_height - lat))

    def bounds(self, image_width: int) -> Tuple[Tuple[int, int], Tuple[int, int]]:
        return ((0, 0), (self.image_height, int(image_width)))
