"""Three-component vector products."""

from __future__ import annotations

import math
from collections.abc import Sequence

Vector3 = tuple[float, float, float]

DEGREE_TO_RAD = math.pi / 180.0
RAD_TO_DEGREE = 180.0 / math.pi


def dot_product(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the dot product of two 3-vectors."""
    ax, ay, az = a
    bx, by, bz = b
    return ax * bx + ay * by + az * bz


def cross_product(a: Sequence[float], b: Sequence[float]) -> Vector3:
    """Return the cross product ``a x b`` of two 3-vectors."""
    ax, ay, az = a
    bx, by, bz = b
    return (
        ay * bz - az * by,
        az * bx - ax * bz,
        ax * by - ay * bx,
    )