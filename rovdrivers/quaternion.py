"""Quaternion helpers; quaternions are ``(w, x, y, z)`` tuples."""

from __future__ import annotations

import math
from collections.abc import Sequence

from rovdrivers.vector3 import Vector3, cross_product, dot_product

Quaternion = tuple[float, float, float, float]

_POLE = math.pi / 2.0 - 0.05


def norm(q: Sequence[float]) -> float:
    """Return the length of a quaternion."""
    w, x, y, z = q
    return math.sqrt(w * w + x * x + y * y + z * z)


def normalize(q: Sequence[float]) -> Quaternion:
    """Return ``q`` scaled to unit length; a zero quaternion is returned as is."""
    w, x, y, z = q
    length = norm(q)
    if length == 0:
        return (w, x, y, z)
    return (w / length, x / length, y / length, z / length)


def quaternion_to_euler(q: Sequence[float], roll: float = 0.0) -> Vector3:
    """Convert a quaternion to ``(roll, pitch, yaw)`` in radians.

    Near the poles roll is unreliable, so when pitch is within 0.05 rad of
    +/-90 degrees the given ``roll`` is returned unchanged.
    """
    w, x, y, z = q
    pitch = math.asin(2.0 * (w * y - x * z))
    if -_POLE < pitch < _POLE:
        roll = math.atan2(2.0 * (y * z + w * x), 1.0 - 2.0 * (x * x + y * y))
    yaw = math.atan2(2.0 * (x * y + w * z), 1.0 - 2.0 * (y * y + z * z))
    return (roll, pitch, yaw)


def euler_to_quaternion(v: Sequence[float]) -> Quaternion:
    """Convert ``(roll, pitch, yaw)`` in radians to a unit quaternion."""
    roll, pitch, yaw = v
    cos_x2, sin_x2 = math.cos(roll / 2.0), math.sin(roll / 2.0)
    cos_y2, sin_y2 = math.cos(pitch / 2.0), math.sin(pitch / 2.0)
    cos_z2, sin_z2 = math.cos(yaw / 2.0), math.sin(yaw / 2.0)
    return normalize(
        (
            cos_x2 * cos_y2 * cos_z2 + sin_x2 * sin_y2 * sin_z2,
            sin_x2 * cos_y2 * cos_z2 - cos_x2 * sin_y2 * sin_z2,
            cos_x2 * sin_y2 * cos_z2 + sin_x2 * cos_y2 * sin_z2,
            cos_x2 * cos_y2 * sin_z2 - sin_x2 * sin_y2 * cos_z2,
        )
    )


def conjugate(q: Sequence[float]) -> Quaternion:
    """Return the conjugate of ``q``."""
    w, x, y, z = q
    return (w, -x, -y, -z)


def multiply(qa: Sequence[float], qb: Sequence[float]) -> Quaternion:
    """Return the Hamilton product ``qa * qb``."""
    wa, *va = qa
    wb, *vb = qb
    dot_ab = dot_product(va, vb)
    cx, cy, cz = cross_product(va, vb)
    return (
        wa * wb - dot_ab,
        wa * vb[0] + wb * va[0] + cx,
        wa * vb[1] + wb * va[1] + cy,
        wa * vb[2] + wb * va[2] + cz,
    )