import math

import pytest

from rovdrivers.quaternion import (
    conjugate,
    euler_to_quaternion,
    multiply,
    norm,
    normalize,
    quaternion_to_euler,
)

IDENTITY = (1.0, 0.0, 0.0, 0.0)


def test_normalize_gives_unit_length():
    q = normalize((1.0, 2.0, -3.0, 4.0))
    assert norm(q) == pytest.approx(1.0)


def test_normalize_zero_is_unchanged():
    assert normalize((0.0, 0.0, 0.0, 0.0)) == (0.0, 0.0, 0.0, 0.0)


def test_normalize_keeps_direction():
    q = (2.0, 0.0, 0.0, 0.0)
    assert normalize(q) == IDENTITY


def test_conjugate_negates_vector_part():
    q = (0.5, 0.1, -0.2, 0.3)
    assert conjugate(q) == (0.5, -0.1, 0.2, -0.3)
    assert conjugate(conjugate(q)) == q


def test_multiply_by_identity():
    q = (0.5, 0.1, -0.2, 0.3)
    assert multiply(IDENTITY, q) == pytest.approx(q)
    assert multiply(q, IDENTITY) == pytest.approx(q)


def test_unit_quaternion_times_conjugate_is_identity():
    q = normalize((0.3, -0.4, 0.5, 0.6))
    assert multiply(q, conjugate(q)) == pytest.approx(IDENTITY)


def test_multiply_preserves_norm_product():
    qa = (1.0, 2.0, 3.0, 4.0)
    qb = (-0.5, 0.25, 1.5, -2.0)
    assert norm(multiply(qa, qb)) == pytest.approx(norm(qa) * norm(qb))


def test_euler_zero_is_identity():
    assert euler_to_quaternion((0.0, 0.0, 0.0)) == pytest.approx(IDENTITY)


@pytest.mark.parametrize(
    "angles",
    [(0.1, 0.2, 0.3), (-1.0, 0.5, 2.5), (2.0, -1.2, -3.0), (0.0, 0.0, 1.0)],
)
def test_euler_round_trip(angles):
    q = euler_to_quaternion(angles)
    assert norm(q) == pytest.approx(1.0)
    assert quaternion_to_euler(q) == pytest.approx(angles, abs=1e-9)


def test_roll_kept_near_pole():
    q = euler_to_quaternion((0.4, math.pi / 2.0 - 0.01, 0.0))
    roll, pitch, _ = quaternion_to_euler(q, roll=0.77)
    assert roll == 0.77
    assert pitch == pytest.approx(math.pi / 2.0 - 0.01, abs=1e-6)


def test_roll_ignored_away_from_pole():
    q = euler_to_quaternion((0.4, 0.2, 0.0))
    roll, _, _ = quaternion_to_euler(q, roll=0.77)
    assert roll == pytest.approx(0.4)