import math

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

from slamopt.rotation import (
    angle_axis_rotate_point,
    angle_axis_to_quaternion,
    cross_product,
    dot_product,
    quaternion_to_angle_axis,
)

ANGLE_AXES = [
    [0.1, -0.2, 0.3],
    [1.0, 0.5, -0.25],
    [0.0, 0.0, 2.5],
    [-1.2, 0.7, 1.1],
]


def test_dot_product_matches_numpy():
    x, y = [1.5, -2.0, 0.5], [0.25, 3.0, -4.0]
    assert dot_product(x, y) == pytest.approx(np.dot(x, y))


def test_cross_product_matches_numpy():
    x, y = [1.5, -2.0, 0.5], [0.25, 3.0, -4.0]
    np.testing.assert_allclose(cross_product(x, y), np.cross(x, y))


def test_wrong_shape_raises():
    with pytest.raises(ValueError):
        dot_product([1.0, 2.0], [1.0, 2.0])


def test_zero_angle_axis_is_identity_quaternion():
    np.testing.assert_allclose(angle_axis_to_quaternion([0.0, 0.0, 0.0]), [1.0, 0.0, 0.0, 0.0])


@pytest.mark.parametrize("aa", ANGLE_AXES)
def test_quaternion_has_unit_norm(aa):
    assert np.linalg.norm(angle_axis_to_quaternion(aa)) == pytest.approx(1.0)


@pytest.mark.parametrize("aa", ANGLE_AXES)
def test_angle_axis_quaternion_round_trip(aa):
    q = angle_axis_to_quaternion(aa)
    np.testing.assert_allclose(quaternion_to_angle_axis(q), aa, atol=1e-12)


@pytest.mark.parametrize("aa", ANGLE_AXES)
def test_negated_quaternion_gives_same_angle_axis(aa):
    q = angle_axis_to_quaternion(aa)
    np.testing.assert_allclose(quaternion_to_angle_axis(-q), quaternion_to_angle_axis(q), atol=1e-12)


@pytest.mark.parametrize("aa", ANGLE_AXES)
def test_rotate_point_matches_reference(aa):
    pt = np.array([0.3, -1.7, 2.2])
    expected = Rotation.from_rotvec(aa).apply(pt)
    np.testing.assert_allclose(angle_axis_rotate_point(aa, pt), expected, atol=1e-12)


@pytest.mark.parametrize("aa", ANGLE_AXES)
def test_rotation_preserves_norm(aa):
    pt = np.array([4.0, -1.0, 0.5])
    assert np.linalg.norm(angle_axis_rotate_point(aa, pt)) == pytest.approx(np.linalg.norm(pt))


def test_point_on_axis_is_fixed():
    aa = np.array([0.4, -0.3, 0.9])
    pt = 2.5 * aa
    np.testing.assert_allclose(angle_axis_rotate_point(aa, pt), pt, atol=1e-12)


def test_tiny_rotation_uses_first_order_approximation():
    aa = np.array([1e-9, -2e-9, 0.0])
    pt = np.array([1.0, 2.0, 3.0])
    np.testing.assert_allclose(angle_axis_rotate_point(aa, pt), pt + np.cross(aa, pt))


def test_half_turn_round_trip_keeps_angle():
    aa = np.array([0.0, math.pi * 0.99, 0.0])
    back = quaternion_to_angle_axis(angle_axis_to_quaternion(aa))
    assert np.linalg.norm(back) == pytest.approx(np.linalg.norm(aa))