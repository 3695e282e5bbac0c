import numpy as np
import pytest

from slamopt.projection import SnavelyReprojectionError, cam_projection_with_distortion
from slamopt.rotation import angle_axis_rotate_point


def _camera(rotation=(0.0, 0.0, 0.0), translation=(0.0, 0.0, 0.0), focal=1.0, l1=0.0, l2=0.0):
    return np.array([*rotation, *translation, focal, l1, l2])


def test_simple_pinhole_projection():
    result = cam_projection_with_distortion(_camera(), [1.0, 2.0, -4.0])
    np.testing.assert_allclose(result, [0.25, 0.5])


def test_focal_scales_prediction():
    point = [0.3, -0.7, -5.0]
    base = cam_projection_with_distortion(_camera(focal=1.0), point)
    scaled = cam_projection_with_distortion(_camera(focal=3.0), point)
    np.testing.assert_allclose(scaled, 3.0 * base)


def test_translation_equals_shifted_point():
    point = np.array([0.3, -0.7, -5.0])
    t = np.array([0.5, 0.1, -1.0])
    with_t = cam_projection_with_distortion(_camera(translation=t, focal=500.0), point)
    shifted = cam_projection_with_distortion(_camera(focal=500.0), point + t)
    np.testing.assert_allclose(with_t, shifted)


def test_rotation_equals_rotated_point():
    point = np.array([0.3, -0.7, -5.0])
    aa = np.array([0.05, -0.02, 0.1])
    rotated_cam = cam_projection_with_distortion(_camera(rotation=aa, focal=400.0), point)
    rotated_point = cam_projection_with_distortion(
        _camera(focal=400.0), angle_axis_rotate_point(aa, point)
    )
    np.testing.assert_allclose(rotated_cam, rotated_point)


def test_distortion_keeps_direction():
    point = [0.8, -0.4, -2.0]
    plain = cam_projection_with_distortion(_camera(focal=100.0), point)
    distorted = cam_projection_with_distortion(_camera(focal=100.0, l1=0.2, l2=0.05), point)
    cross = plain[0] * distorted[1] - plain[1] * distorted[0]
    assert cross == pytest.approx(0.0, abs=1e-9)
    assert np.linalg.norm(distorted) > np.linalg.norm(plain)


def test_point_on_optical_axis_projects_to_centre():
    result = cam_projection_with_distortion(_camera(focal=700.0, l1=0.1, l2=0.01), [0.0, 0.0, -3.0])
    np.testing.assert_allclose(result, [0.0, 0.0], atol=1e-12)


def test_bad_camera_shape_raises():
    with pytest.raises(ValueError):
        cam_projection_with_distortion(np.zeros(10), [0.0, 0.0, -1.0])


def test_residual_zero_at_observation():
    camera = _camera(rotation=(0.01, 0.02, -0.01), translation=(0.1, 0.0, -0.2), focal=600.0, l1=0.01)
    point = np.array([0.5, 0.3, -4.0])
    u, v = cam_projection_with_distortion(camera, point)
    residual = SnavelyReprojectionError(u, v)(camera, point)
    np.testing.assert_allclose(residual, [0.0, 0.0], atol=1e-12)


def test_residual_is_prediction_minus_observation():
    camera = _camera(focal=600.0)
    point = np.array([0.5, 0.3, -4.0])
    prediction = cam_projection_with_distortion(camera, point)
    residual = SnavelyReprojectionError(10.0, -20.0)(camera, point)
    np.testing.assert_allclose(residual + np.array([10.0, -20.0]), prediction)