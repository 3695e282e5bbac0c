import numpy as np
import pytest

from slamopt.noise import NoiseSource


def test_same_seed_gives_same_sequence():
    a, b = NoiseSource(38401), NoiseSource(38401)
    assert [a.normal() for _ in range(20)] == [b.normal() for _ in range(20)]


def test_different_seeds_differ():
    a, b = NoiseSource(1), NoiseSource(2)
    assert [a.uniform() for _ in range(10)] != [b.uniform() for _ in range(10)]


def test_uniform_within_unit_interval():
    source = NoiseSource(7)
    samples = [source.uniform() for _ in range(5000)]
    assert min(samples) >= 0.0
    assert max(samples) <= 1.0


def test_normal_statistics():
    source = NoiseSource(11)
    samples = np.array([source.normal() for _ in range(20000)])
    assert abs(samples.mean()) < 0.05
    assert abs(samples.std() - 1.0) < 0.05


def test_perturb_zero_sigma_returns_copy():
    values = np.array([1.0, 2.0, 3.0])
    result = NoiseSource(3).perturb(values, 0.0)
    np.testing.assert_array_equal(result, values)
    result[0] = 99.0
    assert values[0] == 1.0


def test_perturb_keeps_shape_and_input():
    values = np.zeros((4, 3))
    result = NoiseSource(5).perturb(values, 0.5)
    assert result.shape == (4, 3)
    assert np.all(values == 0.0)
    assert np.any(result != 0.0)


def test_perturb_uses_normal_stream():
    values = np.array([1.0, -1.0, 0.5])
    result = NoiseSource(9).perturb(values, 2.0)
    reference = NoiseSource(9)
    drawn = np.array([reference.normal() for _ in range(3)])
    np.testing.assert_allclose(result, values + 2.0 * drawn)


def test_perturb_negative_sigma_raises():
    with pytest.raises(ValueError):
        NoiseSource(1).perturb([1.0], -0.1)