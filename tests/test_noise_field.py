"""
Tests for the noise field module
"""
import pytest

from voxelscape.noise_field import NoiseField, quintic


SAMPLE_POINTS = [(-37, 12), (0, 0), (1, 0), (0, 1), (5, 9), (1234, -987), (40000, 40000)]


def test_hash_is_deterministic():
    """Test that the same seed and lattice point always hash the same"""
    first = NoiseField(42)
    second = NoiseField(42)
    for x, y in SAMPLE_POINTS:
        assert first.hash(x, y) == second.hash(x, y)
        assert first.hash(x, y) == first.hash(x, y)


def test_hash_range():
    """Test that hashes fall in [0, 1)"""
    field = NoiseField(7)
    for x in range(-20, 20):
        for y in range(-20, 20):
            value = field.hash(x, y)
            assert 0.0 <= value < 1.0


def test_seed_changes_output():
    """Test that different seeds give different fields"""
    first = NoiseField(1)
    second = NoiseField(2)
    assert first.seed == 1
    assert any(first.hash(x, y) != second.hash(x, y) for x, y in SAMPLE_POINTS)
    assert any(first.noise2d(x * 0.37, y * 0.37) != second.noise2d(x * 0.37, y * 0.37)
               for x, y in SAMPLE_POINTS)


def test_noise2d_deterministic_and_bounded():
    """Test 2D noise determinism and its approximate [-1, 1] range"""
    field = NoiseField(12345)
    values = []
    for i in range(200):
        x = i * 0.173 - 17.0
        y = i * 0.291 + 3.5
        value = field.noise2d(x, y)
        assert value == field.noise2d(x, y)
        assert -1.1 <= value <= 1.1
        values.append(value)

    # Not a constant field
    assert len(set(values)) > 100
    assert min(values) < 0 < max(values)


def test_noise3d_deterministic_and_bounded():
    """Test that pseudo-3D noise is repeatable and stays small"""
    field = NoiseField(99)
    for i in range(100):
        x, y, z = i * 0.31, i * 0.17 - 4.0, 50 - i * 0.23
        value = field.noise3d(x, y, z)
        assert value == NoiseField(99).noise3d(x, y, z)
        assert abs(value) <= 1.1


def test_quintic_curve():
    """Test the smoothing curve endpoints and midpoint"""
    assert quintic(0.0) == 0.0
    assert quintic(1.0) == 1.0
    assert quintic(0.5) == pytest.approx(0.5)
