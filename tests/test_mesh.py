import numpy as np
import pytest
from numpy.testing import assert_allclose

from dircol import ConfigurationError, Mesh


class TestMeshConstruction:
    @pytest.mark.parametrize("num_points", [2, 3, 10, 101])
    def test_uniform_mesh_spans_unit_interval(self, num_points):
        """Uniform mesh: tau_0 = 0, tau_{N-1} = 1, equal intervals 1/(N-1)."""
        mesh = Mesh.uniform(num_points)

        assert mesh.num_points == num_points
        assert mesh.num_intervals == num_points - 1
        assert mesh.points[0] == 0.0 and mesh.points[-1] == 1.0
        assert mesh.is_uniform
        assert_allclose(mesh.intervals, 1.0 / (num_points - 1), rtol=1e-13)

    def test_explicit_non_uniform_points(self):
        """Points [0, 0.1, 0.5, 1] give intervals [0.1, 0.4, 0.5]."""
        mesh = Mesh([0.0, 0.1, 0.5, 1.0])

        assert not mesh.is_uniform
        assert_allclose(mesh.intervals, [0.1, 0.4, 0.5], rtol=1e-14)

    def test_from_intervals_normalizes_lengths(self):
        """Lengths [1, 1, 2] normalize to points [0, 0.25, 0.5, 1]."""
        mesh = Mesh.from_intervals([1.0, 1.0, 2.0])

        assert_allclose(mesh.points, [0.0, 0.25, 0.5, 1.0], rtol=1e-14)
        assert mesh.points[-1] == 1.0, "Last point must be exactly one after normalization"

    def test_points_are_read_only(self):
        mesh = Mesh.uniform(5)
        with pytest.raises(ValueError):
            mesh.points[1] = 0.3

    def test_physical_times(self):
        """t_k = t0 + (tf - t0) * tau_k."""
        mesh = Mesh([0.0, 0.25, 1.0])
        assert_allclose(mesh.times(2.0, 6.0), [2.0, 3.0, 6.0], rtol=1e-14)

    def test_equality_and_length(self):
        assert Mesh.uniform(4) == Mesh([0.0, 1.0 / 3.0, 2.0 / 3.0, 1.0])
        assert Mesh.uniform(4) != Mesh.uniform(5)
        assert len(Mesh.uniform(7)) == 7


class TestMeshValidation:
    @pytest.mark.parametrize(
        "points",
        [
            [0.0],
            [0.0, 0.5, 0.4, 1.0],
            [0.0, 0.5, 0.5, 1.0],
            [0.1, 0.5, 1.0],
            [0.0, 0.5, 0.9],
            [0.0, np.nan, 1.0],
        ],
    )
    def test_invalid_points_raise_configuration_error(self, points):
        """Too few, non-increasing, duplicate, off-[0, 1] or NaN points are rejected."""
        with pytest.raises(ConfigurationError):
            Mesh(points)

    @pytest.mark.parametrize("num_points", [0, 1, -3])
    def test_uniform_requires_two_points(self, num_points):
        with pytest.raises(ConfigurationError):
            Mesh.uniform(num_points)

    def test_non_integer_point_count_rejected(self):
        with pytest.raises(ConfigurationError):
            Mesh.uniform(4.0)

    @pytest.mark.parametrize("lengths", [[], [1.0, -1.0], [1.0, 0.0]])
    def test_invalid_interval_lengths(self, lengths):
        with pytest.raises(ConfigurationError):
            Mesh.from_intervals(lengths)

    def test_numpy_integer_point_count_accepted(self):
        """np.int64 counts build the same mesh as Python ints."""
        assert Mesh.uniform(np.int64(6)) == Mesh.uniform(6)
