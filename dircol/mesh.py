"""
Normalized time grids.

A mesh stores points ``tau_k`` on ``[0, 1]``; physical times are
``t_k = t0 + (tf - t0) * tau_k`` so that the initial and final times can be
decision variables.
"""

from __future__ import annotations

import logging

import numpy as np

from .dc_types import FloatArray, NumericArrayLike
from .input_validation import (
    _validate_interval_lengths,
    _validate_mesh_points,
    _validate_positive_integer,
)


logger = logging.getLogger(__name__)


class Mesh:
    """Ordered, strictly increasing normalized grid spanning ``[0, 1]``."""

    def __init__(self, points: NumericArrayLike) -> None:
        validated = _validate_mesh_points(points).copy()
        # guard against round-off at the ends after normalization
        validated[0] = 0.0
        validated[-1] = 1.0
        validated.setflags(write=False)
        self._points = validated

    @classmethod
    def uniform(cls, num_points: int) -> Mesh:
        _validate_positive_integer(num_points, "num_mesh_points", min_value=2)
        return cls(np.linspace(0.0, 1.0, num_points))

    @classmethod
    def from_intervals(cls, lengths: NumericArrayLike) -> Mesh:
        """Build a mesh from relative interval lengths, normalized to sum to one."""
        lengths_array = _validate_interval_lengths(lengths)
        points = np.concatenate(([0.0], np.cumsum(lengths_array) / np.sum(lengths_array)))
        return cls(points)

    @property
    def points(self) -> FloatArray:
        return self._points

    @property
    def intervals(self) -> FloatArray:
        """Normalized interval lengths ``tau_{k+1} - tau_k``."""
        return np.diff(self._points)

    @property
    def num_points(self) -> int:
        return len(self._points)

    @property
    def num_intervals(self) -> int:
        return len(self._points) - 1

    @property
    def is_uniform(self) -> bool:
        return bool(np.allclose(self.intervals, 1.0 / self.num_intervals))

    def times(self, initial_time: float, final_time: float) -> FloatArray:
        return initial_time + (final_time - initial_time) * self._points

    def __len__(self) -> int:
        return self.num_points

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mesh):
            return NotImplemented
        return self.num_points == other.num_points and bool(
            np.allclose(self._points, other._points)
        )

    def __hash__(self) -> int:
        return hash(tuple(np.round(self._points, 12)))

    def __repr__(self) -> str:
        kind = "uniform" if self.is_uniform else "non-uniform"
        return f"Mesh({self.num_points} points, {kind})"
