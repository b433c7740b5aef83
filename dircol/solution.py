"""
Solution interface for transcribed optimal control problems.

A Solution is immutable: every array it exposes is a read-only numpy array and
there are no setters. Non-convergence is recorded in ``status``; call
``raise_for_status()`` to turn it into an exception.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd

from .dc_types import FloatArray
from .exceptions import SolverFailure


logger = logging.getLogger(__name__)


class SolverStatus(Enum):
    CONVERGED = "converged"
    ITERATION_LIMIT = "iteration_limit"
    INFEASIBLE = "infeasible"
    SOLVER_ERROR = "solver_error"


def _read_only(values: Any, shape: tuple[int, ...]) -> FloatArray:
    array = np.array(values, dtype=np.float64).reshape(shape)
    array.setflags(write=False)
    return array


class Solution:
    """
    Time-indexed trajectories decoded from an NLP solution.

    Attributes:
        times: Physical time of every mesh point, shape ``(N,)``
        states: State values, shape ``(N, num_states)``
        controls: Control values, shape ``(N, num_controls)``
        multipliers: Multipliers at the kinematic constraint indices,
            shape ``(K, num_multipliers)``
        multiplier_indices: Mesh indices of the multiplier rows
        parameters: Parameter values, shape ``(num_parameters,)``
        objective: Total objective value
        objective_breakdown: Weighted value of each named cost term
        status: Outcome of the NLP solve
        iterations: Iterations reported by the NLP solver
        message: Solver return status string
        stats: Raw solver statistics

    Examples:
        >>> solution = solver.solve(problem)
        >>> if solution.success:
        ...     position = solution["position"]
        ...     df = solution.to_dataframe()
    """

    def __init__(
        self,
        *,
        times: FloatArray,
        states: FloatArray,
        controls: FloatArray,
        multipliers: FloatArray,
        multiplier_indices: tuple[int, ...],
        parameters: FloatArray,
        initial_time: float,
        final_time: float,
        objective: float,
        objective_breakdown: dict[str, float],
        status: SolverStatus,
        iterations: int,
        message: str,
        state_names: list[str],
        control_names: list[str],
        multiplier_names: list[str],
        parameter_names: list[str],
        mesh_points: FloatArray,
        transcription_scheme: str,
        stats: dict[str, Any] | None = None,
    ) -> None:
        num_points = len(times)
        self._times = _read_only(times, (num_points,))
        self._states = _read_only(states, (num_points, len(state_names)))
        self._controls = _read_only(controls, (num_points, len(control_names)))
        self._multipliers = _read_only(
            multipliers, (len(multiplier_indices), len(multiplier_names))
        )
        self._multiplier_indices = tuple(multiplier_indices)
        self._parameters = _read_only(parameters, (len(parameter_names),))
        self._mesh_points = _read_only(mesh_points, (num_points,))
        self._initial_time = float(initial_time)
        self._final_time = float(final_time)
        self._objective = float(objective)
        self._objective_breakdown = dict(objective_breakdown)
        self._status = status
        self._iterations = int(iterations)
        self._message = message
        self._state_names = list(state_names)
        self._control_names = list(control_names)
        self._multiplier_names = list(multiplier_names)
        self._parameter_names = list(parameter_names)
        self._transcription_scheme = transcription_scheme
        self._stats = dict(stats or {})

    # ================
    # SOLVER OUTCOME
    # ================

    @property
    def status(self) -> SolverStatus:
        return self._status

    @property
    def success(self) -> bool:
        return self._status is SolverStatus.CONVERGED

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def message(self) -> str:
        return self._message

    @property
    def stats(self) -> dict[str, Any]:
        return dict(self._stats)

    @property
    def objective(self) -> float:
        return self._objective

    @property
    def objective_breakdown(self) -> dict[str, float]:
        return dict(self._objective_breakdown)

    @property
    def transcription_scheme(self) -> str:
        return self._transcription_scheme

    def raise_for_status(self) -> Solution:
        """Return self if converged, otherwise raise SolverFailure."""
        if not self.success:
            raise SolverFailure(
                f"NLP solve did not converge: {self._status.value}",
                f"solver message: {self._message}",
            )
        return self

    # ============
    # TRAJECTORIES
    # ============

    @property
    def times(self) -> FloatArray:
        return self._times

    @property
    def mesh_points(self) -> FloatArray:
        return self._mesh_points

    @property
    def states(self) -> FloatArray:
        return self._states

    @property
    def controls(self) -> FloatArray:
        return self._controls

    @property
    def multipliers(self) -> FloatArray:
        return self._multipliers

    @property
    def multiplier_indices(self) -> tuple[int, ...]:
        return self._multiplier_indices

    @property
    def multiplier_times(self) -> FloatArray:
        indices = list(self._multiplier_indices)
        return _read_only(self._times[indices], (len(indices),))

    @property
    def parameters(self) -> FloatArray:
        return self._parameters

    @property
    def initial_time(self) -> float:
        return self._initial_time

    @property
    def final_time(self) -> float:
        return self._final_time

    @property
    def duration(self) -> float:
        return self._final_time - self._initial_time

    @property
    def num_mesh_points(self) -> int:
        return len(self._times)

    @property
    def state_names(self) -> list[str]:
        return list(self._state_names)

    @property
    def control_names(self) -> list[str]:
        return list(self._control_names)

    @property
    def multiplier_names(self) -> list[str]:
        return list(self._multiplier_names)

    @property
    def parameter_names(self) -> list[str]:
        return list(self._parameter_names)

    def __getitem__(self, key: str) -> FloatArray | float:
        """
        Look up a trajectory or parameter by name.

        States and controls return one value per mesh point, multipliers one
        value per kinematic constraint index and parameters a float.
        ``"time"`` returns the mesh times.

        Raises:
            KeyError: If no variable has this name
        """
        if key == "time":
            return self._times
        if key in self._state_names:
            return self._states[:, self._state_names.index(key)]
        if key in self._control_names:
            return self._controls[:, self._control_names.index(key)]
        if key in self._multiplier_names:
            return self._multipliers[:, self._multiplier_names.index(key)]
        if key in self._parameter_names:
            return float(self._parameters[self._parameter_names.index(key)])

        available = (
            ["time"]
            + self._state_names
            + self._control_names
            + self._multiplier_names
            + self._parameter_names
        )
        raise KeyError(f"Variable '{key}' not found. Available: {available}")

    def __contains__(self, key: str) -> bool:
        try:
            self[key]
        except KeyError:
            return False
        return True

    def to_dataframe(self) -> pd.DataFrame:
        """
        Trajectories as a pandas DataFrame with one row per mesh point.

        Multiplier columns hold NaN at mesh points without kinematic
        constraints. Parameters are not included.
        """
        data: dict[str, FloatArray] = {"time": np.array(self._times)}
        for i, name in enumerate(self._state_names):
            data[name] = np.array(self._states[:, i])
        for i, name in enumerate(self._control_names):
            data[name] = np.array(self._controls[:, i])
        for i, name in enumerate(self._multiplier_names):
            column = np.full(self.num_mesh_points, np.nan)
            column[list(self._multiplier_indices)] = self._multipliers[:, i]
            data[name] = column
        return pd.DataFrame(data)

    def summary(self) -> None:
        from .summary import print_solution_summary

        print_solution_summary(self)

    def __repr__(self) -> str:
        return (
            f"Solution(status={self._status.value}, objective={self._objective:.6g}, "
            f"mesh_points={self.num_mesh_points}, t0={self._initial_time:.6g}, "
            f"tf={self._final_time:.6g})"
        )
