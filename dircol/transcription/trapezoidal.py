"""
Trapezoidal direct collocation.

States and controls live at every mesh point. Consecutive states are linked
by the trapezoidal rule

    x_{k+1} - x_k - (h_k / 2) * (f_k + f_{k+1}) = 0

and integral costs use the matching trapezoidal quadrature. Kinematic
constraints, and their multipliers, are enforced at every mesh point.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import casadi as ca
import numpy as np

from ..dc_types import FloatArray, ProblemProtocol
from ..exceptions import ConfigurationError
from .base import Transcription, VariablesMX
from .registry import register_transcription


if TYPE_CHECKING:
    from ..solver import Solver


logger = logging.getLogger(__name__)


@register_transcription("trapezoidal")
class Trapezoidal(Transcription):
    """Second-order accurate transcription with one defect per mesh interval."""

    supported_scheme_options: frozenset[str] = frozenset()

    def __init__(self, solver: Solver, problem: ProblemProtocol) -> None:
        super().__init__(solver, problem, solver.num_mesh_points, solver.num_mesh_points)

    def _check_configuration(self) -> None:
        super()._check_configuration()
        unknown = sorted(set(self._solver.scheme_options) - self.supported_scheme_options)
        if unknown:
            raise ConfigurationError(
                f"Unknown option(s) for trapezoidal transcription: {', '.join(unknown)}",
                "Trapezoidal transcription takes no scheme options",
            )

    def _create_quadrature_coefficients(self) -> FloatArray:
        intervals = self._mesh.intervals
        coefficients = np.zeros(self._mesh.num_points, dtype=np.float64)
        coefficients[:-1] += 0.5 * intervals
        coefficients[1:] += 0.5 * intervals
        return coefficients

    def _create_kinematic_constraint_indices(self) -> Sequence[int]:
        return range(self._mesh.num_points)

    def _apply_constraints(
        self,
        variables: VariablesMX,
        xdot: ca.MX,
        kcerr: ca.MX,
        path: list[ca.MX],
    ) -> None:
        num_points = self._mesh.num_points
        durations = self._mesh_interval_durations(variables)
        states = variables.states
        kinematic_column = {k: column for column, k in enumerate(self._kinematic_indices)}

        for k in range(num_points):
            if k < num_points - 1:
                defect = (
                    states[:, k + 1]
                    - states[:, k]
                    - 0.5 * durations[k] * (xdot[:, k] + xdot[:, k + 1])
                )
                self._add_equality("defect", k, defect)

            if k in kinematic_column:
                self._add_equality("kinematic", k, kcerr[:, kinematic_column[k]])

            for path_constraint, values in zip(self._functions.path_constraints, path, strict=True):
                self._add_constraint(
                    "path", k, values[:, k], path_constraint.lower, path_constraint.upper
                )

        logger.debug(
            "Trapezoidal constraints: %d defects, %d kinematic, %d path blocks",
            num_points - 1,
            len(kinematic_column),
            num_points * len(path),
        )
