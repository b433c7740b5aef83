"""
Decoding of NLP solver output into a Solution.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import casadi as ca
import numpy as np

from .dc_types import FloatArray
from .exceptions import DataIntegrityError, DircolBaseError, SolutionExtractionError
from .input_validation import _validate_array_numerical_integrity
from .solution import Solution, SolverStatus


if TYPE_CHECKING:
    from .transcription.base import Transcription


logger = logging.getLogger(__name__)


_IPOPT_RETURN_STATUS: dict[str, SolverStatus] = {
    "Solve_Succeeded": SolverStatus.CONVERGED,
    "Solved_To_Acceptable_Level": SolverStatus.CONVERGED,
    "Feasible_Point_Found": SolverStatus.CONVERGED,
    "Maximum_Iterations_Exceeded": SolverStatus.ITERATION_LIMIT,
    "Maximum_CpuTime_Exceeded": SolverStatus.ITERATION_LIMIT,
    "Maximum_WallTime_Exceeded": SolverStatus.ITERATION_LIMIT,
    "Infeasible_Problem_Detected": SolverStatus.INFEASIBLE,
}


def _status_from_stats(stats: dict[str, Any]) -> SolverStatus:
    """Map the solver's return status onto a SolverStatus."""
    return_status = str(stats.get("return_status", ""))
    if return_status in _IPOPT_RETURN_STATUS:
        return _IPOPT_RETURN_STATUS[return_status]
    if stats.get("success", False):
        return SolverStatus.CONVERGED
    return SolverStatus.SOLVER_ERROR


def _solver_error_stats(nlp_solver: ca.Function, error: Exception) -> dict[str, Any]:
    """Stats for a solver call that raised; keeps whatever the solver recorded."""
    try:
        stats = dict(nlp_solver.stats())
    except RuntimeError:
        stats = {}
    stats["success"] = False
    stats["return_status"] = f"Exception: {error}"
    return stats


def _extract_solution(
    transcription: Transcription, values: FloatArray, stats: dict[str, Any]
) -> Solution:
    """
    Decode a flat NLP vector into a Solution.

    Args:
        transcription: Transcription that produced the NLP
        values: Flat decision vector returned by the solver
        stats: Solver statistics (``return_status``, ``success``, ``iter_count``)

    Returns:
        Immutable Solution tagged with a SolverStatus

    Raises:
        DataIntegrityError: If a converged solution contains NaN or Inf
        SolutionExtractionError: If the vector cannot be decoded
    """
    status = _status_from_stats(stats)
    message = str(stats.get("return_status", "unknown"))
    iterations = int(stats.get("iter_count", 0))
    functions = transcription.functions
    layout = transcription.layout

    try:
        split = layout.split(values)
        objective = transcription.evaluate_objective(values)
        breakdown = transcription.evaluate_objective_terms(values)
    except DircolBaseError:
        raise
    except Exception as e:
        raise SolutionExtractionError(
            f"Failed to decode solver output: {e}", f"{type(transcription).__name__} decoding"
        ) from e

    if status is SolverStatus.CONVERGED:
        _validate_array_numerical_integrity(values, "Converged decision vector", "extraction")
        if not np.isfinite(objective):
            raise DataIntegrityError(
                f"Converged solution has non-finite objective {objective}", "extraction"
            )
        logger.debug(
            "Solve converged in %d iterations: objective=%.6e", iterations, objective
        )
    else:
        logger.debug(
            "Solve did not converge (%s after %d iterations): %s",
            status.value,
            iterations,
            message,
        )

    return Solution(
        times=transcription.mesh.times(split.initial_time, split.final_time),
        states=split.states,
        controls=split.controls,
        multipliers=split.multipliers,
        multiplier_indices=layout.kinematic_constraint_indices,
        parameters=split.parameters,
        initial_time=split.initial_time,
        final_time=split.final_time,
        objective=objective,
        objective_breakdown=breakdown,
        status=status,
        iterations=iterations,
        message=message,
        state_names=list(functions.state_names),
        control_names=list(functions.control_names),
        multiplier_names=list(functions.multiplier_names),
        parameter_names=list(functions.parameter_names),
        mesh_points=transcription.mesh.points,
        transcription_scheme=transcription.name,
        stats=stats,
    )
