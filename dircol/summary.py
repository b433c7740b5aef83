from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import numpy as np


if TYPE_CHECKING:
    from .solution import Solution


logger = logging.getLogger(__name__)


def print_solution_summary(solution: Solution) -> None:
    """
    Present factual solution data without analysis or interpretation.

    Args:
        solution: Solution returned by a solve
    """
    print("\n" + "=" * 80)
    print("DIRCOL SOLUTION DATA")
    print("=" * 80)

    _print_problem_structure_section(solution)
    _print_solution_status_section(solution)
    _print_objective_section(solution)
    _print_timing_section(solution)
    _print_parameters_section(solution)
    _print_mesh_section(solution)

    print("=" * 80)
    print("END SOLUTION DATA")
    print("=" * 80 + "\n")


def _print_problem_structure_section(solution: Solution) -> None:
    print("\n┌─ PROBLEM STRUCTURE")
    print("│")
    print(f"│  Transcription: {solution.transcription_scheme}")
    print(f"│  State Variables ({len(solution.state_names)}): {solution.state_names}")
    print(f"│  Control Variables ({len(solution.control_names)}): {solution.control_names}")
    if solution.multiplier_names:
        print(
            f"│  Multipliers ({len(solution.multiplier_names)}): {solution.multiplier_names}"
        )
    print("│")


def _print_solution_status_section(solution: Solution) -> None:
    print("┌─ SOLUTION STATUS")
    print("│")
    print(f"│  Status: {solution.status.value}")
    print(f"│  Message: {solution.message}")
    print(f"│  Iterations: {solution.iterations}")
    print("│")


def _print_objective_section(solution: Solution) -> None:
    print("┌─ OBJECTIVE")
    print("│")
    if np.isfinite(solution.objective):
        print(f"│  Total: {solution.objective:.12e}")
    else:
        print("│  Total: Not available")
    for name, value in solution.objective_breakdown.items():
        print(f"│    {name}: {value:.12e}")
    print("│")


def _print_timing_section(solution: Solution) -> None:
    print("┌─ TIMING")
    print("│")
    print(f"│  Initial Time: {solution.initial_time:.12e}")
    print(f"│  Final Time: {solution.final_time:.12e}")
    print(f"│  Duration: {solution.duration:.12e}")
    print("│")


def _print_parameters_section(solution: Solution) -> None:
    if not solution.parameter_names:
        return

    print("┌─ PARAMETERS")
    print("│")
    for name, value in zip(solution.parameter_names, solution.parameters, strict=True):
        print(f"│    {name}: {value:.12e}")
    print("│")


def _print_mesh_section(solution: Solution) -> None:
    print("┌─ MESH CONFIGURATION")
    print("│")
    points = solution.mesh_points
    intervals = np.diff(points)
    print(f"│  Mesh Points: {len(points)}")
    print(f"│  Intervals: {len(intervals)}")
    if intervals.size:
        print(f"│  Smallest Interval: {intervals.min():.6e}")
        print(f"│  Largest Interval: {intervals.max():.6e}")
    if solution.multiplier_indices:
        print(f"│  Kinematic Constraint Points: {len(solution.multiplier_indices)}")
    print("│")
