"""
Forward simulation of a solution's controls.

The dynamics are integrated from the solution's initial state with the
controls (and multipliers) linearly interpolated between mesh points. The
largest gap between simulated and collocated states is a quick check of the
mesh resolution.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import numpy as np
from scipy.integrate import solve_ivp

from .dc_types import FloatArray, ODESolverCallable, ProblemProtocol
from .exceptions import DataIntegrityError
from .input_validation import _validate_positive_number
from .solution import Solution
from .utils.constants import (
    DEFAULT_ODE_ATOL_FACTOR,
    DEFAULT_ODE_MAX_STEP,
    DEFAULT_ODE_METHOD,
    DEFAULT_ODE_RTOL,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SimulationResult:
    """
    Simulated states at the solution's mesh times.

    ``state_deviation`` holds the largest absolute gap per state between the
    simulated and collocated trajectories; both deviation fields are NaN when
    the integration failed.
    """

    times: FloatArray
    states: FloatArray
    state_deviation: FloatArray
    max_state_deviation: float
    success: bool
    message: str


def _interpolate_columns(query: float, times: FloatArray, values: FloatArray) -> FloatArray:
    if values.shape[1] == 0:
        return np.zeros(0)
    if len(times) == 1:
        return values[0].copy()
    return np.array([np.interp(query, times, values[:, j]) for j in range(values.shape[1])])


def simulate_solution(
    problem: ProblemProtocol,
    solution: Solution,
    ode_method: str = DEFAULT_ODE_METHOD,
    ode_rtol: float = DEFAULT_ODE_RTOL,
    ode_atol_factor: float = DEFAULT_ODE_ATOL_FACTOR,
    ode_max_step: float | None = DEFAULT_ODE_MAX_STEP,
    ode_solver: ODESolverCallable | None = None,
) -> SimulationResult:
    """
    Integrate the dynamics under the solution's interpolated controls.

    Args:
        problem: Problem the solution belongs to
        solution: Solution providing the initial state, controls and parameters
        ode_method: Integration method passed to the ODE solver (default: "RK45")
        ode_rtol: Relative tolerance (default: 1e-7)
        ode_atol_factor: Absolute tolerance as a factor of ``ode_rtol``
        ode_max_step: Maximum step size (default: unlimited)
        ode_solver: Replacement for ``scipy.integrate.solve_ivp`` with the same signature

    Returns:
        SimulationResult with states at ``solution.times``

    Raises:
        DataIntegrityError: If the solution does not match the problem dimensions
    """
    _validate_positive_number(ode_rtol, "ode_rtol")
    _validate_positive_number(ode_atol_factor, "ode_atol_factor")
    if solution.states.shape[1] != problem.num_states:
        raise DataIntegrityError(
            f"Solution has {solution.states.shape[1]} states, problem has {problem.num_states}",
            "Forward simulation",
        )

    functions = problem.create_functions()
    times = np.asarray(solution.times)
    controls = np.asarray(solution.controls)
    parameters = np.asarray(solution.parameters)
    multiplier_times = np.asarray(solution.multiplier_times)
    multipliers = np.asarray(solution.multipliers)
    num_multipliers = functions.num_multipliers

    def rhs(t: float, x: FloatArray) -> FloatArray:
        u = _interpolate_columns(t, times, controls)
        lam = (
            _interpolate_columns(t, multiplier_times, multipliers)
            if len(multiplier_times)
            else np.zeros(num_multipliers)
        )
        xdot = functions.dynamics(t, x, u, parameters, lam)
        return np.array(xdot, dtype=np.float64).reshape(-1)

    solver = solve_ivp if ode_solver is None else ode_solver
    atol = ode_rtol * ode_atol_factor
    max_step = np.inf if ode_max_step is None else ode_max_step

    logger.debug(
        "Simulating %d states over [%g, %g] with %s (rtol=%g, atol=%g)",
        problem.num_states,
        solution.initial_time,
        solution.final_time,
        ode_method,
        ode_rtol,
        atol,
    )

    result = solver(
        rhs,
        (solution.initial_time, solution.final_time),
        np.array(solution.states[0]),
        method=ode_method,
        t_eval=times,
        rtol=ode_rtol,
        atol=atol,
        max_step=max_step,
    )

    simulated = np.asarray(result.y, dtype=np.float64).T
    if result.success and simulated.shape == solution.states.shape:
        per_state = np.max(np.abs(simulated - solution.states), axis=0)
        max_deviation = float(np.max(per_state)) if per_state.size else 0.0
    else:
        logger.warning("Forward simulation failed: %s", result.message)
        per_state = np.full(problem.num_states, np.nan)
        max_deviation = float("nan")

    simulation = SimulationResult(
        times=np.asarray(result.t, dtype=np.float64),
        states=simulated,
        max_state_deviation=max_deviation,
        success=bool(result.success),
        message=str(result.message),
        state_deviation=per_state,
    )
    logger.debug("Forward simulation max state deviation: %.3e", max_deviation)
    return simulation
