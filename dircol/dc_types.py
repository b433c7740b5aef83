"""
Core type definitions for the dircol transcription engine.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any, Protocol, TypeAlias

import casadi as ca
import numpy as np
from numpy.typing import NDArray


if TYPE_CHECKING:
    from .problem.bounds import Bounds
    from .problem.functions_problem import ProblemFunctions


# --- NUMERICAL TYPES ---
FloatArray: TypeAlias = NDArray[np.float64]
NumericArrayLike: TypeAlias = (
    NDArray[np.floating[Any]]
    | NDArray[np.integer[Any]]
    | Sequence[float]
    | Sequence[int]
    | list[float]
    | list[int]
)

SymbolicOrNumeric: TypeAlias = ca.MX | ca.SX | ca.DM | FloatArray | float

# --- USER API TYPES ---
BoundsInput: TypeAlias = float | int | tuple[float | int | None, float | int | None] | None
"""
Type alias for bound specification.

Supported input types:
- float/int: Fixed value (lower == upper == value)
- tuple(lower, upper): Range with None for an unbounded side
- None: Free (unbounded on both sides)
"""

DynamicsCallable: TypeAlias = Callable[..., Any]
"""``f(t, x, u, p) -> xdot``, or ``f(t, x, u, p, lam)`` when multipliers exist."""

PointCallable: TypeAlias = Callable[[Any, Any, Any, Any], Any]
"""``g(t, x, u, p) -> vector``: kinematic constraint, path constraint or integrand."""

EndpointCallable: TypeAlias = Callable[[Any, Any, Any, Any, Any], Any]
"""``phi(t0, x0, tf, xf, p) -> scalar``."""


# --- EXTERNAL INTERFACE PROTOCOLS ---
class ODESolverResult(Protocol):
    """Protocol for the result of ODE solvers like solve_ivp."""

    y: FloatArray
    t: FloatArray
    success: bool
    message: str


ODESolverCallable: TypeAlias = Callable[..., ODESolverResult]


class ProblemProtocol(Protocol):
    """Interface of a Problem as seen by a transcription."""

    name: str

    @property
    def num_states(self) -> int: ...

    @property
    def num_controls(self) -> int: ...

    @property
    def num_multipliers(self) -> int: ...

    @property
    def num_parameters(self) -> int: ...

    @property
    def state_names(self) -> list[str]: ...

    @property
    def control_names(self) -> list[str]: ...

    @property
    def multiplier_names(self) -> list[str]: ...

    @property
    def parameter_names(self) -> list[str]: ...

    @property
    def initial_time_bounds(self) -> Bounds: ...

    @property
    def final_time_bounds(self) -> Bounds: ...

    def get_state_bounds(self) -> list[Bounds]: ...

    def get_state_initial_bounds(self) -> list[Bounds]: ...

    def get_state_final_bounds(self) -> list[Bounds]: ...

    def get_control_bounds(self) -> list[Bounds]: ...

    def get_control_initial_bounds(self) -> list[Bounds]: ...

    def get_control_final_bounds(self) -> list[Bounds]: ...

    def get_multiplier_bounds(self) -> list[Bounds]: ...

    def get_parameter_bounds(self) -> list[Bounds]: ...

    def validate(self) -> None: ...

    def create_functions(self) -> ProblemFunctions: ...
