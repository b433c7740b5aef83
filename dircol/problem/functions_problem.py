"""
Symbolic snapshot of a Problem's evaluators.

Every user callable is invoked exactly once, at CasADi MX symbols, and wrapped
in a ``casadi.Function``. Transcriptions only ever see these functions, so a
Problem edited after a transcription was built cannot affect that
transcription.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import casadi as ca
import numpy as np

from ..dc_types import FloatArray
from ..exceptions import ProblemDefinitionError
from .bounds import Bounds


if TYPE_CHECKING:
    from .core_problem import Problem


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PathConstraintFunction:
    name: str
    function: ca.Function
    lower: FloatArray
    upper: FloatArray

    @property
    def size(self) -> int:
        return len(self.lower)


@dataclass(frozen=True)
class CostFunction:
    name: str
    function: ca.Function
    weight: float


@dataclass(frozen=True, eq=False)
class ProblemFunctions:
    """
    Immutable set of CasADi evaluators built from a Problem.

    Variable names and time bounds are copied at build time, so a snapshot is
    unaffected by later edits to the Problem it came from.
    """

    num_states: int
    num_controls: int
    num_multipliers: int
    num_parameters: int
    state_names: tuple[str, ...]
    control_names: tuple[str, ...]
    multiplier_names: tuple[str, ...]
    parameter_names: tuple[str, ...]
    initial_time_bounds: Bounds
    final_time_bounds: Bounds
    dynamics_function: ca.Function
    kinematic_function: ca.Function | None
    path_constraints: tuple[PathConstraintFunction, ...]
    endpoint_costs: tuple[CostFunction, ...]
    integral_costs: tuple[CostFunction, ...]

    @property
    def has_kinematic_constraints(self) -> bool:
        return self.kinematic_function is not None

    @property
    def has_fixed_times(self) -> bool:
        return self.initial_time_bounds.is_fixed and self.final_time_bounds.is_fixed

    def dynamics(
        self, t: Any, x: Any, u: Any, p: Any = None, multipliers: Any = None
    ) -> ca.MX | ca.DM:
        """State derivative at a single point; arguments may be numeric or symbolic."""
        args = self._point_arguments(t, x, u, p, "dynamics")
        lam = _checked_argument(multipliers, self.num_multipliers, "multipliers", "dynamics")
        return self.dynamics_function(*args, lam)

    def kinematic_constraint_errors(self, t: Any, x: Any, u: Any, p: Any = None) -> ca.MX | ca.DM:
        if self.kinematic_function is None:
            raise ProblemDefinitionError("Problem has no kinematic constraints")
        return self.kinematic_function(*self._point_arguments(t, x, u, p, "kinematic constraints"))

    def path_constraint(self, index: int, t: Any, x: Any, u: Any, p: Any = None) -> ca.MX | ca.DM:
        path = self.path_constraints[index]
        return path.function(*self._point_arguments(t, x, u, p, f"path constraint '{path.name}'"))

    def integrand(self, index: int, t: Any, x: Any, u: Any, p: Any = None) -> ca.MX | ca.DM:
        cost = self.integral_costs[index]
        return cost.function(*self._point_arguments(t, x, u, p, f"integral cost '{cost.name}'"))

    def endpoint_cost(
        self, index: int, t0: Any, x0: Any, tf: Any, xf: Any, p: Any = None
    ) -> ca.MX | ca.DM:
        cost = self.endpoint_costs[index]
        context = f"endpoint cost '{cost.name}'"
        return cost.function(
            _checked_argument(t0, 1, "initial time", context),
            _checked_argument(x0, self.num_states, "initial state", context),
            _checked_argument(tf, 1, "final time", context),
            _checked_argument(xf, self.num_states, "final state", context),
            _checked_argument(p, self.num_parameters, "parameters", context),
        )

    def _point_arguments(self, t: Any, x: Any, u: Any, p: Any, context: str) -> list[Any]:
        return [
            _checked_argument(t, 1, "time", context),
            _checked_argument(x, self.num_states, "states", context),
            _checked_argument(u, self.num_controls, "controls", context),
            _checked_argument(p, self.num_parameters, "parameters", context),
        ]


def _argument_length(value: Any) -> int:
    if isinstance(value, ca.MX | ca.SX | ca.DM):
        return int(value.numel())
    return int(np.asarray(value, dtype=np.float64).size)


def _checked_argument(value: Any, expected: int, name: str, context: str) -> Any:
    if value is None:
        if expected == 0:
            return ca.DM.zeros(0, 1)
        raise ProblemDefinitionError(f"{name} required for {context} ({expected} entries)")

    actual = _argument_length(value)
    if actual != expected:
        raise ProblemDefinitionError(
            f"{context} called with {name} of length {actual}, expected {expected}"
        )

    if isinstance(value, ca.MX | ca.SX | ca.DM):
        return ca.reshape(value, expected, 1)
    if expected == 0:
        return ca.DM.zeros(0, 1)
    return ca.DM(np.asarray(value, dtype=np.float64).reshape(expected, 1))


def _to_scalar_entry(item: Any, index: int, description: str) -> ca.MX:
    if isinstance(item, ca.MX):
        return item
    try:
        return ca.MX(ca.DM(float(item)))
    except (RuntimeError, TypeError, ValueError) as e:
        raise ProblemDefinitionError(
            f"{description} returned a non-scalar entry at index {index}: {e}",
            "Sequence entries must be scalar MX expressions or numbers",
        ) from e


def _to_column_expression(value: Any, description: str) -> ca.MX:
    if isinstance(value, list | tuple):
        if len(value) == 0:
            return ca.MX(0, 1)
        entries = [_to_scalar_entry(item, i, description) for i, item in enumerate(value)]
        value = ca.vertcat(*entries)
    elif isinstance(value, ca.DM):
        value = ca.MX(value)
    elif isinstance(value, int | float | np.ndarray | np.floating):
        value = ca.MX(ca.DM(np.atleast_1d(np.asarray(value, dtype=np.float64))))
    elif not isinstance(value, ca.MX):
        raise ProblemDefinitionError(
            f"{description} returned unsupported type {type(value).__name__}",
            "Evaluators must return CasADi MX expressions, numbers or sequences of them",
        )

    rows, cols = value.shape
    if cols != 1 and rows == 1:
        value = value.T
    elif cols != 1:
        raise ProblemDefinitionError(
            f"{description} must return a vector, got shape {value.shape}"
        )
    return value


def _function_name(prefix: str, name: str) -> str:
    safe_name = re.sub(r"\W", "_", name)
    return f"{prefix}_{safe_name}"


def _call_user_function(
    func: Callable[..., Any], args: Sequence[ca.MX], description: str
) -> ca.MX:
    try:
        result = func(*args)
    except ProblemDefinitionError:
        raise
    except Exception as e:
        raise ProblemDefinitionError(
            f"{description} raised {type(e).__name__} at symbolic arguments: {e}"
        ) from e
    return _to_column_expression(result, description)


def _check_output_length(expression: ca.MX, expected: int, description: str) -> None:
    actual = expression.shape[0]
    if actual != expected:
        raise ProblemDefinitionError(
            f"{description} returned {actual} entries, expected {expected}"
        )


def _expand_component_bounds(
    lower: Sequence[float], upper: Sequence[float], size: int, name: str
) -> tuple[FloatArray, FloatArray]:
    if len(lower) == 1 and size != 1:
        lower = list(lower) * size
        upper = list(upper) * size
    if len(lower) != size:
        raise ProblemDefinitionError(
            f"Path constraint '{name}' has {size} entries but {len(lower)} bound pairs"
        )
    return np.array(lower, dtype=np.float64), np.array(upper, dtype=np.float64)


def _build_problem_functions(problem: Problem) -> ProblemFunctions:
    ns = problem.num_states
    nc = problem.num_controls
    nm = problem.num_multipliers
    n_params = problem.num_parameters

    t = ca.MX.sym("t")
    x = ca.MX.sym("x", ns)
    u = ca.MX.sym("u", nc)
    p = ca.MX.sym("p", n_params)
    lam = ca.MX.sym("lambda", nm)
    point_inputs = [t, x, u, p]
    point_names = ["t", "x", "u", "p"]

    dynamics_func = problem._dynamics_callable
    dynamics_args = [t, x, u, p, lam] if problem._kinematic_callable is not None else point_inputs
    xdot = _call_user_function(dynamics_func, dynamics_args, "Dynamics")
    _check_output_length(xdot, ns, "Dynamics")
    dynamics_function = ca.Function(
        "dynamics", [t, x, u, p, lam], [xdot], [*point_names, "lambda"], ["xdot"]
    )

    kinematic_function = None
    if problem._kinematic_callable is not None:
        kc_err = _call_user_function(
            problem._kinematic_callable, point_inputs, "Kinematic constraints"
        )
        _check_output_length(kc_err, nm, "Kinematic constraints")
        kinematic_function = ca.Function(
            "kinematic_constraints", point_inputs, [kc_err], point_names, ["kcerr"]
        )

    path_constraints = []
    for info in problem._path_constraints:
        value = _call_user_function(info.func, point_inputs, f"Path constraint '{info.name}'")
        lower, upper = _expand_component_bounds(
            [b.lower for b in info.bounds],
            [b.upper for b in info.bounds],
            value.shape[0],
            info.name,
        )
        function = ca.Function(
            _function_name("path", info.name), point_inputs, [value], point_names, ["c"]
        )
        path_constraints.append(
            PathConstraintFunction(name=info.name, function=function, lower=lower, upper=upper)
        )

    integral_costs = []
    endpoint_costs = []
    t0 = ca.MX.sym("t0")
    x0 = ca.MX.sym("x0", ns)
    tf = ca.MX.sym("tf")
    xf = ca.MX.sym("xf", ns)
    for term in problem._cost_terms:
        if term.kind == "integral":
            value = _call_user_function(term.func, point_inputs, f"Integral cost '{term.name}'")
            _check_output_length(value, 1, f"Integral cost '{term.name}'")
            function = ca.Function(
                _function_name("integrand", term.name), point_inputs, [value], point_names, ["L"]
            )
            integral_costs.append(CostFunction(term.name, function, term.weight))
        else:
            endpoint_inputs = [t0, x0, tf, xf, p]
            value = _call_user_function(term.func, endpoint_inputs, f"Endpoint cost '{term.name}'")
            _check_output_length(value, 1, f"Endpoint cost '{term.name}'")
            function = ca.Function(
                _function_name("endpoint", term.name),
                endpoint_inputs,
                [value],
                ["t0", "x0", "tf", "xf", "p"],
                ["phi"],
            )
            endpoint_costs.append(CostFunction(term.name, function, term.weight))

    logger.debug(
        "Built problem functions: ns=%d, nc=%d, nm=%d, np=%d, path=%d, endpoint=%d, integral=%d",
        ns,
        nc,
        nm,
        n_params,
        len(path_constraints),
        len(endpoint_costs),
        len(integral_costs),
    )

    return ProblemFunctions(
        num_states=ns,
        num_controls=nc,
        num_multipliers=nm,
        num_parameters=n_params,
        state_names=tuple(problem.state_names),
        control_names=tuple(problem.control_names),
        multiplier_names=tuple(problem.multiplier_names),
        parameter_names=tuple(problem.parameter_names),
        initial_time_bounds=problem.initial_time_bounds,
        final_time_bounds=problem.final_time_bounds,
        dynamics_function=dynamics_function,
        kinematic_function=kinematic_function,
        path_constraints=tuple(path_constraints),
        endpoint_costs=tuple(endpoint_costs),
        integral_costs=tuple(integral_costs),
    )
