import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ..dc_types import BoundsInput, DynamicsCallable, EndpointCallable, PointCallable
from ..exceptions import ProblemDefinitionError
from ..input_validation import _validate_names_unique, _validate_string_not_empty
from ..utils.constants import MINIMUM_TIME_INTERVAL
from .bounds import Bounds
from .functions_problem import ProblemFunctions, _build_problem_functions


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _VariableInfo:
    name: str
    bounds: Bounds
    initial_bounds: Bounds
    final_bounds: Bounds


@dataclass(frozen=True)
class _PathConstraintInfo:
    name: str
    func: PointCallable
    bounds: tuple[Bounds, ...]


@dataclass(frozen=True)
class _CostTermInfo:
    name: str
    kind: str
    func: PointCallable | EndpointCallable
    weight: float


def _create_variable_info(
    name: str,
    boundary: BoundsInput,
    initial: BoundsInput,
    final: BoundsInput,
    context: str,
) -> _VariableInfo:
    _validate_string_not_empty(name, f"{context} name")
    bounds = Bounds.from_input(boundary, f"{context} '{name}' boundary")

    # initial/final default to the path bounds when not given
    initial_bounds = (
        bounds if initial is None else Bounds.from_input(initial, f"{context} '{name}' initial")
    )
    final_bounds = (
        bounds if final is None else Bounds.from_input(final, f"{context} '{name}' final")
    )
    return _VariableInfo(name, bounds, initial_bounds, final_bounds)


def _check_callable(func: object, description: str) -> None:
    if not callable(func):
        raise ProblemDefinitionError(f"{description} must be callable, got {type(func).__name__}")


class Problem:
    """
    Description of a single-phase optimal control problem.

    The problem is defined by its variables and their bounds, a dynamics
    callable, optional kinematic (algebraic) constraints, optional path
    constraints and a list of endpoint and integral cost terms. Callables
    receive CasADi column vectors and return CasADi expressions.

    Examples:
        >>> problem = Problem("Sliding Mass")
        >>> problem.time(initial=0.0, final=(0.0, 10.0))
        >>> x = problem.state("position", boundary=(-5.0, 5.0), initial=0.0, final=1.0)
        >>> v = problem.state("speed", boundary=(-50.0, 50.0), initial=0.0, final=0.0)
        >>> f = problem.control("force", boundary=(-50.0, 50.0))
        >>> problem.dynamics(lambda t, x, u, p: [x[v], u[f] / 2.0])
        >>> problem.endpoint_cost("final_time", lambda t0, x0, tf, xf, p: tf)
    """

    def __init__(self, name: str = "Optimal Control Problem") -> None:
        self.name = name
        self._initial_time_bounds: Bounds | None = None
        self._final_time_bounds: Bounds | None = None

        self._states: list[_VariableInfo] = []
        self._controls: list[_VariableInfo] = []
        self._parameters: list[_VariableInfo] = []
        self._multipliers: list[_VariableInfo] = []

        self._dynamics_callable: DynamicsCallable | None = None
        self._kinematic_callable: PointCallable | None = None
        self._path_constraints: list[_PathConstraintInfo] = []
        self._cost_terms: list[_CostTermInfo] = []

        logger.debug("Created problem '%s'", name)

    # ===================
    # VARIABLE DEFINITION
    # ===================

    def time(self, initial: BoundsInput = 0.0, final: BoundsInput = None) -> None:
        self._initial_time_bounds = Bounds.from_input(initial, "initial time")
        self._final_time_bounds = Bounds.from_input(final, "final time")
        logger.debug(
            "Time bounds set: t0 in %s, tf in %s",
            self._initial_time_bounds,
            self._final_time_bounds,
        )

    def state(
        self,
        name: str,
        boundary: BoundsInput = None,
        initial: BoundsInput = None,
        final: BoundsInput = None,
    ) -> int:
        self._states.append(_create_variable_info(name, boundary, initial, final, "State"))
        return len(self._states) - 1

    def control(
        self,
        name: str,
        boundary: BoundsInput = None,
        initial: BoundsInput = None,
        final: BoundsInput = None,
    ) -> int:
        self._controls.append(_create_variable_info(name, boundary, initial, final, "Control"))
        return len(self._controls) - 1

    def parameter(self, name: str, boundary: BoundsInput = None) -> int:
        self._parameters.append(_create_variable_info(name, boundary, None, None, "Parameter"))
        return len(self._parameters) - 1

    # ===================
    # FUNCTION DEFINITION
    # ===================

    def dynamics(self, func: DynamicsCallable) -> None:
        """
        Set the dynamics ``f(t, x, u, p) -> xdot``.

        When kinematic constraints are declared, the callable receives the
        multiplier vector as a fifth argument: ``f(t, x, u, p, lam)``.
        """
        _check_callable(func, "Dynamics")
        self._dynamics_callable = func
        logger.info("Dynamics defined for problem '%s'", self.name)

    def kinematic_constraints(
        self,
        func: PointCallable,
        multipliers: Sequence[str] | int,
        boundary: BoundsInput = None,
    ) -> None:
        """
        Set the kinematic constraint error ``g(t, x, u, p) -> kc_err``.

        Args:
            func: Callable returning one error entry per multiplier; zero when feasible
            multipliers: Multiplier names, or a count for generated names
            boundary: Bounds applied to every multiplier component
        """
        _check_callable(func, "Kinematic constraints")
        if isinstance(multipliers, int):
            if multipliers < 1:
                raise ProblemDefinitionError(
                    f"Kinematic constraints require at least one multiplier, got {multipliers}"
                )
            names = [f"lambda_{i}" for i in range(multipliers)]
        else:
            names = list(multipliers)
            if not names:
                raise ProblemDefinitionError(
                    "Kinematic constraints require at least one multiplier"
                )

        self._kinematic_callable = func
        self._multipliers = [
            _create_variable_info(name, boundary, None, None, "Multiplier") for name in names
        ]
        logger.debug("Kinematic constraints defined with %d multiplier(s)", len(names))

    def path_constraint(
        self,
        name: str,
        func: PointCallable,
        bounds: BoundsInput | list[BoundsInput] = 0.0,
    ) -> None:
        """
        Add a path constraint ``c(t, x, u, p)`` enforced at every mesh point.

        ``bounds`` is either one bounds input applied to every component of the
        returned vector or a list with one bounds input per component. The
        default ``0.0`` makes every component an equality.
        """
        _validate_string_not_empty(name, "Path constraint name")
        _check_callable(func, f"Path constraint '{name}'")

        if isinstance(bounds, list):
            if not bounds:
                raise ProblemDefinitionError(f"Path constraint '{name}' bounds list is empty")
            bounds_list = [
                Bounds.from_input(b, f"path constraint '{name}' bound {i}")
                for i, b in enumerate(bounds)
            ]
        else:
            bounds_list = [Bounds.from_input(bounds, f"path constraint '{name}'")]

        self._path_constraints.append(_PathConstraintInfo(name, func, tuple(bounds_list)))
        logger.debug("Added path constraint '%s'", name)

    def endpoint_cost(self, name: str, func: EndpointCallable, weight: float = 1.0) -> None:
        """Add a cost ``weight * phi(t0, x0, tf, xf, p)``."""
        self._add_cost_term(name, "endpoint", func, weight)

    def integral_cost(self, name: str, func: PointCallable, weight: float = 1.0) -> None:
        """Add a cost ``weight * integral of L(t, x, u, p) dt`` over the horizon."""
        self._add_cost_term(name, "integral", func, weight)

    def _add_cost_term(
        self, name: str, kind: str, func: PointCallable | EndpointCallable, weight: float
    ) -> None:
        _validate_string_not_empty(name, "Cost term name")
        _check_callable(func, f"Cost term '{name}'")
        if not isinstance(weight, int | float) or isinstance(weight, bool):
            raise ProblemDefinitionError(f"Cost term '{name}' weight must be numeric")
        self._cost_terms.append(_CostTermInfo(name, kind, func, float(weight)))
        logger.debug("Added %s cost '%s' with weight %g", kind, name, weight)

    # ==========
    # DIMENSIONS
    # ==========

    @property
    def num_states(self) -> int:
        return len(self._states)

    @property
    def num_controls(self) -> int:
        return len(self._controls)

    @property
    def num_multipliers(self) -> int:
        return len(self._multipliers)

    @property
    def num_parameters(self) -> int:
        return len(self._parameters)

    @property
    def state_names(self) -> list[str]:
        return [info.name for info in self._states]

    @property
    def control_names(self) -> list[str]:
        return [info.name for info in self._controls]

    @property
    def multiplier_names(self) -> list[str]:
        return [info.name for info in self._multipliers]

    @property
    def parameter_names(self) -> list[str]:
        return [info.name for info in self._parameters]

    @property
    def cost_term_names(self) -> list[str]:
        return [term.name for term in self._cost_terms]

    # ======
    # BOUNDS
    # ======

    @property
    def initial_time_bounds(self) -> Bounds:
        if self._initial_time_bounds is None:
            raise ProblemDefinitionError(f"Problem '{self.name}' has no time bounds; call time()")
        return self._initial_time_bounds

    @property
    def final_time_bounds(self) -> Bounds:
        if self._final_time_bounds is None:
            raise ProblemDefinitionError(f"Problem '{self.name}' has no time bounds; call time()")
        return self._final_time_bounds

    def get_state_bounds(self) -> list[Bounds]:
        return [info.bounds for info in self._states]

    def get_state_initial_bounds(self) -> list[Bounds]:
        return [info.initial_bounds for info in self._states]

    def get_state_final_bounds(self) -> list[Bounds]:
        return [info.final_bounds for info in self._states]

    def get_control_bounds(self) -> list[Bounds]:
        return [info.bounds for info in self._controls]

    def get_control_initial_bounds(self) -> list[Bounds]:
        return [info.initial_bounds for info in self._controls]

    def get_control_final_bounds(self) -> list[Bounds]:
        return [info.final_bounds for info in self._controls]

    def get_multiplier_bounds(self) -> list[Bounds]:
        return [info.bounds for info in self._multipliers]

    def get_parameter_bounds(self) -> list[Bounds]:
        return [info.bounds for info in self._parameters]

    # ==========
    # VALIDATION
    # ==========

    def _validate_structure(self) -> None:
        if self._initial_time_bounds is None or self._final_time_bounds is None:
            raise ProblemDefinitionError(f"Problem '{self.name}' has no time bounds; call time()")
        if self._final_time_bounds.upper <= self._initial_time_bounds.lower + MINIMUM_TIME_INTERVAL:
            raise ProblemDefinitionError(
                f"Final time upper bound ({self._final_time_bounds.upper}) must exceed "
                f"initial time lower bound ({self._initial_time_bounds.lower})"
            )
        if not self._states:
            raise ProblemDefinitionError(f"Problem '{self.name}' must have at least one state")
        if self._dynamics_callable is None:
            raise ProblemDefinitionError(f"Problem '{self.name}' must have dynamics defined")

        _validate_names_unique(self.state_names, "state")
        _validate_names_unique(self.control_names, "control")
        _validate_names_unique(self.parameter_names, "parameter")
        _validate_names_unique(self.multiplier_names, "multiplier")
        _validate_names_unique(self.cost_term_names, "cost term")
        _validate_names_unique([info.name for info in self._path_constraints], "path constraint")

    def create_functions(self) -> ProblemFunctions:
        """Validate the problem and snapshot its callables into CasADi functions."""
        self._validate_structure()
        return _build_problem_functions(self)

    def validate(self) -> None:
        """Raise ProblemDefinitionError if the problem is incomplete or inconsistent."""
        self.create_functions()
        logger.debug("Problem '%s' validated", self.name)

    def __repr__(self) -> str:
        return (
            f"Problem('{self.name}', states={self.num_states}, controls={self.num_controls}, "
            f"multipliers={self.num_multipliers}, parameters={self.num_parameters})"
        )
