"""
Abstract transcription of an optimal control problem into an NLP.

A transcription owns the decision-variable layout, asks its scheme for the
defect formula, the quadrature coefficients and the mesh indices where
kinematic constraints are enforced, assembles the objective and constraint
vectors as CasADi MX expressions, and hands them to ``casadi.nlpsol``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

import casadi as ca
import numpy as np

from ..dc_types import FloatArray, ProblemProtocol
from ..exceptions import ConfigurationError, DataIntegrityError, DircolBaseError
from ..initial_guess import InitialGuess, _create_initial_guess_vector
from ..mesh import Mesh
from ..problem.functions_problem import ProblemFunctions
from ..solution_extraction import _extract_solution, _solver_error_stats
from ..utils.constants import MINIMUM_TIME_INTERVAL
from .layout import LayoutBuilder, VariableLayout


if TYPE_CHECKING:
    from ..solution import Solution
    from ..solver import Solver


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class VariablesMX:
    """Symbolic views into the flat decision vector."""

    states: ca.MX
    controls: ca.MX
    multipliers: ca.MX
    initial_time: ca.MX
    final_time: ca.MX
    parameters: ca.MX
    times: ca.MX

    @property
    def duration(self) -> ca.MX:
        return self.final_time - self.initial_time


@dataclass(frozen=True, eq=False)
class ConstraintBlock:
    """One vector constraint ``lower <= expression <= upper`` tied to a mesh index."""

    kind: str
    mesh_index: int | None
    expression: ca.MX
    lower: FloatArray
    upper: FloatArray

    @property
    def size(self) -> int:
        return len(self.lower)

    @property
    def is_equality(self) -> bool:
        return bool(np.array_equal(self.lower, self.upper))


@dataclass(frozen=True, eq=False)
class NlpDescription:
    """Flat NLP handed to the external solver."""

    x: ca.MX
    f: ca.MX
    g: ca.MX
    lbx: FloatArray
    ubx: FloatArray
    lbg: FloatArray
    ubg: FloatArray
    objective_terms: dict[str, ca.MX]

    @property
    def num_variables(self) -> int:
        return int(self.x.numel())

    @property
    def num_constraints(self) -> int:
        return int(self.g.numel())


class Transcription(ABC):
    """
    Base class for direct collocation schemes.

    Subclasses supply the defect constraints, the quadrature coefficients and
    the kinematic constraint indices. Everything else (layout, objective,
    NLP assembly, solving and decoding) is shared.

    Args:
        solver: Solver configuration (scheme, mesh, feature flags, NLP options)
        problem: Problem to transcribe; snapshotted into CasADi functions here
        num_state_mesh_points: Number of mesh points carrying states
        num_control_mesh_points: Number of mesh points carrying controls

    Raises:
        ConfigurationError: If the configuration cannot be represented; raised
            before the variable layout is allocated
        ProblemDefinitionError: If the problem is incomplete or inconsistent
    """

    name: ClassVar[str] = ""
    supports_constraint_derivatives: ClassVar[bool] = False

    def __init__(
        self,
        solver: Solver,
        problem: ProblemProtocol,
        num_state_mesh_points: int,
        num_control_mesh_points: int,
    ) -> None:
        self._solver = solver
        self._problem = problem
        self._problem_name = problem.name
        self._mesh: Mesh = solver.mesh
        self._num_state_mesh_points = num_state_mesh_points
        self._num_control_mesh_points = num_control_mesh_points

        self._check_configuration()

        self._functions: ProblemFunctions = problem.create_functions()
        self._kinematic_indices: tuple[int, ...] = ()
        if self._functions.has_kinematic_constraints:
            self._kinematic_indices = tuple(
                int(k) for k in self._create_kinematic_constraint_indices()
            )
        self._quadrature_coefficients = self._checked_quadrature_coefficients()
        self._layout = self._create_layout()

        self._constraint_blocks: list[ConstraintBlock] = []
        self._nlp: NlpDescription | None = None
        self._constraint_function: ca.Function | None = None
        self._objective_function: ca.Function | None = None

        logger.debug(
            "Created %s transcription for '%s': %d mesh points, %d variables",
            self.name or type(self).__name__,
            problem.name,
            self._mesh.num_points,
            self._layout.size,
        )

    # ===========
    # SCHEME HOOKS
    # ===========

    def _check_configuration(self) -> None:
        """Reject configurations this transcription cannot represent."""
        if self._num_state_mesh_points != self._mesh.num_points:
            raise ConfigurationError(
                f"Transcription expects {self._num_state_mesh_points} state mesh points, "
                f"mesh has {self._mesh.num_points}"
            )
        if self._num_control_mesh_points != self._num_state_mesh_points:
            raise ConfigurationError(
                "Separate control mesh points are not supported: "
                f"{self._num_control_mesh_points} control vs "
                f"{self._num_state_mesh_points} state mesh points"
            )
        if self._solver.enforce_constraint_derivatives and not self.supports_constraint_derivatives:
            raise ConfigurationError(
                "Enforcing kinematic constraint derivatives is not supported with "
                f"{self.name or type(self).__name__} transcription"
            )

    @abstractmethod
    def _create_quadrature_coefficients(self) -> FloatArray:
        """Per-mesh-point weights on the normalized mesh; they sum to one."""

    @abstractmethod
    def _create_kinematic_constraint_indices(self) -> Sequence[int]:
        """Mesh indices where kinematic constraints and their multipliers live."""

    @abstractmethod
    def _apply_constraints(
        self,
        variables: VariablesMX,
        xdot: ca.MX,
        kcerr: ca.MX,
        path: list[ca.MX],
    ) -> None:
        """
        Emit the scheme's constraint blocks.

        Args:
            variables: Symbolic views of the decision variables
            xdot: State derivatives, one column per mesh point
            kcerr: Kinematic constraint errors, one column per kinematic index
            path: One matrix per path constraint, one column per mesh point
        """

    # =======
    # HELPERS
    # =======

    def _add_constraint(
        self,
        kind: str,
        mesh_index: int | None,
        expression: ca.MX,
        lower: FloatArray | float,
        upper: FloatArray | float,
    ) -> None:
        size = int(expression.numel())
        lower_array = np.broadcast_to(np.asarray(lower, dtype=np.float64), (size,)).copy()
        upper_array = np.broadcast_to(np.asarray(upper, dtype=np.float64), (size,)).copy()
        self._constraint_blocks.append(
            ConstraintBlock(kind, mesh_index, ca.vec(expression), lower_array, upper_array)
        )

    def _add_equality(self, kind: str, mesh_index: int | None, expression: ca.MX) -> None:
        self._add_constraint(kind, mesh_index, expression, 0.0, 0.0)

    def _mesh_interval_durations(self, variables: VariablesMX) -> list[ca.MX]:
        """Physical interval lengths ``h_k = (tf - t0) * (tau_{k+1} - tau_k)``."""
        return [variables.duration * float(dtau) for dtau in self._mesh.intervals]

    def _checked_quadrature_coefficients(self) -> FloatArray:
        coefficients = np.asarray(self._create_quadrature_coefficients(), dtype=np.float64)
        if coefficients.shape != (self._mesh.num_points,):
            raise DataIntegrityError(
                f"Quadrature coefficients have shape {coefficients.shape}, "
                f"expected ({self._mesh.num_points},)",
                f"{type(self).__name__} quadrature",
            )
        coefficients.setflags(write=False)
        return coefficients

    def _create_layout(self) -> VariableLayout:
        problem = self._problem
        functions = self._functions
        return (
            LayoutBuilder(
                num_mesh_points=self._mesh.num_points,
                num_states=functions.num_states,
                num_controls=functions.num_controls,
                num_multipliers=functions.num_multipliers,
                num_parameters=functions.num_parameters,
                kinematic_constraint_indices=self._kinematic_indices,
            )
            .set_state_bounds(
                problem.get_state_bounds(),
                problem.get_state_initial_bounds(),
                problem.get_state_final_bounds(),
            )
            .set_control_bounds(
                problem.get_control_bounds(),
                problem.get_control_initial_bounds(),
                problem.get_control_final_bounds(),
            )
            .set_multiplier_bounds(problem.get_multiplier_bounds())
            .set_parameter_bounds(problem.get_parameter_bounds())
            .set_time_bounds(functions.initial_time_bounds, functions.final_time_bounds)
            .set_names(
                states=functions.state_names,
                controls=functions.control_names,
                multipliers=functions.multiplier_names,
                parameters=functions.parameter_names,
            )
            .build()
        )

    def _create_variables_mx(self, w: ca.MX) -> VariablesMX:
        layout = self._layout
        num_points = layout.num_mesh_points

        states = ca.horzcat(*[w[layout.state_slice(k)] for k in range(num_points)])
        controls = ca.horzcat(*[w[layout.control_slice(k)] for k in range(num_points)])
        if self._kinematic_indices:
            multipliers = ca.horzcat(
                *[w[layout.multiplier_slice(k)] for k in self._kinematic_indices]
            )
        else:
            multipliers = ca.MX(layout.num_multipliers, 0)

        initial_time = w[layout.initial_time_index]
        final_time = w[layout.final_time_index]
        times = initial_time + (final_time - initial_time) * ca.DM(self._mesh.points).T

        return VariablesMX(
            states=ca.reshape(states, layout.num_states, num_points),
            controls=ca.reshape(controls, layout.num_controls, num_points),
            multipliers=multipliers,
            initial_time=initial_time,
            final_time=final_time,
            parameters=w[layout.parameter_slice],
            times=times,
        )

    def _multipliers_at(self, variables: VariablesMX, mesh_index: int) -> ca.MX:
        if mesh_index in self._kinematic_indices:
            return variables.multipliers[:, self._kinematic_indices.index(mesh_index)]
        return ca.MX.zeros(self._functions.num_multipliers, 1)

    def _point_arguments(self, variables: VariablesMX, k: int) -> list[ca.MX]:
        return [
            variables.times[k],
            variables.states[:, k],
            variables.controls[:, k],
            variables.parameters,
        ]

    # ============
    # NLP ASSEMBLY
    # ============

    def _transcribe(self) -> NlpDescription:
        functions = self._functions
        num_points = self._mesh.num_points
        w = ca.MX.sym("w", self._layout.size)
        variables = self._create_variables_mx(w)

        xdot = ca.horzcat(
            *[
                functions.dynamics_function(
                    *self._point_arguments(variables, k), self._multipliers_at(variables, k)
                )
                for k in range(num_points)
            ]
        )

        if functions.kinematic_function is not None and self._kinematic_indices:
            kcerr = ca.horzcat(
                *[
                    functions.kinematic_function(*self._point_arguments(variables, k))
                    for k in self._kinematic_indices
                ]
            )
        else:
            kcerr = ca.MX(functions.num_multipliers, 0)

        path = [
            ca.horzcat(
                *[
                    path_constraint.function(*self._point_arguments(variables, k))
                    for k in range(num_points)
                ]
            )
            for path_constraint in functions.path_constraints
        ]

        self._constraint_blocks = []
        self._apply_constraints(variables, xdot, kcerr, path)
        self._apply_duration_constraint(variables)

        objective_terms = self._create_objective_terms(variables)
        objective = ca.MX(0)
        for term in objective_terms.values():
            objective = objective + term

        blocks = self._constraint_blocks
        if blocks:
            g = ca.vertcat(*[block.expression for block in blocks])
            lbg = np.concatenate([block.lower for block in blocks])
            ubg = np.concatenate([block.upper for block in blocks])
        else:
            g = ca.MX(0, 1)
            lbg = np.zeros(0)
            ubg = np.zeros(0)

        logger.debug(
            "Assembled NLP: %d variables, %d constraints in %d blocks, %d objective terms",
            self._layout.size,
            int(g.numel()),
            len(blocks),
            len(objective_terms),
        )

        return NlpDescription(
            x=w,
            f=objective,
            g=g,
            lbx=np.array(self._layout.lower),
            ubx=np.array(self._layout.upper),
            lbg=lbg,
            ubg=ubg,
            objective_terms=objective_terms,
        )

    def _apply_duration_constraint(self, variables: VariablesMX) -> None:
        if self._functions.has_fixed_times:
            return
        self._add_constraint(
            "duration", None, variables.duration, MINIMUM_TIME_INTERVAL, np.inf
        )

    def _create_objective_terms(self, variables: VariablesMX) -> dict[str, ca.MX]:
        functions = self._functions
        last = self._mesh.num_points - 1
        terms: dict[str, ca.MX] = {}

        for cost in functions.endpoint_costs:
            value = cost.function(
                variables.initial_time,
                variables.states[:, 0],
                variables.final_time,
                variables.states[:, last],
                variables.parameters,
            )
            terms[cost.name] = cost.weight * value

        coefficients = ca.DM(self._quadrature_coefficients)
        for cost in functions.integral_costs:
            integrand = ca.horzcat(
                *[
                    cost.function(*self._point_arguments(variables, k))
                    for k in range(self._mesh.num_points)
                ]
            )
            terms[cost.name] = cost.weight * variables.duration * ca.mtimes(integrand, coefficients)

        return terms

    def _ensure_transcribed(self) -> NlpDescription:
        if self._nlp is None:
            try:
                self._nlp = self._transcribe()
            except DircolBaseError:
                raise
            except Exception as e:
                logger.error("Failed to assemble NLP: %s", str(e))
                raise DataIntegrityError(
                    f"Failed to assemble NLP for problem '{self._problem_name}': {e}",
                    f"{type(self).__name__} construction error",
                ) from e
        return self._nlp

    # ==========
    # PUBLIC API
    # ==========

    @property
    def solver(self) -> Solver:
        return self._solver

    @property
    def problem(self) -> ProblemProtocol:
        return self._problem

    @property
    def mesh(self) -> Mesh:
        return self._mesh

    @property
    def layout(self) -> VariableLayout:
        return self._layout

    @property
    def functions(self) -> ProblemFunctions:
        return self._functions

    @property
    def quadrature_coefficients(self) -> FloatArray:
        return self._quadrature_coefficients

    def quadrature_weights(self, duration: float) -> FloatArray:
        """Physical quadrature weights for a horizon of the given length."""
        return duration * self._quadrature_coefficients

    @property
    def kinematic_constraint_indices(self) -> tuple[int, ...]:
        return self._kinematic_indices

    @property
    def nlp(self) -> NlpDescription:
        return self._ensure_transcribed()

    @property
    def constraint_blocks(self) -> list[ConstraintBlock]:
        self._ensure_transcribed()
        return list(self._constraint_blocks)

    def get_constraint_blocks(self, kind: str) -> list[ConstraintBlock]:
        return [block for block in self.constraint_blocks if block.kind == kind]

    def evaluate_constraints(self, values: FloatArray) -> FloatArray:
        """Numeric constraint vector ``g(w)`` for a flat layout vector."""
        nlp = self._ensure_transcribed()
        if self._constraint_function is None:
            self._constraint_function = ca.Function("constraints", [nlp.x], [nlp.g])
        return np.array(self._constraint_function(self._checked_values(values))).reshape(-1)

    def evaluate_objective(self, values: FloatArray) -> float:
        nlp = self._ensure_transcribed()
        if self._objective_function is None:
            self._objective_function = ca.Function("objective", [nlp.x], [nlp.f])
        return float(self._objective_function(self._checked_values(values)))

    def evaluate_objective_terms(self, values: FloatArray) -> dict[str, float]:
        nlp = self._ensure_transcribed()
        if not nlp.objective_terms:
            return {}
        names = list(nlp.objective_terms)
        function = ca.Function(
            "objective_terms", [nlp.x], [nlp.objective_terms[name] for name in names]
        )
        outputs = function(self._checked_values(values))
        if len(names) == 1:
            outputs = [outputs]
        return {name: float(output) for name, output in zip(names, outputs, strict=True)}

    def _checked_values(self, values: FloatArray) -> ca.DM:
        array = np.asarray(values, dtype=np.float64).reshape(-1)
        if array.size != self._layout.size:
            raise DataIntegrityError(
                f"Vector of length {array.size} does not match layout size {self._layout.size}"
            )
        return ca.DM(array)

    def default_guess(self) -> FloatArray:
        return _create_initial_guess_vector(self._layout, self._mesh, None)

    def solve(self, guess: InitialGuess | Solution | None = None) -> Solution:
        """
        Solve the transcribed NLP and decode the result.

        Non-convergence is reported in ``Solution.status``; it is not raised.
        """
        nlp = self._ensure_transcribed()
        x0 = _create_initial_guess_vector(self._layout, self._mesh, guess)
        options = self._solver.nlp_options()
        optim_solver = self._solver.optim_solver

        logger.debug("Creating %s NLP solver with options: %s", optim_solver, options)
        try:
            nlp_solver = ca.nlpsol(
                "dircol_nlp", optim_solver, {"x": nlp.x, "f": nlp.f, "g": nlp.g}, options
            )
        except RuntimeError as e:
            raise ConfigurationError(
                f"Failed to create NLP solver '{optim_solver}': {e}", "Invalid solver options"
            ) from e

        logger.debug(
            "Executing NLP solve: %d variables, %d constraints",
            nlp.num_variables,
            nlp.num_constraints,
        )
        try:
            result = nlp_solver(x0=x0, lbx=nlp.lbx, ubx=nlp.ubx, lbg=nlp.lbg, ubg=nlp.ubg)
        except RuntimeError as e:
            logger.warning("NLP solver failed: %s", str(e))
            return _extract_solution(self, x0, _solver_error_stats(nlp_solver, e))

        values = np.array(result["x"], dtype=np.float64).reshape(-1)
        return _extract_solution(self, values, nlp_solver.stats())
