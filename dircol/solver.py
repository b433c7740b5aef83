import logging
from typing import Any

from .dc_types import NumericArrayLike, ProblemProtocol
from .exceptions import ConfigurationError
from .initial_guess import InitialGuess
from .input_validation import _validate_positive_integer, _validate_solver_options
from .mesh import Mesh
from .solution import Solution
from .transcription.base import Transcription
from .transcription.registry import get_transcription_class
from .utils.constants import (
    DEFAULT_NUM_MESH_POINTS,
    DEFAULT_OPTIM_SOLVER,
    DEFAULT_TRANSCRIPTION_SCHEME,
)


logger = logging.getLogger(__name__)

# Default solver options
DEFAULT_NLP_OPTIONS: dict[str, object] = {
    "ipopt.print_level": 0,
    "ipopt.sb": "yes",
    "print_time": 0,
}


def _create_mesh(num_mesh_points: int | None, mesh: Mesh | NumericArrayLike | None) -> Mesh:
    if mesh is None:
        if num_mesh_points is None:
            num_mesh_points = DEFAULT_NUM_MESH_POINTS
        _validate_positive_integer(num_mesh_points, "num_mesh_points", min_value=2)
        return Mesh.uniform(num_mesh_points)

    created = mesh if isinstance(mesh, Mesh) else Mesh(mesh)
    if num_mesh_points is not None and num_mesh_points != created.num_points:
        raise ConfigurationError(
            f"num_mesh_points={num_mesh_points} conflicts with a mesh of "
            f"{created.num_points} points"
        )
    return created


class Solver:
    """
    Configuration of a direct collocation solve.

    The Solver validates its options up front, looks the transcription scheme
    up in the registry when ``solve`` is called and delegates the actual work
    to the transcription. It never inspects the decision-variable layout.

    Args:
        transcription_scheme: Registered scheme name (default: "trapezoidal")
        num_mesh_points: Number of points of a uniform mesh (default: 100)
        mesh: Explicit mesh, or strictly increasing points spanning [0, 1];
            overrides ``num_mesh_points``
        enforce_constraint_derivatives: Also enforce time derivatives of the
            kinematic constraints; only schemes that support it accept it
        scheme_options: Scheme-specific options; unknown keys are rejected
        optim_solver: NLP solver plugin (default: "ipopt")
        optim_max_iterations: Iteration limit passed to the NLP solver
        optim_convergence_tolerance: Convergence tolerance of the NLP solver
        optim_constraint_tolerance: Constraint violation tolerance of the NLP solver
        optim_hessian_approximation: "exact" or "limited-memory"
        verbosity: 0 silences the NLP solver; 1 logs progress; 2+ prints solver output
        nlp_options: Raw CasADi/IPOPT options merged over the generated ones
        show_summary: Print a solution summary after each solve

    Raises:
        ConfigurationError: If any option is invalid

    Examples:
        >>> solver = Solver(num_mesh_points=50, optim_max_iterations=500)
        >>> solution = solver.solve(problem)
        >>> refined = Solver(num_mesh_points=200).solve(problem, guess=solution)
    """

    def __init__(
        self,
        transcription_scheme: str = DEFAULT_TRANSCRIPTION_SCHEME,
        num_mesh_points: int | None = None,
        mesh: Mesh | NumericArrayLike | None = None,
        enforce_constraint_derivatives: bool = False,
        scheme_options: dict[str, Any] | None = None,
        optim_solver: str = DEFAULT_OPTIM_SOLVER,
        optim_max_iterations: int | None = None,
        optim_convergence_tolerance: float | None = None,
        optim_constraint_tolerance: float | None = None,
        optim_hessian_approximation: str = "exact",
        verbosity: int = 0,
        nlp_options: dict[str, object] | None = None,
        show_summary: bool = False,
    ) -> None:
        if not isinstance(transcription_scheme, str) or not transcription_scheme:
            raise ConfigurationError(
                f"transcription_scheme must be a non-empty string, got {transcription_scheme!r}"
            )
        _validate_solver_options(
            optim_solver,
            optim_hessian_approximation,
            optim_max_iterations,
            optim_convergence_tolerance,
            optim_constraint_tolerance,
            verbosity,
        )
        if scheme_options is not None and not isinstance(scheme_options, dict):
            raise ConfigurationError(
                f"scheme_options must be a dict, got {type(scheme_options).__name__}"
            )

        self._transcription_scheme = transcription_scheme
        self._mesh = _create_mesh(num_mesh_points, mesh)
        self._enforce_constraint_derivatives = bool(enforce_constraint_derivatives)
        self._scheme_options = dict(scheme_options or {})
        self._optim_solver = optim_solver
        self._optim_max_iterations = (
            None if optim_max_iterations is None else int(optim_max_iterations)
        )
        self._optim_convergence_tolerance = optim_convergence_tolerance
        self._optim_constraint_tolerance = optim_constraint_tolerance
        self._optim_hessian_approximation = optim_hessian_approximation
        self._verbosity = int(verbosity)
        self._nlp_options = dict(nlp_options or {})
        self.show_summary = show_summary

        logger.debug(
            "Solver configured: scheme='%s', mesh=%s, optim_solver='%s'",
            transcription_scheme,
            self._mesh,
            optim_solver,
        )

    @property
    def transcription_scheme(self) -> str:
        return self._transcription_scheme

    @property
    def mesh(self) -> Mesh:
        return self._mesh

    @property
    def num_mesh_points(self) -> int:
        return self._mesh.num_points

    @property
    def enforce_constraint_derivatives(self) -> bool:
        return self._enforce_constraint_derivatives

    @property
    def scheme_options(self) -> dict[str, Any]:
        return dict(self._scheme_options)

    @property
    def optim_solver(self) -> str:
        return self._optim_solver

    @property
    def verbosity(self) -> int:
        return self._verbosity

    def nlp_options(self) -> dict[str, object]:
        """CasADi ``nlpsol`` options generated from this configuration."""
        options: dict[str, object] = dict(DEFAULT_NLP_OPTIONS)
        options["error_on_fail"] = False
        if self._verbosity >= 2:
            options["ipopt.print_level"] = min(3 + self._verbosity, 12)
            options["ipopt.sb"] = "no"
            options["print_time"] = 1

        options["ipopt.hessian_approximation"] = self._optim_hessian_approximation
        if self._optim_max_iterations is not None:
            options["ipopt.max_iter"] = self._optim_max_iterations
        if self._optim_convergence_tolerance is not None:
            options["ipopt.tol"] = self._optim_convergence_tolerance
        if self._optim_constraint_tolerance is not None:
            options["ipopt.constr_viol_tol"] = self._optim_constraint_tolerance

        options.update(self._nlp_options)
        return options

    def create_transcription(self, problem: ProblemProtocol) -> Transcription:
        """
        Build the registered transcription for a problem without solving it.

        Raises:
            ConfigurationError: If the scheme is unknown or rejects this configuration
            ProblemDefinitionError: If the problem is invalid
        """
        transcription_class = get_transcription_class(self._transcription_scheme)
        return transcription_class(self, problem)

    def solve(
        self, problem: ProblemProtocol, guess: InitialGuess | Solution | None = None
    ) -> Solution:
        """
        Transcribe and solve a problem.

        Args:
            problem: Problem to solve
            guess: Optional prior Solution or InitialGuess, interpolated onto the mesh

        Returns:
            Solution whose ``status`` reports whether the NLP solver converged

        Raises:
            ConfigurationError: If the scheme is unknown or the configuration unsupported
            ProblemDefinitionError: If the problem is invalid
        """
        logger.info(
            "Starting %s solve: problem='%s', mesh points=%d",
            self._transcription_scheme,
            problem.name,
            self._mesh.num_points,
        )

        transcription = self.create_transcription(problem)
        if self._verbosity >= 1:
            nlp = transcription.nlp
            logger.info(
                "Transcribed NLP: %d variables, %d constraints",
                nlp.num_variables,
                nlp.num_constraints,
            )

        solution = transcription.solve(guess)

        if solution.success:
            logger.info(
                "Solve completed: objective=%.6e, iterations=%d",
                solution.objective,
                solution.iterations,
            )
        else:
            logger.warning("Solve finished with status %s", solution.status.value)

        if self.show_summary:
            solution.summary()
        return solution

    def __repr__(self) -> str:
        return (
            f"Solver(transcription_scheme='{self._transcription_scheme}', "
            f"mesh={self._mesh!r}, optim_solver='{self._optim_solver}')"
        )


def solve(
    problem: ProblemProtocol,
    guess: InitialGuess | Solution | None = None,
    **solver_options: Any,
) -> Solution:
    """
    Solve a problem with a one-off Solver.

    Examples:
        >>> solution = solve(problem, num_mesh_points=50, optim_max_iterations=300)
    """
    return Solver(**solver_options).solve(problem, guess)
