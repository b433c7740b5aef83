"""
dircol: direct collocation transcription of optimal control problems

Converts a continuous-time optimal control problem (dynamics, kinematic
constraints, path constraints, bounds, endpoint and integral costs) into a
nonlinear program, solves it with IPOPT through CasADi and maps the result
back onto time-indexed trajectories.

Quick Start:
    >>> import dircol
    >>> problem = dircol.Problem("Minimum Effort")
    >>> problem.time(initial=0.0, final=1.0)
    >>> x = problem.state("position", initial=0.0, final=1.0)
    >>> u = problem.control("force", boundary=(-10.0, 10.0))
    >>> problem.dynamics(lambda t, x, u, p: [u[0]])
    >>> problem.integral_cost("effort", lambda t, x, u, p: u[0] ** 2)
    >>> solution = dircol.Solver(num_mesh_points=50).solve(problem)
    >>> if solution.success:
    ...     print(solution.to_dataframe())

Logging:
    import logging
    logging.getLogger('dircol').setLevel(logging.INFO)  # Major operations
    logging.getLogger('dircol').setLevel(logging.DEBUG)  # Detailed debugging
"""

from __future__ import annotations

import logging

from dircol.exceptions import (
    ConfigurationError,
    DataIntegrityError,
    DircolBaseError,
    ProblemDefinitionError,
    SolutionExtractionError,
    SolverFailure,
)
from dircol.initial_guess import InitialGuess
from dircol.mesh import Mesh
from dircol.problem import Bounds, Problem
from dircol.simulation import SimulationResult, simulate_solution
from dircol.solution import Solution, SolverStatus
from dircol.solver import Solver, solve
from dircol.transcription import (
    Transcription,
    Trapezoidal,
    available_transcription_schemes,
    register_transcription,
)


__version__ = "0.1.0"

__all__ = [
    "Bounds",
    "ConfigurationError",
    "DataIntegrityError",
    "DircolBaseError",
    "InitialGuess",
    "Mesh",
    "Problem",
    "ProblemDefinitionError",
    "SimulationResult",
    "Solution",
    "SolutionExtractionError",
    "Solver",
    "SolverFailure",
    "SolverStatus",
    "Transcription",
    "Trapezoidal",
    "available_transcription_schemes",
    "register_transcription",
    "simulate_solution",
    "solve",
]

# Configure logging - no handlers, let user control output
logging.getLogger(__name__).addHandler(logging.NullHandler())
