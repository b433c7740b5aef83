from typing import TypeAlias


_Tolerance: TypeAlias = float
_Duration: TypeAlias = float
_Factor: TypeAlias = float

ZERO_TOLERANCE: _Tolerance = 1e-14
"""Tolerance for considering floating point values as zero."""

MESH_TOLERANCE: _Tolerance = 1e-12
"""Minimum spacing required between normalized mesh points."""

MINIMUM_TIME_INTERVAL: _Duration = 1e-10
"""Minimum gap between the lower bound of t0 and the upper bound of tf."""

DEFAULT_NUM_MESH_POINTS: int = 100
"""Mesh point count used when neither a count nor an explicit mesh is given."""

DEFAULT_TRANSCRIPTION_SCHEME: str = "trapezoidal"

DEFAULT_OPTIM_SOLVER: str = "ipopt"

SUPPORTED_OPTIM_SOLVERS: tuple[str, ...] = ("ipopt",)

SUPPORTED_HESSIAN_APPROXIMATIONS: tuple[str, ...] = ("exact", "limited-memory")

# ODE Solver Defaults - used by forward simulation of solutions
DEFAULT_ODE_RTOL: _Tolerance = 1e-7
"""Default relative tolerance for ODE solvers."""

DEFAULT_ODE_ATOL_FACTOR: _Factor = 1e-2
"""Factor for computing absolute tolerance from relative tolerance (atol = rtol * factor)."""

DEFAULT_ODE_METHOD: str = "RK45"
"""Default ODE integration method."""

DEFAULT_ODE_MAX_STEP: float | None = None
"""Default maximum step size for ODE solver (None = no limit)."""
