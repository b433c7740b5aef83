import logging
import math
from collections.abc import Sequence
from numbers import Integral, Real
from typing import Any

import numpy as np

from .exceptions import ConfigurationError, DataIntegrityError, ProblemDefinitionError
from .dc_types import FloatArray, NumericArrayLike
from .utils.constants import (
    MESH_TOLERANCE,
    SUPPORTED_HESSIAN_APPROXIMATIONS,
    SUPPORTED_OPTIM_SOLVERS,
    ZERO_TOLERANCE,
)


logger = logging.getLogger(__name__)


# ==========================
# CORE VALIDATION PRIMITIVES
# ==========================


def _validate_positive_integer(value: Any, name: str, min_value: int = 1) -> None:
    if not isinstance(value, Integral) or isinstance(value, bool):
        raise ConfigurationError(f"{name} must be integer, got {type(value)}")
    if value < min_value:
        raise ConfigurationError(f"{name} must be >= {min_value}, got {value}")


def _validate_positive_number(value: Any, name: str) -> None:
    if not isinstance(value, Real) or isinstance(value, bool):
        raise ConfigurationError(f"{name} must be numeric, got {type(value)}")
    if math.isnan(value) or math.isinf(value):
        raise ConfigurationError(f"{name} cannot be NaN or infinite, got {value}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")


def _validate_string_not_empty(value: Any, name: str) -> None:
    if not isinstance(value, str):
        raise ProblemDefinitionError(f"{name} must be string, got {type(value)}")
    if not value.strip():
        raise ProblemDefinitionError(f"{name} cannot be empty")


def _validate_array_numerical_integrity(
    array: FloatArray, name: str, context: str = "validation"
) -> None:
    if np.any(np.isnan(array)) or np.any(np.isinf(array)):
        raise DataIntegrityError(
            f"{name} contains NaN or Inf values", f"Numerical corruption in {context}"
        )


def _validate_array_shape(
    array: FloatArray, expected_shape: tuple[int, ...], name: str, context: str = "validation"
) -> None:
    if array.shape != expected_shape:
        raise DataIntegrityError(
            f"{name} has shape {array.shape}, expected {expected_shape}",
            f"Shape mismatch in {context}",
        )


# =================
# BOUNDS VALIDATION
# =================


def _validate_bounds_input_format(bounds_input: Any, context: str) -> None:
    if bounds_input is None:
        return

    if isinstance(bounds_input, bool):
        raise ProblemDefinitionError(f"Invalid bounds type: {type(bounds_input)}", context)

    if isinstance(bounds_input, int | float):
        if math.isnan(bounds_input) or math.isinf(bounds_input):
            raise ProblemDefinitionError(
                f"Fixed bound cannot be NaN/infinite: {bounds_input}", context
            )
        return

    if not isinstance(bounds_input, tuple):
        raise ProblemDefinitionError(f"Invalid bounds type: {type(bounds_input)}", context)

    if len(bounds_input) != 2:
        raise ProblemDefinitionError(
            f"Bounds tuple must have 2 elements, got {len(bounds_input)}", context
        )

    lower, upper = bounds_input
    for i, val in enumerate([lower, upper]):
        if val is None:
            continue
        if not isinstance(val, int | float) or isinstance(val, bool):
            raise ProblemDefinitionError(
                f"Bound {i} must be numeric/None, got {type(val)}", context
            )
        if math.isnan(val):
            raise ProblemDefinitionError(f"Bound {i} cannot be NaN", context)

    if lower is not None and upper is not None and lower > upper:
        raise ProblemDefinitionError(f"Lower bound ({lower}) > upper bound ({upper})", context)
    if (lower is not None and lower == math.inf) or (upper is not None and upper == -math.inf):
        raise ProblemDefinitionError(f"Bounds ({lower}, {upper}) describe an empty set", context)


# ===============
# MESH VALIDATION
# ===============


def _validate_mesh_points(points: NumericArrayLike) -> FloatArray:
    mesh_array = np.asarray(points, dtype=np.float64)

    if mesh_array.ndim != 1:
        raise ConfigurationError(
            f"Mesh points must be one-dimensional, got shape {mesh_array.shape}"
        )
    if len(mesh_array) < 2:
        raise ConfigurationError(f"Mesh requires at least 2 points, got {len(mesh_array)}")
    if np.any(np.isnan(mesh_array)) or np.any(np.isinf(mesh_array)):
        raise ConfigurationError("Mesh points cannot contain NaN or infinite values")

    if abs(mesh_array[0]) > ZERO_TOLERANCE or abs(mesh_array[-1] - 1.0) > ZERO_TOLERANCE:
        raise ConfigurationError(
            f"Mesh must start at 0.0 and end at 1.0, got [{mesh_array[0]}, {mesh_array[-1]}]"
        )

    spacing = np.diff(mesh_array)
    if not np.all(spacing > MESH_TOLERANCE):
        bad_index = int(np.argmin(spacing))
        raise ConfigurationError(
            f"Mesh points must be strictly increasing with spacing > {MESH_TOLERANCE}, "
            f"interval {bad_index} has length {spacing[bad_index]}"
        )

    return mesh_array


def _validate_interval_lengths(lengths: NumericArrayLike) -> FloatArray:
    lengths_array = np.asarray(lengths, dtype=np.float64)

    if lengths_array.ndim != 1 or len(lengths_array) < 1:
        raise ConfigurationError("Mesh interval lengths must be a non-empty one-dimensional array")
    if np.any(np.isnan(lengths_array)) or np.any(np.isinf(lengths_array)):
        raise ConfigurationError("Mesh interval lengths cannot contain NaN or infinite values")
    if np.any(lengths_array <= 0.0):
        raise ConfigurationError("Mesh interval lengths must all be positive")

    return lengths_array


# =========================
# SOLVER OPTIONS VALIDATION
# =========================


def _validate_solver_options(
    optim_solver: str,
    optim_hessian_approximation: str,
    optim_max_iterations: int | None,
    optim_convergence_tolerance: float | None,
    optim_constraint_tolerance: float | None,
    verbosity: int,
) -> None:
    if optim_solver not in SUPPORTED_OPTIM_SOLVERS:
        raise ConfigurationError(
            f"Unsupported optim_solver '{optim_solver}'",
            f"Supported solvers: {', '.join(SUPPORTED_OPTIM_SOLVERS)}",
        )
    if optim_hessian_approximation not in SUPPORTED_HESSIAN_APPROXIMATIONS:
        raise ConfigurationError(
            f"Unsupported optim_hessian_approximation '{optim_hessian_approximation}'",
            f"Supported values: {', '.join(SUPPORTED_HESSIAN_APPROXIMATIONS)}",
        )
    if optim_max_iterations is not None:
        _validate_positive_integer(optim_max_iterations, "optim_max_iterations")
    if optim_convergence_tolerance is not None:
        _validate_positive_number(optim_convergence_tolerance, "optim_convergence_tolerance")
    if optim_constraint_tolerance is not None:
        _validate_positive_number(optim_constraint_tolerance, "optim_constraint_tolerance")
    _validate_positive_integer(verbosity, "verbosity", min_value=0)


def _validate_names_unique(names: Sequence[str], kind: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise ProblemDefinitionError(f"Duplicate {kind} name '{name}'")
        seen.add(name)
