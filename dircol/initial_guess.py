"""
Initial guesses for the NLP decision vector.

Without a guess the solver starts from the bounds: midpoint of finite bounds,
the finite side of half-open bounds, zero for free variables. A prior
``Solution`` or an ``InitialGuess`` is linearly interpolated onto the mesh of
the new transcription, which is how a problem is re-solved on a refined mesh.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from .dc_types import FloatArray, NumericArrayLike
from .exceptions import DataIntegrityError
from .input_validation import _validate_array_numerical_integrity
from .mesh import Mesh
from .utils.constants import ZERO_TOLERANCE


if TYPE_CHECKING:
    from .solution import Solution
    from .transcription.layout import LayoutValues, VariableLayout


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class InitialGuess:
    """
    User-supplied trajectories sampled at arbitrary times.

    Any field left as None falls back to the bounds-based default. Samples are
    mapped onto the new mesh by their relative position between the first and
    last sample time.

    Args:
        times: Sample times, strictly increasing, shape ``(M,)``
        states: State samples, shape ``(M, num_states)``
        controls: Control samples, shape ``(M, num_controls)``
        multipliers: Multiplier samples, shape ``(M, num_multipliers)``
        parameters: Parameter values, shape ``(num_parameters,)``
        initial_time: Guess for ``t0``; defaults to ``times[0]``
        final_time: Guess for ``tf``; defaults to ``times[-1]``
    """

    times: NumericArrayLike | None = None
    states: NumericArrayLike | None = None
    controls: NumericArrayLike | None = None
    multipliers: NumericArrayLike | None = None
    parameters: NumericArrayLike | None = None
    initial_time: float | None = None
    final_time: float | None = None

    @classmethod
    def from_solution(cls, solution: Solution) -> InitialGuess:
        """Guess reproducing a prior solution's trajectories."""
        multipliers = None
        if solution.multiplier_indices:
            multipliers = _resample(
                solution.multiplier_times, np.asarray(solution.multipliers), solution.times
            )
        return cls(
            times=np.array(solution.times),
            states=np.array(solution.states),
            controls=np.array(solution.controls),
            multipliers=multipliers,
            parameters=np.array(solution.parameters),
            initial_time=solution.initial_time,
            final_time=solution.final_time,
        )


def _resample(
    sample_times: FloatArray, samples: FloatArray, query_times: FloatArray
) -> FloatArray:
    columns = [
        np.interp(query_times, sample_times, samples[:, j]) for j in range(samples.shape[1])
    ]
    if not columns:
        return np.zeros((len(query_times), 0))
    return np.column_stack(columns)


def _default_values(layout: VariableLayout) -> FloatArray:
    lower = np.asarray(layout.lower)
    upper = np.asarray(layout.upper)
    lower_finite = np.isfinite(lower)
    upper_finite = np.isfinite(upper)

    guess = np.zeros(layout.size, dtype=np.float64)
    both = lower_finite & upper_finite
    guess[both] = 0.5 * (lower[both] + upper[both])
    only_lower = lower_finite & ~upper_finite
    guess[only_lower] = lower[only_lower]
    only_upper = upper_finite & ~lower_finite
    guess[only_upper] = upper[only_upper]

    t0_index = layout.initial_time_index
    tf_index = layout.final_time_index
    if guess[tf_index] - guess[t0_index] <= ZERO_TOLERANCE:
        # keep tf strictly after t0
        guess[tf_index] = min(guess[t0_index] + 1.0, upper[tf_index])
    return guess


def _sample_matrix(
    values: NumericArrayLike, num_samples: int, num_columns: int, name: str
) -> FloatArray:
    array = np.asarray(values, dtype=np.float64)
    if array.ndim == 1 and num_columns == 1:
        array = array.reshape(-1, 1)
    if array.shape != (num_samples, num_columns):
        raise DataIntegrityError(
            f"Initial guess {name} have shape {array.shape}, expected "
            f"{(num_samples, num_columns)}",
            "Initial guess interpolation",
        )
    _validate_array_numerical_integrity(array, f"Initial guess {name}", "initial guess")
    return array


def _apply_guess(
    defaults: LayoutValues, layout: VariableLayout, mesh: Mesh, guess: InitialGuess
) -> tuple[FloatArray, FloatArray, FloatArray, float, float, FloatArray]:
    states = defaults.states
    controls = defaults.controls
    multipliers = defaults.multipliers
    parameters = defaults.parameters
    initial_time = defaults.initial_time
    final_time = defaults.final_time

    if guess.times is not None:
        times = np.asarray(guess.times, dtype=np.float64).reshape(-1)
        if times.size < 2 or np.any(np.diff(times) <= 0.0):
            raise DataIntegrityError(
                "Initial guess times must contain at least two strictly increasing values",
                "Initial guess interpolation",
            )
        initial_time = float(times[0])
        final_time = float(times[-1])
        normalized = (times - times[0]) / (times[-1] - times[0])
        num_samples = times.size

        if guess.states is not None:
            samples = _sample_matrix(guess.states, num_samples, layout.num_states, "states")
            states = _resample(normalized, samples, mesh.points)
        if guess.controls is not None:
            samples = _sample_matrix(guess.controls, num_samples, layout.num_controls, "controls")
            controls = _resample(normalized, samples, mesh.points)
        if guess.multipliers is not None and layout.kinematic_constraint_indices:
            samples = _sample_matrix(
                guess.multipliers, num_samples, layout.num_multipliers, "multipliers"
            )
            constrained_points = mesh.points[list(layout.kinematic_constraint_indices)]
            multipliers = _resample(normalized, samples, constrained_points)
    elif any(
        value is not None for value in (guess.states, guess.controls, guess.multipliers)
    ):
        raise DataIntegrityError(
            "Initial guess trajectories require sample times", "Initial guess interpolation"
        )

    if guess.parameters is not None:
        parameters = np.asarray(guess.parameters, dtype=np.float64).reshape(-1)
    if guess.initial_time is not None:
        initial_time = float(guess.initial_time)
    if guess.final_time is not None:
        final_time = float(guess.final_time)

    return states, controls, multipliers, initial_time, final_time, parameters


def _create_initial_guess_vector(
    layout: VariableLayout, mesh: Mesh, guess: InitialGuess | Solution | None
) -> FloatArray:
    """
    Flat starting point for the NLP solver, clipped to the variable bounds.

    Args:
        layout: Decision-variable layout of the transcription
        mesh: Mesh the guess is interpolated onto
        guess: None for the bounds-based default, a prior Solution or an InitialGuess

    Raises:
        DataIntegrityError: If guess arrays have the wrong shape or contain NaN
    """
    defaults = _default_values(layout)
    if guess is None:
        logger.debug("Using bounds-based initial guess for %d variables", layout.size)
        return defaults

    if not isinstance(guess, InitialGuess):
        guess = InitialGuess.from_solution(guess)

    states, controls, multipliers, t0, tf, parameters = _apply_guess(
        layout.split(defaults), layout, mesh, guess
    )
    values = layout.assemble(
        states, controls, t0, tf, multipliers=multipliers, parameters=parameters
    )
    logger.debug("Interpolated initial guess onto %d mesh points", mesh.num_points)
    return layout.clip_to_bounds(values)
