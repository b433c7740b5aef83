"""
Decision-variable layout of a transcribed problem.

The layout is a flat vector ordered mesh point by mesh point; each point holds
its states, then its controls, then (at kinematically constrained points) its
multipliers. The initial time, final time and parameters follow all mesh
points. Keeping consecutive mesh points adjacent gives the defect constraints a
banded Jacobian.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np

from ..dc_types import FloatArray
from ..exceptions import DataIntegrityError
from ..problem.bounds import Bounds


logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class LayoutValues:
    """Numeric content of a layout vector, split by variable kind."""

    states: FloatArray
    controls: FloatArray
    multipliers: FloatArray
    initial_time: float
    final_time: float
    parameters: FloatArray


@dataclass(frozen=True, eq=False)
class VariableLayout:
    """Immutable offsets, bounds and names of every decision variable."""

    num_mesh_points: int
    num_states: int
    num_controls: int
    num_multipliers: int
    num_parameters: int
    kinematic_constraint_indices: tuple[int, ...]
    point_offsets: tuple[int, ...]
    lower: FloatArray
    upper: FloatArray
    names: tuple[str, ...]

    @property
    def size(self) -> int:
        return len(self.lower)

    @property
    def expected_size(self) -> int:
        return (
            self.num_mesh_points * (self.num_states + self.num_controls)
            + len(self.kinematic_constraint_indices) * self.num_multipliers
            + 2
            + self.num_parameters
        )

    @property
    def initial_time_index(self) -> int:
        return self.point_offsets[-1]

    @property
    def final_time_index(self) -> int:
        return self.point_offsets[-1] + 1

    @property
    def parameter_slice(self) -> slice:
        start = self.point_offsets[-1] + 2
        return slice(start, start + self.num_parameters)

    def state_slice(self, mesh_index: int) -> slice:
        start = self.point_offsets[mesh_index]
        return slice(start, start + self.num_states)

    def control_slice(self, mesh_index: int) -> slice:
        start = self.point_offsets[mesh_index] + self.num_states
        return slice(start, start + self.num_controls)

    def multiplier_slice(self, mesh_index: int) -> slice | None:
        """Slice of the multipliers at ``mesh_index``, or None if the point is unconstrained."""
        if mesh_index not in self.kinematic_constraint_indices:
            return None
        start = self.point_offsets[mesh_index] + self.num_states + self.num_controls
        return slice(start, start + self.num_multipliers)

    def split(self, values: FloatArray) -> LayoutValues:
        """Restructure a flat vector into per-point trajectories."""
        flat = np.asarray(values, dtype=np.float64).reshape(-1)
        if flat.size != self.size:
            raise DataIntegrityError(
                f"Vector of length {flat.size} does not match layout size {self.size}",
                "Layout split",
            )

        states = np.array([flat[self.state_slice(k)] for k in range(self.num_mesh_points)])
        controls = np.array([flat[self.control_slice(k)] for k in range(self.num_mesh_points)])
        multiplier_rows = []
        for k in self.kinematic_constraint_indices:
            multiplier_rows.append(flat[self.multiplier_slice(k)])

        return LayoutValues(
            states=states.reshape(self.num_mesh_points, self.num_states),
            controls=controls.reshape(self.num_mesh_points, self.num_controls),
            multipliers=np.array(multiplier_rows, dtype=np.float64).reshape(
                len(self.kinematic_constraint_indices), self.num_multipliers
            ),
            initial_time=float(flat[self.initial_time_index]),
            final_time=float(flat[self.final_time_index]),
            parameters=flat[self.parameter_slice].copy(),
        )

    def assemble(
        self,
        states: FloatArray,
        controls: FloatArray,
        initial_time: float,
        final_time: float,
        multipliers: FloatArray | None = None,
        parameters: FloatArray | None = None,
    ) -> FloatArray:
        """Inverse of ``split``: pack per-point trajectories into a flat vector."""
        num_constrained = len(self.kinematic_constraint_indices)
        states = _as_matrix(states, self.num_mesh_points, self.num_states, "states")
        controls = _as_matrix(controls, self.num_mesh_points, self.num_controls, "controls")
        if multipliers is None:
            multipliers = np.zeros((num_constrained, self.num_multipliers))
        multipliers = _as_matrix(multipliers, num_constrained, self.num_multipliers, "multipliers")
        parameters = np.zeros(self.num_parameters) if parameters is None else parameters
        parameters = np.asarray(parameters, dtype=np.float64).reshape(-1)
        if parameters.size != self.num_parameters:
            raise DataIntegrityError(
                f"parameters have {parameters.size} entries, expected {self.num_parameters}",
                "Layout assemble",
            )

        flat = np.zeros(self.size, dtype=np.float64)
        for k in range(self.num_mesh_points):
            flat[self.state_slice(k)] = states[k]
            flat[self.control_slice(k)] = controls[k]
        for row, k in enumerate(self.kinematic_constraint_indices):
            flat[self.multiplier_slice(k)] = multipliers[row]
        flat[self.initial_time_index] = initial_time
        flat[self.final_time_index] = final_time
        flat[self.parameter_slice] = parameters
        return flat

    def clip_to_bounds(self, values: FloatArray) -> FloatArray:
        return np.clip(np.asarray(values, dtype=np.float64), self.lower, self.upper)


def _as_matrix(values: FloatArray, rows: int, cols: int, name: str) -> FloatArray:
    array = np.asarray(values, dtype=np.float64)
    if array.size == rows * cols and array.ndim <= 1:
        array = array.reshape(rows, cols)
    if array.shape != (rows, cols):
        raise DataIntegrityError(
            f"{name} have shape {array.shape}, expected {(rows, cols)}", "Layout assemble"
        )
    return array


class LayoutBuilder:
    """
    Collect bounds for every variable kind and produce a ``VariableLayout``.

    State and control bounds are broadcast across all mesh points; the first
    and last mesh points use the initial and final bounds instead.
    """

    def __init__(
        self,
        num_mesh_points: int,
        num_states: int,
        num_controls: int,
        num_multipliers: int = 0,
        num_parameters: int = 0,
        kinematic_constraint_indices: Sequence[int] = (),
    ) -> None:
        indices: tuple[int, ...] = ()
        if num_multipliers:
            indices = tuple(sorted(int(k) for k in kinematic_constraint_indices))
        if any(k < 0 or k >= num_mesh_points for k in indices):
            raise DataIntegrityError(
                f"Kinematic constraint indices {indices} outside mesh of {num_mesh_points} points"
            )
        if len(set(indices)) != len(indices):
            raise DataIntegrityError(f"Duplicate kinematic constraint indices {indices}")

        self._num_mesh_points = num_mesh_points
        self._num_states = num_states
        self._num_controls = num_controls
        self._num_multipliers = num_multipliers
        self._num_parameters = num_parameters
        self._indices = indices

        free = Bounds()
        self._state_bounds = _BoundsSet([free] * num_states)
        self._control_bounds = _BoundsSet([free] * num_controls)
        self._multiplier_bounds = [free] * num_multipliers
        self._parameter_bounds = [free] * num_parameters
        self._initial_time_bounds = free
        self._final_time_bounds = free

        self._state_names = [f"x{i}" for i in range(num_states)]
        self._control_names = [f"u{i}" for i in range(num_controls)]
        self._multiplier_names = [f"lambda{i}" for i in range(num_multipliers)]
        self._parameter_names = [f"p{i}" for i in range(num_parameters)]

    def set_state_bounds(
        self,
        bounds: Sequence[Bounds],
        initial: Sequence[Bounds] | None = None,
        final: Sequence[Bounds] | None = None,
    ) -> LayoutBuilder:
        self._state_bounds = _BoundsSet.create(bounds, initial, final, self._num_states, "state")
        return self

    def set_control_bounds(
        self,
        bounds: Sequence[Bounds],
        initial: Sequence[Bounds] | None = None,
        final: Sequence[Bounds] | None = None,
    ) -> LayoutBuilder:
        self._control_bounds = _BoundsSet.create(
            bounds, initial, final, self._num_controls, "control"
        )
        return self

    def set_multiplier_bounds(self, bounds: Sequence[Bounds]) -> LayoutBuilder:
        _check_count(bounds, self._num_multipliers, "multiplier")
        self._multiplier_bounds = list(bounds)
        return self

    def set_parameter_bounds(self, bounds: Sequence[Bounds]) -> LayoutBuilder:
        _check_count(bounds, self._num_parameters, "parameter")
        self._parameter_bounds = list(bounds)
        return self

    def set_time_bounds(self, initial: Bounds, final: Bounds) -> LayoutBuilder:
        self._initial_time_bounds = initial
        self._final_time_bounds = final
        return self

    def set_names(
        self,
        states: Sequence[str] | None = None,
        controls: Sequence[str] | None = None,
        multipliers: Sequence[str] | None = None,
        parameters: Sequence[str] | None = None,
    ) -> LayoutBuilder:
        if states is not None:
            _check_count(states, self._num_states, "state name")
            self._state_names = list(states)
        if controls is not None:
            _check_count(controls, self._num_controls, "control name")
            self._control_names = list(controls)
        if multipliers is not None:
            _check_count(multipliers, self._num_multipliers, "multiplier name")
            self._multiplier_names = list(multipliers)
        if parameters is not None:
            _check_count(parameters, self._num_parameters, "parameter name")
            self._parameter_names = list(parameters)
        return self

    def build(self) -> VariableLayout:
        lower: list[float] = []
        upper: list[float] = []
        names: list[str] = []
        point_offsets: list[int] = []
        last = self._num_mesh_points - 1
        constrained = set(self._indices)

        for k in range(self._num_mesh_points):
            point_offsets.append(len(lower))
            for bounds, name in zip(self._state_bounds.at(k, last), self._state_names, strict=True):
                _append(lower, upper, names, bounds, f"{name}[{k}]")
            for bounds, name in zip(
                self._control_bounds.at(k, last), self._control_names, strict=True
            ):
                _append(lower, upper, names, bounds, f"{name}[{k}]")
            if k in constrained:
                for bounds, name in zip(
                    self._multiplier_bounds, self._multiplier_names, strict=True
                ):
                    _append(lower, upper, names, bounds, f"{name}[{k}]")
        # sentinel offset marks the start of the global scalars
        point_offsets.append(len(lower))

        _append(lower, upper, names, self._initial_time_bounds, "t0")
        _append(lower, upper, names, self._final_time_bounds, "tf")
        for bounds, name in zip(self._parameter_bounds, self._parameter_names, strict=True):
            _append(lower, upper, names, bounds, name)

        lower_array = np.array(lower, dtype=np.float64)
        upper_array = np.array(upper, dtype=np.float64)
        lower_array.setflags(write=False)
        upper_array.setflags(write=False)

        layout = VariableLayout(
            num_mesh_points=self._num_mesh_points,
            num_states=self._num_states,
            num_controls=self._num_controls,
            num_multipliers=self._num_multipliers,
            num_parameters=self._num_parameters,
            kinematic_constraint_indices=self._indices,
            point_offsets=tuple(point_offsets),
            lower=lower_array,
            upper=upper_array,
            names=tuple(names),
        )

        if layout.size != layout.expected_size:
            raise DataIntegrityError(
                f"Layout has {layout.size} entries, expected {layout.expected_size}",
                "Layout construction",
            )

        logger.debug(
            "Built variable layout: %d variables over %d mesh points (%d constrained)",
            layout.size,
            self._num_mesh_points,
            len(self._indices),
        )
        return layout


@dataclass(frozen=True)
class _BoundsSet:
    path: list[Bounds]
    initial: list[Bounds] | None = None
    final: list[Bounds] | None = None

    @classmethod
    def create(
        cls,
        bounds: Sequence[Bounds],
        initial: Sequence[Bounds] | None,
        final: Sequence[Bounds] | None,
        expected: int,
        kind: str,
    ) -> _BoundsSet:
        _check_count(bounds, expected, kind)
        if initial is not None:
            _check_count(initial, expected, f"initial {kind}")
        if final is not None:
            _check_count(final, expected, f"final {kind}")
        return cls(
            list(bounds),
            None if initial is None else list(initial),
            None if final is None else list(final),
        )

    def at(self, mesh_index: int, last_index: int) -> list[Bounds]:
        if mesh_index == 0 and self.initial is not None:
            return self.initial
        if mesh_index == last_index and self.final is not None:
            return self.final
        return self.path


def _check_count(items: Sequence[object], expected: int, kind: str) -> None:
    if len(items) != expected:
        raise DataIntegrityError(f"Got {len(items)} {kind} entries, expected {expected}")


def _append(
    lower: list[float], upper: list[float], names: list[str], bounds: Bounds, name: str
) -> None:
    lower.append(bounds.lower)
    upper.append(bounds.upper)
    names.append(name)
