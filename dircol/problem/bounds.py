from __future__ import annotations

import math
from dataclasses import dataclass

from ..dc_types import BoundsInput
from ..input_validation import _validate_bounds_input_format


@dataclass(frozen=True)
class Bounds:
    """Closed interval ``[lower, upper]`` for one decision variable or constraint entry."""

    lower: float = -math.inf
    upper: float = math.inf

    def __post_init__(self) -> None:
        _validate_bounds_input_format((self.lower, self.upper), "Bounds")

    @classmethod
    def from_input(cls, bounds_input: BoundsInput, context: str = "bounds") -> Bounds:
        _validate_bounds_input_format(bounds_input, context)

        if bounds_input is None:
            return cls()
        if isinstance(bounds_input, int | float):
            return cls(float(bounds_input), float(bounds_input))

        lower, upper = bounds_input
        return cls(
            -math.inf if lower is None else float(lower),
            math.inf if upper is None else float(upper),
        )

    @property
    def is_fixed(self) -> bool:
        return self.lower == self.upper

    @property
    def is_free(self) -> bool:
        return math.isinf(self.lower) and math.isinf(self.upper)

    def guess(self) -> float:
        """Midpoint of finite bounds, the finite side if half-open, zero if free."""
        lower_finite = not math.isinf(self.lower)
        upper_finite = not math.isinf(self.upper)
        if lower_finite and upper_finite:
            return 0.5 * (self.lower + self.upper)
        if lower_finite:
            return self.lower
        if upper_finite:
            return self.upper
        return 0.0

    def contains(self, value: float, tolerance: float = 0.0) -> bool:
        return self.lower - tolerance <= value <= self.upper + tolerance

    def __repr__(self) -> str:
        if self.is_fixed:
            return f"Bounds(== {self.lower})"
        return f"Bounds([{self.lower}, {self.upper}])"
