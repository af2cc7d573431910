import math
from typing import Optional

import numpy as np


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    EPL_COEFF: float = 0.0333
    PLATE_INCREMENT: float = 1.25

    @classmethod
    def round_to_increment(cls, value: float, increment: Optional[float] = None) -> float:
        """Round ``value`` to the nearest multiple of ``increment``; halves round up."""
        inc = cls.PLATE_INCREMENT if increment is None else increment
        if inc <= 0:
            raise ValueError("increment must be positive")
        return round(math.floor(value / inc + 0.5) * inc, 4)

    @classmethod
    def percentage(
        cls, orm: float, pct: float, increment: Optional[float] = None
    ) -> float:
        """Return the working weight for ``pct`` of a one-rep max, plate rounded."""
        if orm < 0 or pct < 0:
            raise ValueError("orm and pct must be non-negative")
        return cls.round_to_increment(orm * pct, increment)

    @classmethod
    def epley_1rm(cls, weight: float, reps: int, factor: float = 1.0) -> float:
        """Return the estimated one-rep max using the Epley formula."""
        if reps < 0:
            raise ValueError("reps must be non-negative")
        rep_term = min(reps, 8)
        return weight * (1 + cls.EPL_COEFF * rep_term) * factor

    @classmethod
    def warmup_weights(
        cls, target_weight: float, sets: int, increment: Optional[float] = None
    ) -> list[float]:
        """Return a list of warm-up weights leading up to ``target_weight``."""
        if target_weight <= 0 or sets <= 0:
            raise ValueError("invalid input values")
        inc = np.linspace(0.3, 0.9, sets)
        return [cls.round_to_increment(target_weight * float(i), increment) for i in inc]
