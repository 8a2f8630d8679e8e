from __future__ import annotations

import random
from typing import Optional, Sequence, TypeVar

T = TypeVar("T")


class DeterministicRng:
    """Random source handed to the simulation and its adapters.

    A ``None`` seed draws entropy from the operating system, so each session
    differs; pass an int for reproducible runs.
    """

    def __init__(self, seed: Optional[int] = None):
        self._random = random.Random(seed)

    def next_float(self) -> float:
        return self._random.random()

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_centered(self, span: float) -> float:
        return (self._random.random() - 0.5) * span

    def sample_choice(self, items: Sequence[T]) -> Optional[T]:
        if not items:
            return None
        return self._random.choice(items)
