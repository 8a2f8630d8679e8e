from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    average_speed: float
    max_speed: float
    average_goal_distance: Optional[float]
    obstacle_contacts: int
    tick_duration_ms: float = 0.0
