from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .metrics import TickMetrics

Triple = Tuple[float, float, float]


@dataclass(frozen=True, slots=True)
class AgentSnapshot:
    id: int
    position: Triple
    velocity: Triple
    heading: float


@dataclass(frozen=True, slots=True)
class ObstacleDescriptor:
    kind: str
    position: Triple
    avoid_radius: float
    dimensions: Tuple[float, ...]


@dataclass(slots=True)
class WorldDescriptor:
    half_extent: float
    margin: float
    obstacles: List[ObstacleDescriptor]


@dataclass(slots=True)
class Snapshot:
    tick: int
    running: bool
    agents: List[AgentSnapshot]
    goal: Optional[Triple]
    metrics: Optional[TickMetrics]
