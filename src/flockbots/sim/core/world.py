from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Tuple

from pygame.math import Vector3

from .config import ObstacleArchetypeConfig, SimulationConfig
from .rng import DeterministicRng
from ..types.snapshot import ObstacleDescriptor, Triple, WorldDescriptor
from ..utils.math3d import _clamp_value

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Obstacle:
    kind: str
    position: Triple
    avoid_radius: float
    dimensions: Tuple[float, ...]

    @property
    def center(self) -> Vector3:
        return Vector3(self.position)

    def descriptor(self) -> ObstacleDescriptor:
        return ObstacleDescriptor(
            kind=self.kind,
            position=self.position,
            avoid_radius=self.avoid_radius,
            dimensions=self.dimensions,
        )


def obstacle_from_archetype(archetype: ObstacleArchetypeConfig, x: float, z: float) -> Obstacle:
    """Place one obstacle of the given archetype resting on the floor at (x, z)."""
    kind = archetype.kind
    if kind == "box":
        height = archetype.size / 2.0
        avoid_radius = archetype.size * math.sqrt(2.0) / 2.0
        dimensions: Tuple[float, ...] = (archetype.size,)
    elif kind == "cylinder":
        height = archetype.height / 2.0
        avoid_radius = archetype.radius
        dimensions = (archetype.radius, archetype.height)
    elif kind == "sphere":
        height = archetype.radius
        avoid_radius = archetype.radius
        dimensions = (archetype.radius,)
    else:
        raise ValueError(f"Unknown obstacle kind: {kind}")
    return Obstacle(kind=kind, position=(float(x), float(height), float(z)), avoid_radius=avoid_radius, dimensions=dimensions)


class World:
    """Static floor geometry plus the shared goal point.

    Obstacles are fixed for the lifetime of the world. The goal starts unset
    and only changes through :meth:`set_goal` / :meth:`clear_goal`.
    """

    def __init__(self, half_extent: float, margin: float, obstacles: Tuple[Obstacle, ...] = ()):
        self._half_extent = half_extent
        self._margin = margin
        self._obstacles = tuple(obstacles)
        self._goal: Optional[Vector3] = None

    @classmethod
    def generate(cls, config: SimulationConfig, rng: DeterministicRng) -> "World":
        obstacle_config = config.obstacles
        span = max(0.0, config.world_size - 2.0 * obstacle_config.spawn_margin)
        obstacles = []
        for _ in range(obstacle_config.count):
            archetype = rng.sample_choice(obstacle_config.archetypes)
            if archetype is None:
                break
            x = rng.next_centered(span)
            z = rng.next_centered(span)
            obstacles.append(obstacle_from_archetype(archetype, x, z))
        logger.debug("Generated %d obstacles", len(obstacles))
        return cls(config.half_extent, config.boundary_margin, tuple(obstacles))

    @property
    def half_extent(self) -> float:
        return self._half_extent

    @property
    def margin(self) -> float:
        return self._margin

    @property
    def limit(self) -> float:
        return max(0.0, self._half_extent - self._margin)

    @property
    def obstacles(self) -> Tuple[Obstacle, ...]:
        return self._obstacles

    @property
    def goal(self) -> Optional[Vector3]:
        return None if self._goal is None else Vector3(self._goal)

    def set_goal(self, point: Vector3) -> None:
        self._goal = Vector3(point)

    def clear_goal(self) -> None:
        self._goal = None

    def clamp_horizontal(self, position: Vector3, ground_offset: float) -> Vector3:
        limit = self.limit
        return Vector3(
            _clamp_value(position.x, -limit, limit),
            ground_offset,
            _clamp_value(position.z, -limit, limit),
        )

    def descriptor(self) -> WorldDescriptor:
        return WorldDescriptor(
            half_extent=self._half_extent,
            margin=self._margin,
            obstacles=[obstacle.descriptor() for obstacle in self._obstacles],
        )
