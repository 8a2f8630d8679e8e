from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Sequence

from pygame.math import Vector3

from ..systems.steering import compute_step
from ..types.snapshot import AgentSnapshot
from ..utils.math3d import _as_tuple

if TYPE_CHECKING:
    from .config import SteeringConfig
    from .world import World


@dataclass(slots=True)
class Agent:
    id: int
    position: Vector3
    velocity: Vector3
    max_speed: float = 0.2
    max_force: float = 0.03
    goal_weight: float = 0.5
    ground_offset: float = 0.4
    heading: float = 0.0

    def compute_step(
        self,
        agents: Sequence["Agent"],
        world: "World",
        steering: "SteeringConfig",
        scale: float = 1.0,
    ) -> tuple[Vector3, Vector3]:
        return compute_step(self, agents, world, steering, scale)

    def snapshot(self) -> AgentSnapshot:
        return AgentSnapshot(
            id=self.id,
            position=_as_tuple(self.position),
            velocity=_as_tuple(self.velocity),
            heading=self.heading,
        )
