from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from ..sim.core.config import TrailConfig
from ..sim.core.rng import DeterministicRng
from ..sim.core.simulation import SimulationListener
from ..sim.types.snapshot import AgentSnapshot, Triple

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TrailParticle:
    position: Triple
    lifetime: float
    opacity: float


@dataclass(slots=True)
class AgentTrail:
    agent_id: int
    particles: List[TrailParticle] = field(default_factory=list)
    light_position: Triple = (0.0, 0.0, 0.0)
    light_intensity: float = 1.0


class TrailPresenter(SimulationListener):
    """Per-agent trail and glow state for a renderer.

    Trails are keyed by agent id and live exactly as long as the agent: they
    are created on the added notification and dropped on the removed one.
    """

    def __init__(self, config: Optional[TrailConfig] = None, rng: Optional[DeterministicRng] = None):
        self._config = config if config is not None else TrailConfig()
        self._rng = rng if rng is not None else DeterministicRng()
        self._trails: Dict[int, AgentTrail] = {}

    @property
    def trails(self) -> Dict[int, AgentTrail]:
        return self._trails

    def on_agent_added(self, agent: AgentSnapshot) -> None:
        self._trails[agent.id] = AgentTrail(agent_id=agent.id, light_position=agent.position)

    def on_agent_removed(self, agent_id: int) -> None:
        if self._trails.pop(agent_id, None) is None:
            logger.warning("Removal notice for unknown agent %d", agent_id)

    def update(self, agents: Iterable[AgentSnapshot], frame_dt: Optional[float] = None) -> None:
        config = self._config
        dt = config.frame_dt if frame_dt is None else frame_dt
        for agent in agents:
            trail = self._trails.get(agent.id)
            if trail is None:
                continue
            if len(trail.particles) < config.max_particles:
                trail.particles.append(
                    TrailParticle(position=agent.position, lifetime=config.particle_lifetime, opacity=config.initial_opacity)
                )
            alive: List[TrailParticle] = []
            for particle in trail.particles:
                particle.lifetime -= dt
                if particle.lifetime <= 0:
                    continue
                progress = particle.lifetime / config.particle_lifetime
                particle.opacity = config.initial_opacity * progress
                x, y, z = particle.position
                particle.position = (x, y + dt * config.upward_drift, z)
                alive.append(particle)
            trail.particles = alive
            trail.light_position = agent.position
            trail.light_intensity = config.light_base_intensity + self._rng.next_float() * config.light_flicker

    def export(self) -> Dict[str, Any]:
        return {
            str(agent_id): {
                "light": {"position": list(trail.light_position), "intensity": trail.light_intensity},
                "particles": [
                    {"position": list(particle.position), "opacity": particle.opacity} for particle in trail.particles
                ],
            }
            for agent_id, trail in self._trails.items()
        }

    def clear(self) -> None:
        self._trails.clear()
