from __future__ import annotations

import logging
import math
from time import perf_counter
from typing import List, Optional

from pygame.math import Vector3

from .agent import Agent
from .config import SimulationConfig
from .rng import DeterministicRng
from .world import World
from ..systems.metrics import collect_tick_metrics
from ..types.metrics import TickMetrics
from ..types.snapshot import AgentSnapshot, Snapshot, WorldDescriptor
from ..utils.math3d import _as_tuple, _heading_from_velocity

logger = logging.getLogger(__name__)


class InvalidPopulationError(ValueError):
    pass


def _validate_population(count: int) -> int:
    if isinstance(count, bool) or not isinstance(count, int) or count < 0:
        raise InvalidPopulationError(f"Population must be a non-negative integer, got {count!r}")
    return count


class SimulationListener:
    """Receives agent lifecycle notifications; override what you need."""

    def on_agent_added(self, agent: AgentSnapshot) -> None:
        pass

    def on_agent_removed(self, agent_id: int) -> None:
        pass


class Simulation:
    """Owns the agents and the world and advances them one tick at a time.

    The simulation has no clock of its own. A driver calls :meth:`step`
    whenever it wants time to pass; while stopped those calls do nothing.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        rng: Optional[DeterministicRng] = None,
        world: Optional[World] = None,
    ):
        self._config = config if config is not None else SimulationConfig()
        self._rng = rng if rng is not None else DeterministicRng(self._config.seed)
        self._world = world if world is not None else World.generate(self._config, self._rng)
        self._agents: List[Agent] = []
        self._listeners: List[SimulationListener] = []
        self._running = False
        self._tick = 0
        self._next_id = 0
        self._metrics: Optional[TickMetrics] = None
        self._spawn(_validate_population(self._config.initial_population))

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def world(self) -> World:
        return self._world

    @property
    def agents(self) -> List[Agent]:
        return self._agents

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def metrics(self) -> Optional[TickMetrics]:
        return self._metrics

    @property
    def goal(self) -> Optional[Vector3]:
        return self._world.goal

    def add_listener(self, listener: SimulationListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SimulationListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        logger.info("Simulation started at tick %d with %d agents", self._tick, len(self._agents))

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        logger.info("Simulation stopped at tick %d", self._tick)

    def resize_population(self, count: int) -> None:
        _validate_population(count)
        self._discard_agents()
        self._spawn(count)
        logger.info("Population resized to %d", count)

    def set_goal(self, point: Vector3) -> None:
        if not all(math.isfinite(component) for component in point):
            raise ValueError(f"Goal coordinates must be finite, got {tuple(point)}")
        self._world.set_goal(point)
        logger.debug("Goal set to (%.2f, %.2f, %.2f)", point.x, point.y, point.z)

    def clear_goal(self) -> None:
        self._world.clear_goal()
        logger.debug("Goal cleared")

    def step(self, dt: float) -> Optional[TickMetrics]:
        if dt < 0:
            raise ValueError(f"dt must be non-negative, got {dt}")
        if not self._running:
            return None
        start = perf_counter()
        scale = self._time_scale(dt)
        steering = self._config.steering
        # every agent reads the same pre-step state; commit only afterwards
        updates = [agent.compute_step(self._agents, self._world, steering, scale) for agent in self._agents]
        for agent, (velocity, position) in zip(self._agents, updates):
            agent.velocity = velocity
            agent.position = position
            agent.heading = _heading_from_velocity(velocity, agent.heading)
        self._tick += 1
        elapsed_ms = (perf_counter() - start) * 1000.0
        self._metrics = collect_tick_metrics(self._tick, self._agents, self._world, elapsed_ms)
        return self._metrics

    def agent_snapshots(self) -> List[AgentSnapshot]:
        return [agent.snapshot() for agent in self._agents]

    def world_descriptor(self) -> WorldDescriptor:
        return self._world.descriptor()

    def snapshot(self) -> Snapshot:
        goal = self._world.goal
        return Snapshot(
            tick=self._tick,
            running=self._running,
            agents=self.agent_snapshots(),
            goal=None if goal is None else _as_tuple(goal),
            metrics=self._metrics,
        )

    def close(self) -> None:
        self.stop()
        self._discard_agents()

    def _time_scale(self, dt: float) -> float:
        if self._config.time_scaling == "scaled":
            return dt * self._config.reference_tick_rate
        return 1.0

    def _discard_agents(self) -> None:
        removed = [agent.id for agent in self._agents]
        self._agents = []
        for agent_id in removed:
            for listener in list(self._listeners):
                listener.on_agent_removed(agent_id)

    def _spawn(self, count: int) -> None:
        agent_config = self._config.agent
        limit = self._world.limit
        span = agent_config.initial_velocity_span
        for _ in range(count):
            position = Vector3(
                self._rng.next_range(-limit, limit),
                agent_config.ground_offset,
                self._rng.next_range(-limit, limit),
            )
            velocity = Vector3(self._rng.next_centered(span), 0.0, self._rng.next_centered(span))
            agent = Agent(
                id=self._next_id,
                position=position,
                velocity=velocity,
                max_speed=agent_config.max_speed,
                max_force=agent_config.max_force,
                goal_weight=agent_config.goal_weight,
                ground_offset=agent_config.ground_offset,
                heading=_heading_from_velocity(velocity),
            )
            self._next_id += 1
            self._agents.append(agent)
            for listener in list(self._listeners):
                listener.on_agent_added(agent.snapshot())
