from __future__ import annotations

from typing import Iterable, Sequence, TYPE_CHECKING

from pygame.math import Vector3

from ..utils.math3d import _clamp_length, _flatten, _safe_normalize

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.config import SteeringConfig
    from ..core.world import World


def compute_step(
    agent: Agent,
    agents: Sequence[Agent],
    world: World,
    steering: SteeringConfig,
    scale: float = 1.0,
) -> tuple[Vector3, Vector3]:
    """Blend every steering contribution for ``agent`` and integrate one step.

    Reads ``agent``, ``agents`` and ``world`` without modifying them and
    returns ``(new_velocity, new_position)``. ``scale`` multiplies both the
    blended force and the displacement; 1.0 is one fixed tick.
    """
    force = blended_force(agent, agents, world, steering)
    velocity = _clamp_length(agent.velocity + force * scale, agent.max_speed)
    position = world.clamp_horizontal(agent.position + velocity * scale, agent.ground_offset)
    return velocity, position


def blended_force(agent: Agent, agents: Sequence[Agent], world: World, steering: SteeringConfig) -> Vector3:
    force = Vector3()
    force += separation(agent, agents, steering) * steering.separation_weight
    force += cohesion(agent, agents, steering) * steering.cohesion_weight
    force += alignment(agent, agents, steering) * steering.alignment_weight
    force += avoid_obstacles(agent, world, steering) * steering.avoidance_weight
    force += goal_seek(agent, world)
    return force


def seek(agent: Agent, target: Vector3) -> Vector3:
    desired = _safe_normalize(_flatten(target - agent.position)) * agent.max_speed
    return _clamp_length(desired - agent.velocity, agent.max_force)


def goal_seek(agent: Agent, world: World) -> Vector3:
    goal = world.goal
    if goal is None:
        return Vector3()
    return seek(agent, goal) * agent.goal_weight


def separation(agent: Agent, agents: Sequence[Agent], steering: SteeringConfig) -> Vector3:
    return _repulsion(
        agent,
        (other.position for other in agents if other is not agent),
        steering.separation_radius,
        steering.min_distance,
    )


def avoid_obstacles(agent: Agent, world: World, steering: SteeringConfig) -> Vector3:
    return _repulsion(
        agent,
        (obstacle.center for obstacle in world.obstacles),
        steering.avoidance_radius,
        steering.min_distance,
    )


def cohesion(agent: Agent, agents: Sequence[Agent], steering: SteeringConfig) -> Vector3:
    radius = steering.cohesion_radius
    total = Vector3()
    count = 0
    for other in agents:
        if other is agent:
            continue
        offset = _flatten(other.position - agent.position)
        if offset.length() < radius:
            total += other.position
            count += 1
    if count == 0:
        return Vector3()
    return seek(agent, total / count)


def alignment(agent: Agent, agents: Sequence[Agent], steering: SteeringConfig) -> Vector3:
    radius = steering.alignment_radius
    total = Vector3()
    count = 0
    for other in agents:
        if other is agent:
            continue
        offset = _flatten(other.position - agent.position)
        if offset.length() < radius:
            total += other.velocity
            count += 1
    if count == 0:
        return Vector3()
    desired = _safe_normalize(_flatten(total / count)) * agent.max_speed
    return _clamp_length(desired - agent.velocity, agent.max_force)


def _repulsion(agent: Agent, sources: Iterable[Vector3], radius: float, min_distance: float) -> Vector3:
    # closer sources weigh more (1/d), averaged over sources inside the radius
    total = Vector3()
    count = 0
    for source in sources:
        away = _flatten(agent.position - source)
        dist = away.length()
        if dist >= radius:
            continue
        total += _safe_normalize(away) / max(dist, min_distance)
        count += 1
    if count == 0:
        return Vector3()
    average = total / count
    if average.length_squared() <= 0.0:
        return Vector3()
    desired = _safe_normalize(average) * agent.max_speed
    return _clamp_length(desired - agent.velocity, agent.max_force)
