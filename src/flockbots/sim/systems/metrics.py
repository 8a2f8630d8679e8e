from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

from ..types.metrics import TickMetrics
from ..utils.math3d import _planar_distance

if TYPE_CHECKING:
    from ..core.agent import Agent
    from ..core.world import World


def collect_tick_metrics(tick: int, agents: Sequence[Agent], world: World, tick_duration_ms: float = 0.0) -> TickMetrics:
    population = len(agents)
    speed_sum = 0.0
    max_speed = 0.0
    goal_distance_sum = 0.0
    contacts = 0
    goal = world.goal
    for agent in agents:
        speed = agent.velocity.length()
        speed_sum += speed
        if speed > max_speed:
            max_speed = speed
        if goal is not None:
            goal_distance_sum += _planar_distance(agent.position, goal)
        for obstacle in world.obstacles:
            if _planar_distance(agent.position, obstacle.center) < obstacle.avoid_radius:
                contacts += 1
                break
    average_goal_distance = None
    if goal is not None and population > 0:
        average_goal_distance = goal_distance_sum / population
    return TickMetrics(
        tick=tick,
        population=population,
        average_speed=speed_sum / population if population > 0 else 0.0,
        max_speed=max_speed,
        average_goal_distance=average_goal_distance,
        obstacle_contacts=contacts,
        tick_duration_ms=tick_duration_ms,
    )
