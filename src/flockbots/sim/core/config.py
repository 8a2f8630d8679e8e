from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

TIME_SCALING_MODES = ("fixed", "scaled")


@dataclass
class AgentConfig:
    max_speed: float = 0.2
    max_force: float = 0.03
    goal_weight: float = 0.5
    ground_offset: float = 0.4
    initial_velocity_span: float = 0.1


@dataclass
class SteeringConfig:
    separation_radius: float = 3.0
    cohesion_radius: float = 8.0
    alignment_radius: float = 8.0
    avoidance_radius: float = 4.0
    separation_weight: float = 1.5
    cohesion_weight: float = 0.5
    alignment_weight: float = 0.5
    avoidance_weight: float = 2.0
    # 1/d weighting is capped below this distance
    min_distance: float = 1e-3


@dataclass
class ObstacleArchetypeConfig:
    kind: str = "box"
    size: float = 2.0
    radius: float = 1.0
    height: float = 3.0


def _default_archetypes() -> List[ObstacleArchetypeConfig]:
    return [
        ObstacleArchetypeConfig(kind="box", size=2.0),
        ObstacleArchetypeConfig(kind="cylinder", radius=1.0, height=3.0),
        ObstacleArchetypeConfig(kind="sphere", radius=1.5),
    ]


@dataclass
class ObstacleConfig:
    count: int = 8
    spawn_margin: float = 2.0
    archetypes: List[ObstacleArchetypeConfig] = field(default_factory=_default_archetypes)


@dataclass
class TrailConfig:
    max_particles: int = 30
    particle_lifetime: float = 3.0
    initial_opacity: float = 0.8
    upward_drift: float = 0.1
    light_base_intensity: float = 0.5
    light_flicker: float = 0.5
    frame_dt: float = 0.016


@dataclass
class SimulationConfig:
    world_size: float = 50.0
    boundary_margin: float = 2.0
    initial_population: int = 3
    seed: Optional[int] = None
    time_scaling: str = "fixed"
    reference_tick_rate: float = 60.0
    agent: AgentConfig = field(default_factory=AgentConfig)
    steering: SteeringConfig = field(default_factory=SteeringConfig)
    obstacles: ObstacleConfig = field(default_factory=ObstacleConfig)
    trail: TrailConfig = field(default_factory=TrailConfig)

    def __post_init__(self) -> None:
        if self.time_scaling not in TIME_SCALING_MODES:
            raise ValueError(f"Unknown time scaling mode: {self.time_scaling}")

    @property
    def half_extent(self) -> float:
        return self.world_size / 2.0

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        return load_config(data)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    tick_rate: float = 60.0
    broadcast_interval: int = 2
    # unacknowledged snapshots kept for clients; oldest are dropped first
    snapshot_backlog: int = 120
    min_population: int = 3
    max_population: int = 7


def load_config(raw: dict) -> SimulationConfig:
    agent = AgentConfig(**raw.get("agent", {}))
    steering = SteeringConfig(**raw.get("steering", {}))
    obstacles_raw = raw.get("obstacles", {})
    archetypes_raw = obstacles_raw.get("archetypes")
    archetypes = (
        [ObstacleArchetypeConfig(**item) for item in archetypes_raw]
        if archetypes_raw is not None
        else _default_archetypes()
    )
    obstacles = ObstacleConfig(
        archetypes=archetypes,
        **{k: v for k, v in obstacles_raw.items() if k != "archetypes"},
    )
    trail = TrailConfig(**raw.get("trail", {}))
    sim_values = {k: v for k, v in raw.items() if k not in {"agent", "steering", "obstacles", "trail"}}
    return SimulationConfig(agent=agent, steering=steering, obstacles=obstacles, trail=trail, **sim_values)
