from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional, Sequence

from pygame.math import Vector3

from ..logging_config import LEVEL_NAMES, setup_logging
from ..sim.core.config import SimulationConfig
from ..sim.core.simulation import Simulation
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)

_HEADER = [
    "tick",
    "population",
    "avg_speed",
    "max_speed",
    "avg_goal_distance",
    "obstacle_contacts",
    "tick_ms",
]


def _format_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    goal_distance = "" if metrics.average_goal_distance is None else f"{metrics.average_goal_distance:.4f}"
    return [
        metrics.tick,
        metrics.population,
        f"{metrics.average_speed:.4f}",
        f"{metrics.max_speed:.4f}",
        goal_distance,
        metrics.obstacle_contacts,
        f"{tick_ms:.3f}",
    ]


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path] = None,
    deterministic_log: bool = False,
    population: Optional[int] = None,
    goal: Optional[Sequence[float]] = None,
    config_path: Optional[Path] = None,
    summary_path: Optional[Path] = None,
) -> Simulation:
    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    if population is not None:
        config.initial_population = population
    simulation = Simulation(config)
    if goal is not None:
        x, z = goal
        simulation.set_goal(Vector3(x, config.agent.ground_offset, z))
    dt = 1.0 / config.reference_tick_rate

    writer = None
    csv_file = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_HEADER)

    tick_ms_series: list[float] = []
    speed_series: list[float] = []
    goal_distance_series: list[float] = []
    contacts_total = 0

    simulation.start()
    try:
        for _ in range(steps):
            metrics = simulation.step(dt)
            tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
            tick_ms_series.append(tick_ms)
            speed_series.append(metrics.average_speed)
            if metrics.average_goal_distance is not None:
                goal_distance_series.append(metrics.average_goal_distance)
            contacts_total += metrics.obstacle_contacts
            if writer:
                writer.writerow(_format_row(metrics, tick_ms))
    finally:
        simulation.stop()
        if csv_file:
            csv_file.close()
    logger.info("Headless run finished after %d ticks", simulation.tick)

    if summary_path:
        summary = {
            "steps": steps,
            "seed": config.seed,
            "population": len(simulation.agents),
            "time_scaling": config.time_scaling,
            "deterministic_log": deterministic_log,
            "tick_ms": _summary_stats(tick_ms_series),
            "average_speed": _summary_stats(speed_series),
            "goal_distance": _summary_stats(goal_distance_series),
            "final_goal_distance": goal_distance_series[-1] if goal_distance_series else None,
            "obstacle_contacts": contacts_total,
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))
    return simulation


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Headless flockbots simulation")
    parser.add_argument("--steps", type=int, default=3000)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--population", type=int, default=None)
    parser.add_argument("--goal", type=float, nargs=2, metavar=("X", "Z"), default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML simulation config")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write metrics")
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO", type=str.upper, choices=LEVEL_NAMES)
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        population=args.population,
        goal=args.goal,
        config_path=args.config,
        summary_path=args.summary,
    )


if __name__ == "__main__":
    main()
