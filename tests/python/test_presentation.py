from __future__ import annotations

from pytest import approx

from flockbots.app.presentation import TrailPresenter
from flockbots.sim.core.config import ObstacleConfig, SimulationConfig, TrailConfig
from flockbots.sim.core.rng import DeterministicRng
from flockbots.sim.core.simulation import Simulation
from flockbots.sim.types.snapshot import AgentSnapshot


def _snapshot(agent_id: int, x: float = 0.0) -> AgentSnapshot:
    return AgentSnapshot(id=agent_id, position=(x, 0.4, 0.0), velocity=(0.0, 0.0, 0.0), heading=0.0)


def test_trails_follow_simulation_population():
    simulation = Simulation(SimulationConfig(seed=1, initial_population=0, obstacles=ObstacleConfig(count=0)))
    presenter = TrailPresenter(rng=DeterministicRng(1))
    simulation.add_listener(presenter)

    simulation.resize_population(5)
    assert sorted(presenter.trails) == [agent.id for agent in simulation.agents]

    simulation.resize_population(3)
    assert sorted(presenter.trails) == [agent.id for agent in simulation.agents]

    simulation.close()
    assert presenter.trails == {}


def test_update_emits_fades_and_drifts_particles():
    config = TrailConfig(max_particles=30, particle_lifetime=3.0, initial_opacity=0.8, upward_drift=0.1)
    presenter = TrailPresenter(config, DeterministicRng(2))
    presenter.on_agent_added(_snapshot(7))

    presenter.update([_snapshot(7, x=1.0)], frame_dt=0.5)
    presenter.update([_snapshot(7, x=2.0)], frame_dt=0.5)

    particles = presenter.trails[7].particles
    assert len(particles) == 2
    assert particles[0].lifetime == approx(2.0)
    assert particles[0].opacity == approx(0.8 * 2.0 / 3.0)
    assert particles[0].position == approx((1.0, 0.5, 0.0))
    assert particles[1].position == approx((2.0, 0.45, 0.0))
    assert presenter.trails[7].light_position == (2.0, 0.4, 0.0)


def test_particles_expire_and_count_is_capped():
    config = TrailConfig(max_particles=3, particle_lifetime=1.0)
    presenter = TrailPresenter(config, DeterministicRng(3))
    presenter.on_agent_added(_snapshot(1))

    for _ in range(3):
        presenter.update([_snapshot(1)], frame_dt=0.1)
    assert len(presenter.trails[1].particles) == 3

    presenter.update([_snapshot(1)], frame_dt=0.1)
    assert len(presenter.trails[1].particles) == 3

    presenter.update([_snapshot(1)], frame_dt=2.0)
    assert len(presenter.trails[1].particles) == 0


def test_light_flicker_stays_in_range_and_is_seedable():
    def intensities(seed: int) -> list[float]:
        presenter = TrailPresenter(TrailConfig(), DeterministicRng(seed))
        presenter.on_agent_added(_snapshot(0))
        values = []
        for _ in range(20):
            presenter.update([_snapshot(0)])
            values.append(presenter.trails[0].light_intensity)
        return values

    values = intensities(4)
    assert all(0.5 <= value <= 1.0 for value in values)
    assert values == intensities(4)


def test_unknown_agents_are_ignored():
    presenter = TrailPresenter(rng=DeterministicRng(0))

    presenter.update([_snapshot(99)])
    presenter.on_agent_removed(99)

    assert presenter.trails == {}


def test_export_is_keyed_by_agent_id():
    presenter = TrailPresenter(rng=DeterministicRng(0))
    presenter.on_agent_added(_snapshot(4))
    presenter.update([_snapshot(4)])

    payload = presenter.export()

    assert list(payload) == ["4"]
    assert len(payload["4"]["particles"]) == 1
    assert 0.5 <= payload["4"]["light"]["intensity"] <= 1.0
