"""Tests for the simulation coordinator."""

import asyncio

import numpy as np
import pytest

from conftest import BOX, make_world
from fireflies.control import Simulation, spawn_positions
from fireflies.decision import PopulationState
from fireflies.params import Parameters
from fireflies.perception.edges import distance_to_nearest_obstacle
from fireflies.perception.world_state import GeometryError, Obstacle, Rect, WorldBounds

SCENE = {
    "bounds": {"width": 800, "height": 600},
    "obstacles": [
        {"id": "card", "x": 200, "y": 200, "width": 160, "height": 100},
        {"id": "toy", "type": "draggable", "x": 500, "y": 380, "width": 60, "height": 60},
    ],
}


def make_sim(agents=4, seed=0, **params):
    sim = Simulation(Parameters(agent_count=agents, **params), seed=seed)
    sim.load_world(SCENE)
    return sim


def run_frames(sim, seconds, hz=60, start=0.0):
    frames = int(round(seconds * hz))
    for i in range(frames + 1):
        sim.step(start + i / hz)


# =============================================================================
# Spawning
# =============================================================================

def test_spawn_positions_are_clear():
    world = make_world(Rect(100, 100, 200, 200), bounds=(400, 400))

    positions = spawn_positions(world.bounds, world.obstacles, 9, np.random.default_rng(1))

    assert len(positions) == 9
    for x, y in positions:
        assert world.bounds.contains(x, y)
        assert distance_to_nearest_obstacle((x, y), world.obstacles) >= 30


def test_spawn_positions_are_deterministic():
    world = make_world(BOX)

    a = spawn_positions(world.bounds, world.obstacles, 5, np.random.default_rng(7))
    b = spawn_positions(world.bounds, world.obstacles, 5, np.random.default_rng(7))

    assert a == b


def test_spawn_positions_falls_back_when_slot_is_blocked():
    # The only slot is covered; a free spot exists near the right edge
    world = make_world(Rect(0, 0, 300, 400), bounds=(400, 400))

    [(x, y)] = spawn_positions(world.bounds, world.obstacles, 1, np.random.default_rng(0))

    assert distance_to_nearest_obstacle((x, y), world.obstacles) >= 30


def test_spawn_zero():
    assert spawn_positions(WorldBounds(100, 100), [], 0, np.random.default_rng()) == []


# =============================================================================
# World ingestion and seeding
# =============================================================================

def test_no_world_no_agents():
    sim = Simulation()
    sim.step(0.0)

    assert sim.agents == []
    assert sim.state == PopulationState.IDLE


def test_first_step_seeds_population():
    sim = make_sim(agents=5)

    sim.step(0.0)

    assert sim.state == PopulationState.RUNNING
    assert [a.id for a in sim.agents] == ["ff-0", "ff-1", "ff-2", "ff-3", "ff-4"]
    assert sim.perception_count == 1
    for agent in sim.agents:
        assert agent.memory.agent_id == agent.id


def test_malformed_world_is_rejected():
    sim = make_sim()
    sim.step(0.0)
    before = sim.world

    with pytest.raises(GeometryError):
        sim.load_world({"bounds": {"width": 800, "height": 600}, "obstacles": [{"id": "x"}]})

    assert sim.world is before


@pytest.mark.parametrize(
    "obstacles, bounds",
    [
        ([Obstacle("bad", Rect(10, 10, float("nan"), -5))], WorldBounds(800, 600)),
        ([Obstacle("bad", Rect(float("inf"), 10, 20, 20))], WorldBounds(800, 600)),
        ([Obstacle("a", Rect(0, 0, 10, 10)), Obstacle("a", Rect(50, 50, 10, 10))], WorldBounds(800, 600)),
        ([], WorldBounds(0, 600)),
        ([], WorldBounds(800, float("nan"))),
    ],
)
def test_set_world_rejects_invalid_geometry(obstacles, bounds):
    sim = make_sim()
    sim.step(0.0)
    before = sim.world
    reseeds = sim.state_machine.reseeds

    with pytest.raises(GeometryError):
        sim.set_world(obstacles, bounds)

    assert sim.world is before
    assert sim.state_machine.reseeds == reseeds


def test_small_bounds_change_keeps_agents():
    sim = make_sim()
    run_frames(sim, 0.5)
    agents = list(sim.agents)

    state = sim.set_world(sim.world.obstacles, WorldBounds(850, 560))
    sim.step(0.6)

    assert state == PopulationState.RUNNING
    assert sim.agents == agents
    assert all(a is b for a, b in zip(sim.agents, agents))
    assert sim.state_machine.reseeds == 1


def test_large_bounds_change_reseeds():
    sim = make_sim()
    run_frames(sim, 0.5)
    agents = list(sim.agents)

    state = sim.set_world(sim.world.obstacles, WorldBounds(1200, 600))
    sim.step(0.6)

    assert state == PopulationState.SEEDING
    assert sim.state == PopulationState.RUNNING
    assert not any(a is b for a, b in zip(sim.agents, agents))
    assert sim.state_machine.reseeds == 2


def test_agent_count_change_reseeds():
    sim = make_sim(agents=3)
    sim.step(0.0)

    sim.set_agent_count(6)
    sim.step(0.1)

    assert len(sim.agents) == 6


def test_agent_count_change_through_params():
    sim = make_sim(agents=3)
    sim.step(0.0)

    sim.params.update(agent_count=2)
    sim.step(0.1)

    assert len(sim.agents) == 2


# =============================================================================
# Cadence
# =============================================================================

@pytest.mark.parametrize("hz", [30, 60, 120])
def test_perception_cadence_is_frame_rate_independent(hz):
    sim = make_sim(agents=2)

    run_frames(sim, 1.0, hz=hz)

    assert sim.frame_count == hz + 1
    assert 14 <= sim.perception_count <= 21


def test_large_frame_gap_is_clamped():
    sim = make_sim(agents=1)
    sim.step(0.0)
    agent = sim.agents[0]
    x, y = agent.position

    sim.step(5.0)

    moved = ((agent.x - x) ** 2 + (agent.y - y) ** 2) ** 0.5
    assert moved <= sim.params.max_speed * 0.1 + 5.0


def test_run_is_deterministic_for_a_seed():
    a = make_sim(seed=11)
    b = make_sim(seed=11)

    run_frames(a, 2.0)
    run_frames(b, 2.0)

    assert a.poses() == b.poses()
    assert a.memory_snapshot() == b.memory_snapshot()


def test_different_seeds_differ():
    a = make_sim(seed=1)
    b = make_sim(seed=2)

    a.step(0.0)
    b.step(0.0)

    assert [ag.position for ag in a.agents] != [ag.position for ag in b.agents]


def test_fireflies_stay_out_of_obstacles():
    sim = make_sim(agents=6, seed=3)

    for i in range(600):
        sim.step(i / 60)
        for agent in sim.agents:
            assert sim.world.bounds.contains(agent.x, agent.y)
            for obstacle in sim.world.obstacles:
                assert not obstacle.rect.strictly_contains(agent.x, agent.y)


# =============================================================================
# Outputs
# =============================================================================

def test_outputs():
    sim = make_sim(agents=2)
    run_frames(sim, 1.0)

    poses = sim.poses()
    assert {p["id"] for p in poses} == {"ff-0", "ff-1"}
    assert set(sim.memory_snapshot()) == {"ff-0", "ff-1"}
    assert set(sim.memory_snapshot("ff-1")) == {"ff-1"}
    assert sim.get_agent("ff-9") is None

    status = sim.status()
    assert status["state"] == "RUNNING"
    assert status["agents"] == 2
    assert status["obstacles"] == 2
    assert status["bounds"] == {"width": 800, "height": 600}


def test_active_errors_are_sorted():
    sim = make_sim(agents=3)
    run_frames(sim, 2.0)

    timestamps = [e.timestamp for e in sim.active_errors()]
    assert timestamps == sorted(timestamps)


def test_attractor():
    sim = make_sim()
    sim.step(0.0)

    sim.set_attractor(100, 120)
    assert (sim.attractor.x, sim.attractor.y) == (100, 120)
    assert sim.attractor.updated_at == 0.0

    sim.clear_attractor()
    assert sim.attractor is None


@pytest.mark.parametrize(
    "x, y, strength",
    [(float("nan"), 100, 1.0), (100, float("inf"), 1.0), (100, 100, float("nan"))],
)
def test_attractor_rejects_non_finite_values(x, y, strength):
    sim = make_sim()
    sim.step(0.0)
    sim.set_attractor(50, 60)

    with pytest.raises(ValueError):
        sim.set_attractor(x, y, strength=strength)

    assert (sim.attractor.x, sim.attractor.y) == (50, 60)
    sim.step(0.1)


# =============================================================================
# Loop
# =============================================================================

@pytest.mark.asyncio
async def test_run_for_duration():
    sim = make_sim(agents=2)

    await sim.run(hz=60, duration=0.2)

    assert not sim.is_running
    assert sim.frame_count > 1
    assert sim.perception_count >= 2


@pytest.mark.asyncio
async def test_stop_ends_run():
    sim = make_sim(agents=2)
    task = asyncio.ensure_future(sim.run(hz=60))
    await asyncio.sleep(0.1)

    sim.stop()
    await asyncio.wait_for(task, timeout=1.0)

    assert sim.state == PopulationState.STOPPED
    frames = sim.frame_count
    sim.step(10.0)
    assert sim.frame_count == frames


@pytest.mark.asyncio
async def test_cancel_propagates():
    sim = make_sim(agents=1)
    task = asyncio.ensure_future(sim.run(hz=60))
    await asyncio.sleep(0.05)

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert not sim.is_running
