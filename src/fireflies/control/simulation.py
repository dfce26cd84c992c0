"""
Simulation - Coordinates all layers for a population of fireflies.

Two cadences:
1. Every frame: Navigator + CollisionResolver for each firefly
2. Every perception_interval seconds (wall clock, independent of the
   frame rate): CognitionPipeline for each firefly

World geometry is ingested through set_world(); whether the population
is regenerated is decided by the StateMachine.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections import deque
from typing import Iterable

import numpy as np

from fireflies.config import (
    EDGE_CLEARANCE,
    FRAME_HZ,
    MAX_FRAME_DT,
    SPAWN_ATTEMPTS,
    SPAWN_CLEARANCE,
    SPAWN_JITTER,
)
from fireflies.decision import (
    CollisionEvent,
    CollisionResolver,
    Navigator,
    PopulationState,
    StateMachine,
)
from fireflies.params import Parameters
from fireflies.perception.belief_memory import BeliefMemory
from fireflies.perception.edges import distance_to_nearest_obstacle
from fireflies.perception.pipeline import CognitionPipeline
from fireflies.perception.prediction import PredictionError
from fireflies.perception.world_state import (
    Attractor,
    GeometryError,
    Obstacle,
    WorldBounds,
    WorldSnapshot,
    parse_world,
    validate_world,
)
from .agent import Agent

logger = logging.getLogger(__name__)


def spawn_positions(
    bounds: WorldBounds,
    obstacles: Iterable[Obstacle],
    count: int,
    rng: np.random.Generator,
    clearance: float = SPAWN_CLEARANCE,
    attempts: int = SPAWN_ATTEMPTS,
) -> list[tuple[float, float]]:
    """
    Collision-free start positions on a jittered grid.

    Each firefly gets one grid slot; it is placed at the slot center
    plus a small seeded jitter. Slots blocked by obstacles retry with
    growing jitter, then fall back to a scan of the whole world.
    """
    obstacles = tuple(obstacles)
    if count <= 0:
        return []

    cols = math.ceil(math.sqrt(count))
    rows = math.ceil(count / cols)
    slot_w = bounds.width / cols
    slot_h = bounds.height / rows

    def is_free(x: float, y: float) -> bool:
        if not (EDGE_CLEARANCE <= x <= bounds.width - EDGE_CLEARANCE):
            return False
        if not (EDGE_CLEARANCE <= y <= bounds.height - EDGE_CLEARANCE):
            return False
        return distance_to_nearest_obstacle((x, y), obstacles) >= clearance

    positions = []
    for i in range(count):
        cx = (i % cols + 0.5) * slot_w
        cy = (i // cols + 0.5) * slot_h

        placed = None
        for attempt in range(attempts):
            spread = SPAWN_JITTER + (1.0 - SPAWN_JITTER) * attempt / attempts
            x = cx + rng.uniform(-0.5, 0.5) * slot_w * spread
            y = cy + rng.uniform(-0.5, 0.5) * slot_h * spread
            if is_free(x, y):
                placed = (float(x), float(y))
                break

        if placed is None:
            placed = _scan_for_free(bounds, is_free, positions) or (
                bounds.width / 2,
                bounds.height / 2,
            )
            logger.warning(
                f"No free spot in slot {i}, placed at ({placed[0]:.0f}, {placed[1]:.0f})"
            )
        positions.append(placed)

    return positions


def _scan_for_free(bounds, is_free, taken) -> tuple[float, float] | None:
    step = SPAWN_CLEARANCE
    for y in np.arange(EDGE_CLEARANCE, bounds.height - EDGE_CLEARANCE + 1e-9, step):
        for x in np.arange(EDGE_CLEARANCE, bounds.width - EDGE_CLEARANCE + 1e-9, step):
            if is_free(x, y) and all(math.hypot(x - tx, y - ty) >= step for tx, ty in taken):
                return (float(x), float(y))
    return None


class Simulation:
    """
    Population of fireflies sharing one read-only world.

    Coordinates:
    - Perception layer (CognitionPipeline)
    - Decision layer (Navigator, CollisionResolver, StateMachine)

    Usage:
        sim = Simulation(seed=7)
        sim.set_world(obstacles, WorldBounds(800, 600))
        sim.step(now)            # drive it yourself, or:
        asyncio.run(sim.run())   # run at FRAME_HZ
    """

    def __init__(
        self,
        params: Parameters | None = None,
        seed: int = 0,
        pipeline: CognitionPipeline | None = None,
        navigator: Navigator | None = None,
    ):
        # Runtime parameters (shared, tunable via web)
        self.params = params or Parameters()
        self.seed = seed

        self.pipeline = pipeline or CognitionPipeline(self.params)
        self.navigator = navigator or Navigator(self.params)
        self.resolver = CollisionResolver(self.pipeline, self.params)
        self.state_machine = StateMachine()

        self.world: WorldSnapshot | None = None
        self.agents: list[Agent] = []
        self.attractor: Attractor | None = None
        self.collision_events: deque[CollisionEvent] = deque(maxlen=100)

        # Timing
        self.now = 0.0
        self._last_frame: float | None = None
        self._last_perception: float | None = None

        # Loop state
        self._running = False
        self.frame_count = 0
        self.perception_count = 0

    @property
    def state(self) -> PopulationState:
        return self.state_machine.state

    @property
    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Inputs
    # -------------------------------------------------------------------------

    def set_world(self, obstacles: Iterable[Obstacle], bounds: WorldBounds) -> PopulationState:
        """
        Ingest validated geometry from the external provider.

        Agent state survives unless the bounds changed beyond the
        re-seed tolerance (or the desired agent count changed).

        Raises GeometryError, leaving the current world in place, if the
        geometry is not finite and positive or ids repeat.
        """
        self.world = validate_world(bounds, obstacles)
        return self.state_machine.world_changed(bounds, self.params.agent_count)

    def load_world(self, data: dict) -> PopulationState:
        """Validate a raw {bounds, obstacles} mapping and ingest it."""
        world = parse_world(data)
        return self.set_world(world.obstacles, world.bounds)

    def set_agent_count(self, count: int) -> PopulationState:
        self.params.update(agent_count=count)
        if self.world is None:
            return self.state
        return self.state_machine.world_changed(self.world.bounds, self.params.agent_count)

    def set_attractor(self, x: float, y: float, now: float | None = None, strength: float = 1.0):
        for name, value in (("x", x), ("y", y), ("strength", strength)):
            if isinstance(value, bool) or not math.isfinite(value):
                raise GeometryError(f"attractor: '{name}' is not finite: {value!r}")
        self.attractor = Attractor(
            x=x,
            y=y,
            updated_at=self.now if now is None else now,
            strength=strength,
        )

    def clear_attractor(self):
        self.attractor = None

    # -------------------------------------------------------------------------
    # Ticking
    # -------------------------------------------------------------------------

    def step(self, now: float) -> None:
        """Advance the simulation to time `now` (seconds)."""
        if self.world is None or self.state == PopulationState.STOPPED:
            return

        count_changed = self.params.agent_count != self.state_machine.seeded_count
        if count_changed and self.state_machine.is_running:
            self.state_machine.world_changed(self.world.bounds, self.params.agent_count)
        if self.state_machine.needs_seed:
            self._seed()

        dt = 0.0 if self._last_frame is None else now - self._last_frame
        dt = min(max(dt, 0.0), MAX_FRAME_DT)
        self._last_frame = now
        self.now = now

        world = self.world

        due = (
            self._last_perception is None
            or now - self._last_perception >= self.params.perception_interval
        )
        if due:
            perception_dt = 0.0 if self._last_perception is None else now - self._last_perception
            for agent in self.agents:
                self.pipeline.tick(agent, world, now, perception_dt)
                agent.last_perception = now
            self._last_perception = now
            self.perception_count += 1

        if dt > 0:
            for agent in self.agents:
                next_pos = self.navigator.step(agent, world, now, dt, self.attractor)
                event = self.resolver.resolve(agent, next_pos, world, now)
                if event is not None:
                    self.collision_events.append(event)

        self.frame_count += 1

    def _seed(self) -> None:
        """Regenerate the population at deterministic start positions."""
        bounds = self.world.bounds
        count = self.params.agent_count
        generation = self.state_machine.reseeds
        rng = np.random.default_rng([self.seed, generation])

        positions = spawn_positions(bounds, self.world.obstacles, count, rng)
        self.agents = []
        for i, (x, y) in enumerate(positions):
            agent_id = f"ff-{i}"
            self.agents.append(Agent(
                id=agent_id,
                x=x,
                y=y,
                heading=float(rng.uniform(-math.pi, math.pi)),
                speed=self.params.base_speed,
                phase=float(rng.uniform(0, 2 * math.pi)),
                rng=np.random.default_rng([self.seed, generation, i]),
                memory=BeliefMemory(agent_id=agent_id),
            ))

        self._last_perception = None
        self.collision_events.clear()
        self.state_machine.seeded(bounds, len(self.agents))

    # -------------------------------------------------------------------------
    # Outputs
    # -------------------------------------------------------------------------

    def get_agent(self, agent_id: str) -> Agent | None:
        for agent in self.agents:
            if agent.id == agent_id:
                return agent
        return None

    def poses(self) -> list[dict]:
        return [agent.pose(self.now) for agent in self.agents]

    def active_errors(self, now: float | None = None) -> list[PredictionError]:
        """Prediction errors still on display, across all fireflies."""
        now = self.now if now is None else now
        errors = []
        for agent in self.agents:
            errors.extend(agent.prediction.active(now))
        return sorted(errors, key=lambda e: e.timestamp)

    def memory_snapshot(self, agent_id: str | None = None) -> dict[str, list[dict]]:
        """Read-only memory dump, per firefly."""
        return {
            agent.id: agent.memory.snapshot()
            for agent in self.agents
            if agent_id is None or agent.id == agent_id
        }

    def status(self) -> dict:
        return {
            "state": self.state.name,
            "running": self._running,
            "time": round(self.now, 3),
            "frames": self.frame_count,
            "perception_ticks": self.perception_count,
            "agents": len(self.agents),
            "obstacles": len(self.world.obstacles) if self.world else 0,
            "bounds": (
                {"width": self.world.bounds.width, "height": self.world.bounds.height}
                if self.world
                else None
            ),
            "reseeds": self.state_machine.reseeds,
            "active_errors": len(self.active_errors()),
        }

    # -------------------------------------------------------------------------
    # Loop
    # -------------------------------------------------------------------------

    async def run(self, hz: int = FRAME_HZ, duration: float | None = None):
        """Run the frame loop until stopped, cancelled or `duration` elapses."""
        logger.info(f"Simulation starting at {hz} Hz")
        period = 1.0 / hz
        loop = asyncio.get_running_loop()
        start = loop.time()
        self._running = True
        loop_count = 0

        try:
            while self._running:
                tick_start = loop.time()
                now = tick_start - start

                self.step(now)
                loop_count += 1

                if loop_count % (hz * 5) == 0:  # Every 5 seconds
                    self._log_stats()

                if duration is not None and now >= duration:
                    logger.info(f"Duration {duration:.1f}s reached")
                    break

                # Maintain loop rate
                elapsed = loop.time() - tick_start
                await asyncio.sleep(max(0, period - elapsed))

        except asyncio.CancelledError:
            logger.info("Simulation cancelled")
            raise
        except Exception as e:
            logger.error(f"Simulation error: {e}", exc_info=True)
            raise
        finally:
            self._running = False
            logger.info(f"Simulation stopped after {self.frame_count} frames")

    def stop(self):
        """Stop scheduling ticks."""
        logger.info("Stop requested")
        self._running = False
        self.state_machine.stop()

    def _log_stats(self):
        """Log periodic statistics."""
        memories = sum(len(a.memory) for a in self.agents)
        collisions = sum(a.collisions for a in self.agents)
        unexpected = sum(a.unexpected_collisions for a in self.agents)
        logger.info(
            f"Frame {self.frame_count}: "
            f"State={self.state.name}, "
            f"Agents={len(self.agents)}, "
            f"Memories={memories}, "
            f"Errors={len(self.active_errors())}, "
            f"Collisions={collisions} ({unexpected} unexpected)"
        )
