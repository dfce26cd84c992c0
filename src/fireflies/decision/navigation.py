"""
Navigation - Frame-rate steering for one firefly.

Each frame:
1. Desired direction = unit(heading + wander)
   + belief avoidance + wall repulsion + attractor pull
2. Turn toward it, at most turn_rate * dt
3. Speed: boosted while avoiding, else base speed with a slow
   oscillation; smoothed and clamped to max speed
4. Integrate and keep the firefly inside the world

Hard collisions against ground truth are handled by CollisionResolver
on the proposed position.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from fireflies.config import (
    ACCELERATION,
    ATTRACTION_STRENGTH,
    ATTRACTOR_DECAY,
    ATTRACTOR_MIN_DISTANCE,
    ATTRACTOR_RANGE,
    AVOID_ENGAGE_THRESHOLD,
    AVOID_SPEED_FACTOR,
    EDGE_CLEARANCE,
    SPEED_OSCILLATION,
    SPEED_OSCILLATION_PERIOD,
)
from fireflies.params import Parameters
from fireflies.perception.world_state import Attractor, WorldBounds, WorldSnapshot, normalize_angle
from fireflies.strategies import (
    AvoidanceStrategy,
    SmoothWander,
    WallRepulsion,
    WanderStrategy,
    make_avoidance,
)

if TYPE_CHECKING:
    from fireflies.control.agent import Agent

logger = logging.getLogger(__name__)


def turn_toward(heading: float, target: float, max_turn: float) -> float:
    """Rotate `heading` toward `target` by at most `max_turn` radians."""
    diff = normalize_angle(target - heading)
    if abs(diff) > max_turn:
        diff = math.copysign(max_turn, diff)
    return normalize_angle(heading + diff)


def attractor_pull(
    pos: tuple[float, float],
    attractor: Attractor | None,
    now: float,
    strength: float = ATTRACTION_STRENGTH,
    max_range: float = ATTRACTOR_RANGE,
    min_distance: float = ATTRACTOR_MIN_DISTANCE,
    decay: float = ATTRACTOR_DECAY,
) -> tuple[float, float]:
    """
    Pull toward an external attractor.

    Stronger when closer, zero outside [min_distance, max_range], and
    fading linearly to zero `decay` seconds after the last update.
    """
    if attractor is None:
        return (0.0, 0.0)

    fade = attractor.strength_at(now, decay)
    if fade <= 0:
        return (0.0, 0.0)

    dx = attractor.x - pos[0]
    dy = attractor.y - pos[1]
    d = math.hypot(dx, dy)
    if d <= min_distance or d >= max_range:
        return (0.0, 0.0)

    magnitude = strength * fade * (1.0 - d / max_range)
    return (dx / d * magnitude, dy / d * magnitude)


def keep_inside(
    x: float,
    y: float,
    heading: float,
    bounds: WorldBounds,
    clearance: float = EDGE_CLEARANCE,
) -> tuple[float, float, float]:
    """Clamp a position inside the world, reflecting the heading on contact."""
    lo_x, hi_x = clearance, bounds.width - clearance
    lo_y, hi_y = clearance, bounds.height - clearance
    if lo_x > hi_x:
        lo_x = hi_x = bounds.width / 2
    if lo_y > hi_y:
        lo_y = hi_y = bounds.height / 2

    if x < lo_x or x > hi_x:
        x = min(max(x, lo_x), hi_x)
        heading = normalize_angle(math.pi - heading)
    if y < lo_y or y > hi_y:
        y = min(max(y, lo_y), hi_y)
        heading = normalize_angle(-heading)
    return x, y, heading


class Navigator:
    """
    Steers fireflies from their beliefs.

    Usage:
        navigator = Navigator(params)

        # Each frame, for each firefly:
        next_pos = navigator.step(agent, world, now, dt, attractor)
        resolver.resolve(agent, next_pos, world, now)

        # Steering from ground truth instead of beliefs:
        params.update(avoidance="direct")

        # Or with a fixed strategy:
        navigator = Navigator(params, avoidance=DirectAvoidance(fixed_weight=2.0))
    """

    def __init__(
        self,
        params: Parameters | None = None,
        avoidance: AvoidanceStrategy | None = None,
        wander: WanderStrategy | None = None,
        walls: WallRepulsion | None = None,
    ):
        self.params = params or Parameters()
        self._fixed_avoidance = avoidance is not None
        self._avoidance = avoidance
        self._avoidance_name: str | None = None
        self.wander = wander or SmoothWander()
        self.walls = walls or WallRepulsion()

    @property
    def avoidance(self) -> AvoidanceStrategy:
        """Current strategy, rebuilt when `params.avoidance` changes."""
        if not self._fixed_avoidance and self.params.avoidance != self._avoidance_name:
            self._avoidance = make_avoidance(self.params.avoidance)
            self._avoidance_name = self.params.avoidance
            logger.info(f"Avoidance: {self._avoidance.__class__.__name__}")
        return self._avoidance

    def _sync_params(self) -> None:
        self.avoidance.distance = self.params.avoidance_distance
        self.avoidance.strength = self.params.avoidance_strength
        if isinstance(self.wander, SmoothWander):
            self.wander.strength = self.params.wander_strength

    def steering(
        self,
        agent: Agent,
        world: WorldSnapshot,
        now: float,
        dt: float,
        attractor: Attractor | None = None,
    ) -> tuple[tuple[float, float], tuple[float, float]]:
        """
        Blend steering inputs.

        Wander is a turn rate, so it is scaled by `dt`.

        Returns:
            (desired vector, avoidance vector)
        """
        pos = (agent.x, agent.y)
        wander_heading = agent.heading + self.wander.offset(agent.phase, now, agent.rng) * dt
        avoid = self.avoidance.compute(pos, agent.memory.entries, world)
        wall = self.walls.compute(pos, world.bounds)
        pull = attractor_pull(pos, attractor, now)

        desired = (
            math.cos(wander_heading) + avoid[0] + wall[0] + pull[0],
            math.sin(wander_heading) + avoid[1] + wall[1] + pull[1],
        )
        return desired, avoid

    def target_speed(self, agent: Agent, now: float, avoiding: bool) -> float:
        base = self.params.base_speed
        if avoiding:
            return base * AVOID_SPEED_FACTOR
        wave = math.sin(2 * math.pi * now / SPEED_OSCILLATION_PERIOD + agent.phase)
        return base * (1.0 + SPEED_OSCILLATION * wave)

    def step(
        self,
        agent: Agent,
        world: WorldSnapshot,
        now: float,
        dt: float,
        attractor: Attractor | None = None,
    ) -> tuple[float, float]:
        """
        Update heading and speed, and propose the next position.

        The position is not committed; CollisionResolver does that.
        """
        self._sync_params()

        desired, avoid = self.steering(agent, world, now, dt, attractor)
        avoid_magnitude = math.hypot(*avoid)
        agent.is_avoiding = avoid_magnitude > AVOID_ENGAGE_THRESHOLD

        if agent.is_escaping(now):
            target_heading = agent.avoid_heading
        elif desired[0] == 0 and desired[1] == 0:
            target_heading = agent.heading
        else:
            target_heading = math.atan2(desired[1], desired[0])
        agent.target_heading = target_heading
        agent.heading = turn_toward(agent.heading, target_heading, self.params.turn_rate * dt)

        target = self.target_speed(agent, now, agent.is_avoiding or agent.is_escaping(now))
        agent.speed += (target - agent.speed) * min(1.0, ACCELERATION * dt)
        agent.speed = max(0.0, min(agent.speed, self.params.max_speed))

        nx = agent.x + math.cos(agent.heading) * agent.speed * dt
        ny = agent.y + math.sin(agent.heading) * agent.speed * dt
        nx, ny, agent.heading = keep_inside(nx, ny, agent.heading, world.bounds)
        return nx, ny
