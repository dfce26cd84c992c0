"""
Collision resolution - Hard contact with ground truth.

Beliefs can be wrong, so the proposed position from the navigator is
checked against the real obstacles. On contact:
1. Expected hit? (a confident memory entry covers the point)
2. Unexpected: POSITIVE prediction error + forceful belief update
3. Escape along the first clear heading of a fixed ring, speed boost,
   and hold that heading for a while

A collision the firefly already believed in produces no surprise.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

from fireflies.config import (
    AVOID_SPEED_FACTOR,
    COLLISION_PADDING,
    ESCAPE_CLEARANCE,
    ESCAPE_DIRECTIONS,
    ESCAPE_HOLD,
    ESCAPE_LOOKAHEAD,
    ESCAPE_STEP,
)
from fireflies.params import Parameters
from fireflies.perception.prediction import PredictionError, PredictionKind
from fireflies.perception.world_state import Obstacle, WorldSnapshot, normalize_angle

if TYPE_CHECKING:
    from fireflies.control.agent import Agent
    from fireflies.perception.pipeline import CognitionPipeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollisionEvent:
    """One hard contact between a firefly and a real obstacle."""

    agent_id: str
    obstacle_id: str
    contact: tuple[float, float]
    unexpected: bool
    escape_heading: float
    timestamp: float
    entry_id: str | None = None  # Memory entry touched by the belief update


def push_out(
    x: float,
    y: float,
    obstacle: Obstacle,
    padding: float,
) -> tuple[float, float]:
    """Move a point out of a padded obstacle along the shallowest axis."""
    r = obstacle.rect
    left = r.x - padding
    right = r.right + padding
    top = r.y - padding
    bottom = r.bottom + padding

    dist_left = x - left
    dist_right = right - x
    dist_top = y - top
    dist_bottom = bottom - y
    nearest = min(dist_left, dist_right, dist_top, dist_bottom)

    if nearest == dist_left:
        return left, y
    if nearest == dist_right:
        return right, y
    if nearest == dist_top:
        return x, top
    return x, bottom


class CollisionResolver:
    """
    Commits proposed positions, resolving hard collisions.

    Usage:
        resolver = CollisionResolver(pipeline, params)

        # Each frame, after Navigator.step():
        event = resolver.resolve(agent, next_pos, world, now)
    """

    def __init__(
        self,
        pipeline: CognitionPipeline | None = None,
        params: Parameters | None = None,
        padding: float = COLLISION_PADDING,
    ):
        self.pipeline = pipeline
        self.params = params or Parameters()
        self.padding = padding
        self._log_count = 0

    def is_clear(self, x: float, y: float, world: WorldSnapshot, padding: float) -> bool:
        return world.bounds.contains(x, y) and world.obstacle_at(x, y, padding) is None

    def find_escape(
        self,
        agent: Agent,
        world: WorldSnapshot,
    ) -> tuple[float, float, float]:
        """
        First clear direction of the escape ring.

        A direction is clear when both the point ahead and the
        escape step land outside every padded obstacle. Falls back to
        reversing the current heading.

        Returns:
            (escape heading, next x, next y)
        """
        for dx, dy in ESCAPE_DIRECTIONS:
            norm = math.hypot(dx, dy)
            ux, uy = dx / norm, dy / norm
            ahead_x = agent.x + ux * ESCAPE_LOOKAHEAD
            ahead_y = agent.y + uy * ESCAPE_LOOKAHEAD
            step_x = agent.x + ux * ESCAPE_STEP
            step_y = agent.y + uy * ESCAPE_STEP
            if self.is_clear(ahead_x, ahead_y, world, ESCAPE_CLEARANCE) and self.is_clear(
                step_x, step_y, world, self.padding
            ):
                return math.atan2(uy, ux), step_x, step_y

        heading = normalize_angle(agent.heading + math.pi)
        back_x = agent.x + math.cos(heading) * ESCAPE_STEP
        back_y = agent.y + math.sin(heading) * ESCAPE_STEP
        if self.is_clear(back_x, back_y, world, self.padding):
            return heading, back_x, back_y
        return heading, agent.x, agent.y

    def resolve(
        self,
        agent: Agent,
        next_pos: tuple[float, float],
        world: WorldSnapshot,
        now: float,
    ) -> CollisionEvent | None:
        """
        Move `agent` to `next_pos`, or resolve the collision it causes.

        Returns:
            CollisionEvent on contact, None otherwise.
        """
        nx, ny = next_pos
        obstacle = world.obstacle_at(nx, ny, self.padding)
        if obstacle is None:
            agent.x, agent.y = nx, ny
            return None

        contact = obstacle.rect.closest_point(nx, ny)
        unexpected = agent.memory.expects_obstacle_at(nx, ny, self.padding) is None

        entry_id = None
        if unexpected:
            entry_id = self._surprise(agent, contact, world, now)

        # Obstacle moved onto the firefly: get out of it first
        inside = world.obstacle_at(agent.x, agent.y, self.padding)
        if inside is not None:
            agent.x, agent.y = push_out(agent.x, agent.y, inside, self.padding)

        heading, agent.x, agent.y = self.find_escape(agent, world)
        agent.heading = heading
        agent.avoid_heading = heading
        agent.avoid_until = now + ESCAPE_HOLD
        agent.speed = max(self.params.base_speed * AVOID_SPEED_FACTOR, agent.speed)

        agent.collisions += 1
        if unexpected:
            agent.unexpected_collisions += 1

        self._log_count += 1
        if self._log_count % 10 == 1:
            logger.info(
                f"{agent.id}: {'unexpected' if unexpected else 'expected'} collision "
                f"with {obstacle.id} at ({contact[0]:.0f}, {contact[1]:.0f}), "
                f"escape {math.degrees(heading):.0f} deg"
            )

        return CollisionEvent(
            agent_id=agent.id,
            obstacle_id=obstacle.id,
            contact=contact,
            unexpected=unexpected,
            escape_heading=heading,
            timestamp=now,
            entry_id=entry_id,
        )

    def _surprise(
        self,
        agent: Agent,
        contact: tuple[float, float],
        world: WorldSnapshot,
        now: float,
    ) -> str | None:
        """POSITIVE error plus the forceful belief update."""
        entry = None
        if self.pipeline is not None:
            entry = self.pipeline.touch(agent, contact, world, now)

        error = PredictionError(
            kind=PredictionKind.POSITIVE,
            entry_id=entry.id if entry is not None else "collision",
            magnitude=1.0,
            confidence=1.0,
            timestamp=now,
            expected_position=None,
            agent_id=agent.id,
        )
        agent.prediction.record([error], agent.prediction.confirmed, now)
        return entry.id if entry is not None else None
