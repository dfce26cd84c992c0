"""
Avoidance strategies.

Each strategy returns a repulsion vector (vx, vy) for a firefly
position. The navigator adds them to the wander heading and the
attractor pull.

- BeliefAvoidance: from the firefly's own memory, weighted by P(static)
- DirectAvoidance: from ground-truth obstacles (no memory needed)
- WallRepulsion: from the world edges
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable

from fireflies.config import (
    AVOIDANCE_DISTANCE,
    AVOIDANCE_STRENGTH,
    DIRECT_FIXED_WEIGHT,
    WALL_MARGIN,
    WALL_STRENGTH,
)
from fireflies.perception.world_state import Rect, WorldBounds, WorldSnapshot

if TYPE_CHECKING:
    from fireflies.perception.belief_memory import MemoryEntry


def repulsion_from_rect(
    pos: tuple[float, float],
    rect: Rect,
    distance: float,
    weight: float,
) -> tuple[float, float]:
    """
    Push away from the closest point of `rect`.

    Magnitude (distance - d) / distance * weight, zero beyond `distance`.
    Inside the rectangle (d == 0) the push comes from its center.
    """
    cx, cy = rect.closest_point(pos[0], pos[1])
    dx = pos[0] - cx
    dy = pos[1] - cy
    d = math.hypot(dx, dy)
    if d >= distance:
        return (0.0, 0.0)

    if d == 0:
        mx, my = rect.center
        dx = pos[0] - mx
        dy = pos[1] - my
        norm = math.hypot(dx, dy)
        if norm == 0:
            dx, dy, norm = 1.0, 0.0, 1.0
        return (dx / norm * weight, dy / norm * weight)

    falloff = (distance - d) / distance
    return (dx / d * falloff * weight, dy / d * falloff * weight)


class AvoidanceStrategy(ABC):
    """Base class for obstacle avoidance algorithms."""

    def __init__(
        self,
        distance: float = AVOIDANCE_DISTANCE,
        strength: float = AVOIDANCE_STRENGTH,
    ):
        self.distance = distance
        self.strength = strength

    @abstractmethod
    def compute(
        self,
        pos: tuple[float, float],
        entries: Iterable[MemoryEntry],
        world: WorldSnapshot,
    ) -> tuple[float, float]:
        """
        Compute a repulsion vector.

        Args:
            pos: Firefly position.
            entries: The firefly's memory entries.
            world: Current world snapshot.

        Returns:
            (vx, vy) avoidance vector.
        """
        ...


class BeliefAvoidance(AvoidanceStrategy):
    """
    Avoid what the firefly believes is there.

    Objects believed static repel harder; an object the firefly
    suspects is movable is given less room.
    """

    def compute(
        self,
        pos: tuple[float, float],
        entries: Iterable[MemoryEntry],
        world: WorldSnapshot,
    ) -> tuple[float, float]:
        vx = vy = 0.0
        for entry in entries:
            rx, ry = repulsion_from_rect(
                pos,
                entry.features.bounds,
                self.distance,
                entry.p_static * self.strength,
            )
            vx += rx
            vy += ry
        return (vx, vy)


class DirectAvoidance(AvoidanceStrategy):
    """Avoid ground-truth obstacles; fixed ones get extra weight."""

    def __init__(
        self,
        distance: float = AVOIDANCE_DISTANCE,
        strength: float = AVOIDANCE_STRENGTH,
        fixed_weight: float = DIRECT_FIXED_WEIGHT,
    ):
        super().__init__(distance, strength)
        self.fixed_weight = fixed_weight

    def compute(
        self,
        pos: tuple[float, float],
        entries: Iterable[MemoryEntry],
        world: WorldSnapshot,
    ) -> tuple[float, float]:
        vx = vy = 0.0
        for obstacle in world.obstacles:
            weight = self.strength
            if not obstacle.is_draggable:
                weight *= self.fixed_weight
            rx, ry = repulsion_from_rect(pos, obstacle.rect, self.distance, weight)
            vx += rx
            vy += ry
        return (vx, vy)


class WallRepulsion:
    """Linear push back from world edges inside `margin`."""

    def __init__(self, margin: float = WALL_MARGIN, strength: float = WALL_STRENGTH):
        self.margin = margin
        self.strength = strength

    def compute(self, pos: tuple[float, float], bounds: WorldBounds) -> tuple[float, float]:
        x, y = pos
        m = min(self.margin, bounds.width / 2, bounds.height / 2)
        if m <= 0:
            return (0.0, 0.0)

        vx = vy = 0.0
        if x < m:
            vx += (m - x) / m
        elif x > bounds.width - m:
            vx -= (x - (bounds.width - m)) / m
        if y < m:
            vy += (m - y) / m
        elif y > bounds.height - m:
            vy -= (y - (bounds.height - m)) / m
        return (vx * self.strength, vy * self.strength)


def make_avoidance(name: str, **kwargs) -> AvoidanceStrategy:
    """Build an avoidance strategy by name ("belief" or "direct")."""
    if name == "belief":
        return BeliefAvoidance(**kwargs)
    if name == "direct":
        return DirectAvoidance(**kwargs)
    raise ValueError(f"Unknown avoidance strategy: {name}")
