"""
World state - Ground-truth geometry shared by all agents.

Obstacles and world bounds come from an external geometry provider
(a layout sampler, a scene file, the web API). They are validated
here on ingestion and then frozen: the simulation never mutates them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable


class GeometryError(ValueError):
    """Malformed geometry from the external provider."""


class ObstacleType(Enum):
    """Type tag supplied by the geometry provider."""

    FIXED = "fixed"
    DRAGGABLE = "draggable"


def normalize_angle(angle: float) -> float:
    """Wrap an angle to [-pi, pi]."""
    return math.atan2(math.sin(angle), math.cos(angle))


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle (top-left corner + size)."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center(self) -> tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    @property
    def area(self) -> float:
        return self.width * self.height

    def contains(self, px: float, py: float, padding: float = 0.0) -> bool:
        """Inclusive point test against the rectangle grown by `padding`."""
        return (
            self.x - padding <= px <= self.right + padding
            and self.y - padding <= py <= self.bottom + padding
        )

    def strictly_contains(self, px: float, py: float, padding: float = 0.0) -> bool:
        """Exclusive point test; a point on the padded border is outside."""
        return (
            self.x - padding < px < self.right + padding
            and self.y - padding < py < self.bottom + padding
        )

    def overlaps(self, other: Rect) -> bool:
        return (
            self.x < other.right
            and self.right > other.x
            and self.y < other.bottom
            and self.bottom > other.y
        )

    def closest_point(self, px: float, py: float) -> tuple[float, float]:
        """Closest point on (or in) the rectangle to (px, py)."""
        return (
            max(self.x, min(px, self.right)),
            max(self.y, min(py, self.bottom)),
        )

    def distance_to(self, px: float, py: float) -> float:
        """Distance from (px, py) to the rectangle, 0 when inside."""
        cx, cy = self.closest_point(px, py)
        return math.hypot(px - cx, py - cy)


@dataclass(frozen=True)
class Obstacle:
    """Read-only ground-truth obstacle."""

    id: str
    rect: Rect
    type: ObstacleType = ObstacleType.FIXED

    @property
    def is_draggable(self) -> bool:
        return self.type is ObstacleType.DRAGGABLE

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "x": self.rect.x,
            "y": self.rect.y,
            "width": self.rect.width,
            "height": self.rect.height,
        }


@dataclass(frozen=True)
class WorldBounds:
    """World extent, origin at (0, 0)."""

    width: float
    height: float

    def contains(self, px: float, py: float) -> bool:
        return 0.0 <= px <= self.width and 0.0 <= py <= self.height

    def differs_from(self, other: WorldBounds, tolerance: float) -> bool:
        """True when either dimension changed by more than `tolerance`."""
        return (
            abs(self.width - other.width) > tolerance
            or abs(self.height - other.height) > tolerance
        )


@dataclass
class Attractor:
    """
    External attractor (e.g. a cursor).

    Influence fades linearly to zero `decay` seconds after the last
    update.
    """

    x: float
    y: float
    updated_at: float
    strength: float = 1.0

    def strength_at(self, now: float, decay: float) -> float:
        elapsed = max(0.0, now - self.updated_at)
        return max(0.0, self.strength * (1.0 - elapsed / decay))


@dataclass(frozen=True)
class WorldSnapshot:
    """
    Immutable view of the world for one tick.

    Shared by every agent; nothing in the simulation writes to it.
    """

    bounds: WorldBounds
    obstacles: tuple[Obstacle, ...] = field(default_factory=tuple)

    def obstacle_at(self, px: float, py: float, padding: float = 0.0) -> Obstacle | None:
        """First obstacle whose padded rectangle strictly contains the point."""
        for obstacle in self.obstacles:
            if obstacle.rect.strictly_contains(px, py, padding):
                return obstacle
        return None

    def to_dict(self) -> dict:
        return {
            "bounds": {"width": self.bounds.width, "height": self.bounds.height},
            "obstacles": [o.to_dict() for o in self.obstacles],
        }


# =============================================================================
# Ingestion
# =============================================================================


def _finite(data: dict, key: str, context: str) -> float:
    if key not in data:
        raise GeometryError(f"{context}: missing '{key}'")
    return _check_number(data[key], f"{context}: '{key}'")


def _check_number(raw: Any, context: str) -> float:
    if isinstance(raw, bool):
        raise GeometryError(f"{context} is not a number: {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise GeometryError(f"{context} is not a number: {raw!r}") from None
    if not math.isfinite(value):
        raise GeometryError(f"{context} is not finite: {value}")
    return value


def _check_size(width: float, height: float, context: str) -> None:
    if width <= 0 or height <= 0:
        raise GeometryError(f"{context}: non-positive size {width}x{height}")


def parse_bounds(data: Any) -> WorldBounds:
    """Validate a {width, height} mapping."""
    if not isinstance(data, dict):
        raise GeometryError(f"bounds must be an object, got {type(data).__name__}")
    width = _finite(data, "width", "bounds")
    height = _finite(data, "height", "bounds")
    _check_size(width, height, "bounds")
    return WorldBounds(width=width, height=height)


def parse_obstacle(data: Any) -> Obstacle:
    """Validate one {id, x, y, width, height, type} mapping."""
    if not isinstance(data, dict):
        raise GeometryError(f"obstacle must be an object, got {type(data).__name__}")
    obstacle_id = data.get("id")
    if obstacle_id is None or str(obstacle_id) == "":
        raise GeometryError("obstacle: missing 'id'")
    context = f"obstacle {obstacle_id}"

    # Accept both flat and nested {"bounds": {...}} layouts
    geometry = data.get("bounds", data)
    if not isinstance(geometry, dict):
        raise GeometryError(f"{context}: bounds must be an object")
    x = _finite(geometry, "x", context)
    y = _finite(geometry, "y", context)
    width = _finite(geometry, "width", context)
    height = _finite(geometry, "height", context)
    _check_size(width, height, context)

    raw_type = data.get("type", ObstacleType.FIXED.value)
    try:
        obstacle_type = ObstacleType(raw_type)
    except (TypeError, ValueError):
        raise GeometryError(f"{context}: unknown type {raw_type!r}") from None

    return Obstacle(
        id=str(obstacle_id),
        rect=Rect(x, y, width, height),
        type=obstacle_type,
    )


def parse_obstacles(items: Any) -> tuple[Obstacle, ...]:
    """Validate a list of obstacles; ids must be unique."""
    if not isinstance(items, (list, tuple)):
        raise GeometryError(f"obstacles must be a list, got {type(items).__name__}")
    obstacles = tuple(parse_obstacle(item) for item in items)
    _check_unique(obstacles)
    return obstacles


def _check_unique(obstacles: tuple[Obstacle, ...]) -> None:
    seen: set[str] = set()
    for obstacle in obstacles:
        if obstacle.id in seen:
            raise GeometryError(f"duplicate obstacle id {obstacle.id!r}")
        seen.add(obstacle.id)


def parse_world(data: Any) -> WorldSnapshot:
    """Validate a {bounds, obstacles} scene mapping."""
    if not isinstance(data, dict):
        raise GeometryError("scene must be an object")
    if "bounds" not in data:
        raise GeometryError("scene: missing 'bounds'")
    return WorldSnapshot(
        bounds=parse_bounds(data["bounds"]),
        obstacles=parse_obstacles(data.get("obstacles", [])),
    )


def validate_world(bounds: WorldBounds, obstacles: Iterable[Obstacle]) -> WorldSnapshot:
    """
    Validate already-built geometry and freeze it into a snapshot.

    Same rules as parse_world: finite numbers, positive sizes, unique ids.
    """
    width = _check_number(bounds.width, "bounds: 'width'")
    height = _check_number(bounds.height, "bounds: 'height'")
    _check_size(width, height, "bounds")

    obstacles = tuple(obstacles)
    for obstacle in obstacles:
        if not isinstance(obstacle, Obstacle):
            raise GeometryError(f"expected an Obstacle, got {type(obstacle).__name__}")
        context = f"obstacle {obstacle.id}"
        r = obstacle.rect
        for name in ("x", "y", "width", "height"):
            _check_number(getattr(r, name), f"{context}: '{name}'")
        _check_size(r.width, r.height, context)
    _check_unique(obstacles)
    return WorldSnapshot(bounds=bounds, obstacles=obstacles)
