"""
Edge perception - What a firefly can see.

The world is discretised into square cells of `grid_size`. A cell is
blocked when its center is outside the world or inside any obstacle.
An edge cell is a blocked cell with at least one free 4-neighbour,
i.e. an object boundary.

Algorithm (find_edge_cells):
1. Restrict the scan to the bounding square [pos - R, pos + R]
2. Rasterise blocked cells for that window (+1 cell border) with numpy
3. Edge mask = blocked AND any free 4-neighbour
4. Keep cells inside the sensing range and the FOV cone
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable

import numpy as np

from fireflies.config import FOV_ANGLE, GRID_SIZE, SENSE_RADIUS
from .world_state import Obstacle, WorldSnapshot, normalize_angle


@dataclass(frozen=True)
class EdgeCell:
    """One boundary cell seen this tick."""

    cx: int  # Grid cell x
    cy: int  # Grid cell y
    world_x: float  # Cell center
    world_y: float

    @classmethod
    def at(cls, cx: int, cy: int, grid_size: float) -> EdgeCell:
        return cls(
            cx=cx,
            cy=cy,
            world_x=cx * grid_size + grid_size / 2,
            world_y=cy * grid_size + grid_size / 2,
        )


def is_in_field_of_view(
    pos: tuple[float, float],
    heading: float,
    target: tuple[float, float],
    fov_angle: float = FOV_ANGLE,
    radius: float = SENSE_RADIUS,
) -> bool:
    """Check if `target` is within range and inside the FOV cone."""
    dx = target[0] - pos[0]
    dy = target[1] - pos[1]
    if math.hypot(dx, dy) > radius:
        return False
    angle_diff = normalize_angle(math.atan2(dy, dx) - heading)
    return abs(angle_diff) <= fov_angle / 2


def is_cell_blocked(
    cx: int,
    cy: int,
    world: WorldSnapshot,
    grid_size: float = GRID_SIZE,
) -> bool:
    """Check if a grid cell is outside the world or covered by an obstacle."""
    wx = cx * grid_size + grid_size / 2
    wy = cy * grid_size + grid_size / 2
    if not world.bounds.contains(wx, wy):
        return True
    return any(o.rect.contains(wx, wy) for o in world.obstacles)


def _blocked_mask(
    xs: np.ndarray,
    ys: np.ndarray,
    world: WorldSnapshot,
) -> np.ndarray:
    """Blocked mask of shape (len(ys), len(xs)) for the given cell centers."""
    out_x = (xs < 0) | (xs > world.bounds.width)
    out_y = (ys < 0) | (ys > world.bounds.height)
    blocked = out_y[:, None] | out_x[None, :]

    for obstacle in world.obstacles:
        r = obstacle.rect
        in_x = (xs >= r.x) & (xs <= r.right)
        in_y = (ys >= r.y) & (ys <= r.bottom)
        if in_x.any() and in_y.any():
            blocked |= in_y[:, None] & in_x[None, :]

    return blocked


def find_edge_cells(
    pos: tuple[float, float],
    heading: float,
    world: WorldSnapshot,
    grid_size: float = GRID_SIZE,
    fov_angle: float = FOV_ANGLE,
    radius: float = SENSE_RADIUS,
) -> list[EdgeCell]:
    """
    Find all edge cells inside the firefly's field of view.

    Pure function of its inputs. Cells are returned ordered by (cx, cy).

    Args:
        pos: Firefly position (x, y).
        heading: Firefly heading in radians.
        world: Read-only world snapshot.
        grid_size: Cell size.
        fov_angle: Full cone angle.
        radius: Sensing range.

    Returns:
        List of EdgeCell.
    """
    px, py = pos
    min_cx = math.floor((px - radius) / grid_size)
    max_cx = math.ceil((px + radius) / grid_size)
    min_cy = math.floor((py - radius) / grid_size)
    max_cy = math.ceil((py + radius) / grid_size)

    # Window with a one-cell border so every scanned cell has 4 neighbours
    cxs = np.arange(min_cx - 1, max_cx + 2)
    cys = np.arange(min_cy - 1, max_cy + 2)
    xs = cxs * grid_size + grid_size / 2
    ys = cys * grid_size + grid_size / 2

    blocked = _blocked_mask(xs, ys, world)
    free = ~blocked
    inner = blocked[1:-1, 1:-1]
    has_free_neighbour = (
        free[:-2, 1:-1] | free[2:, 1:-1] | free[1:-1, :-2] | free[1:-1, 2:]
    )
    edges = inner & has_free_neighbour

    # Range and FOV cone
    dx = xs[1:-1][None, :] - px
    dy = ys[1:-1][:, None] - py
    in_range = np.hypot(dx, dy) <= radius
    angle_diff = np.arctan2(dy, dx) - heading
    angle_diff = np.arctan2(np.sin(angle_diff), np.cos(angle_diff))
    in_cone = np.abs(angle_diff) <= fov_angle / 2

    mask = edges & in_range & in_cone
    ix, iy = np.nonzero(mask.T)

    return [
        EdgeCell.at(int(cxs[i + 1]), int(cys[j + 1]), grid_size)
        for i, j in zip(ix, iy)
    ]


def obstacles_in_field_of_view(
    pos: tuple[float, float],
    heading: float,
    obstacles: Iterable[Obstacle],
    fov_angle: float = FOV_ANGLE,
    radius: float = SENSE_RADIUS,
) -> list[Obstacle]:
    """Obstacles with any corner or their center inside the FOV cone."""
    result = []
    for obstacle in obstacles:
        r = obstacle.rect
        points = [
            (r.x, r.y),
            (r.right, r.y),
            (r.x, r.bottom),
            (r.right, r.bottom),
            r.center,
        ]
        if any(is_in_field_of_view(pos, heading, p, fov_angle, radius) for p in points):
            result.append(obstacle)
    return result


def distance_to_nearest_obstacle(
    pos: tuple[float, float],
    obstacles: Iterable[Obstacle],
) -> float:
    """Distance to the closest obstacle rectangle, inf if there are none."""
    return min(
        (o.rect.distance_to(pos[0], pos[1]) for o in obstacles),
        default=math.inf,
    )
