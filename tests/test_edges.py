"""Tests for the field-of-view edge scan."""

import math

import pytest

from conftest import make_world
from fireflies.perception.edges import (
    EdgeCell,
    distance_to_nearest_obstacle,
    find_edge_cells,
    is_cell_blocked,
    is_in_field_of_view,
    obstacles_in_field_of_view,
)
from fireflies.perception.world_state import Rect


def brute_force_edges(pos, heading, world, grid, fov, radius):
    """Cell-by-cell reference scan."""
    found = []
    for cx in range(math.floor((pos[0] - radius) / grid), math.ceil((pos[0] + radius) / grid) + 1):
        for cy in range(math.floor((pos[1] - radius) / grid), math.ceil((pos[1] + radius) / grid) + 1):
            cell = EdgeCell.at(cx, cy, grid)
            if not is_in_field_of_view(pos, heading, (cell.world_x, cell.world_y), fov, radius):
                continue
            if not is_cell_blocked(cx, cy, world, grid):
                continue
            neighbours = [(cx + 1, cy), (cx - 1, cy), (cx, cy + 1), (cx, cy - 1)]
            if any(not is_cell_blocked(nx, ny, world, grid) for nx, ny in neighbours):
                found.append(cell)
    return sorted(found, key=lambda c: (c.cx, c.cy))


def test_is_in_field_of_view():
    pos = (0.0, 0.0)
    fov = math.pi / 2

    assert is_in_field_of_view(pos, 0.0, (50, 0), fov, 100)
    assert not is_in_field_of_view(pos, 0.0, (-50, 0), fov, 100)
    assert not is_in_field_of_view(pos, 0.0, (101, 0), fov, 100)
    assert is_in_field_of_view(pos, 0.0, (50 * math.cos(math.radians(44)), 50 * math.sin(math.radians(44))), fov, 100)
    assert not is_in_field_of_view(pos, 0.0, (50 * math.cos(math.radians(46)), 50 * math.sin(math.radians(46))), fov, 100)


def test_field_of_view_wraps_around_pi():
    assert is_in_field_of_view((0, 0), math.pi - 0.1, (-50, -5), math.pi / 2, 100)


def test_is_cell_blocked(world):
    assert is_cell_blocked(-1, 10, world, 8)  # Outside the world
    assert is_cell_blocked(16, 25, world, 8)  # Inside the box
    assert not is_cell_blocked(5, 5, world, 8)


def test_find_edge_cells_matches_cell_by_cell_scan(world):
    edges = find_edge_cells((60, 200), 0.0, world, 8, math.pi * 0.7, 120)

    assert edges
    assert edges == brute_force_edges((60, 200), 0.0, world, 8, math.pi * 0.7, 120)


def test_find_edge_cells_outlines_the_box(world):
    edges = find_edge_cells((60, 200), 0.0, world, 8, math.pi * 0.7, 120)

    for cell in edges:
        assert world.obstacles[0].rect.contains(cell.world_x, cell.world_y)
    xs = {c.world_x for c in edges}
    assert min(xs) == 124 and max(xs) == 156


def test_find_edge_cells_is_deterministic(world):
    first = find_edge_cells((60, 200), 0.3, world)
    second = find_edge_cells((60, 200), 0.3, world)

    assert first == second


def test_find_edge_cells_respects_heading(world):
    # Facing away from the box, only the left world edge is in view
    edges = find_edge_cells((60, 200), math.pi, world, 8, math.pi * 0.7, 120)

    assert not any(world.obstacles[0].rect.contains(c.world_x, c.world_y) for c in edges)
    assert {c.cx for c in edges} == {-1}


def test_find_edge_cells_sees_world_bounds():
    world = make_world(bounds=(400, 400))

    edges = find_edge_cells((30, 200), math.pi, world, 8, math.pi * 0.7, 120)

    assert edges
    assert {c.cx for c in edges} == {-1}


def test_find_edge_cells_in_open_space(empty_world):
    assert find_edge_cells((200, 200), 0.0, empty_world) == []


def test_find_edge_cells_multiple_obstacles():
    world = make_world(Rect(100, 100, 30, 30), Rect(100, 160, 30, 50), bounds=(500, 500))
    args = ((40, 150), 0.2, world, 8, math.pi * 0.7, 120)

    assert find_edge_cells(*args) == brute_force_edges(*args)


def test_obstacles_in_field_of_view(world):
    assert [o.id for o in obstacles_in_field_of_view((60, 200), 0.0, world.obstacles)] == ["box"]
    assert obstacles_in_field_of_view((60, 200), math.pi, world.obstacles) == []


def test_distance_to_nearest_obstacle(world, empty_world):
    assert distance_to_nearest_obstacle((100, 200), world.obstacles) == pytest.approx(20)
    assert distance_to_nearest_obstacle((100, 200), empty_world.obstacles) == math.inf
