"""Tests for world geometry and its ingestion."""

import dataclasses
import math

import pytest

from fireflies.perception.world_state import (
    Attractor,
    GeometryError,
    ObstacleType,
    Rect,
    WorldBounds,
    normalize_angle,
    parse_bounds,
    parse_obstacle,
    parse_obstacles,
    parse_world,
)


def test_parse_obstacle_flat_layout():
    obstacle = parse_obstacle({"id": "a", "x": 10, "y": 20, "width": 30, "height": 40})

    assert obstacle.id == "a"
    assert obstacle.rect == Rect(10, 20, 30, 40)
    assert obstacle.type is ObstacleType.FIXED


def test_parse_obstacle_nested_bounds_and_type():
    obstacle = parse_obstacle({
        "id": 7,
        "type": "draggable",
        "bounds": {"x": 0, "y": 0, "width": 5, "height": 5},
    })

    assert obstacle.id == "7"
    assert obstacle.is_draggable


@pytest.mark.parametrize(
    "data",
    [
        {"id": "a", "x": 0, "y": 0, "width": 0, "height": 10},
        {"id": "a", "x": 0, "y": 0, "width": 10, "height": -1},
        {"id": "a", "x": float("nan"), "y": 0, "width": 10, "height": 10},
        {"id": "a", "x": 0, "y": float("inf"), "width": 10, "height": 10},
        {"id": "a", "x": 0, "y": 0, "width": "wide", "height": 10},
        {"id": "a", "x": 0, "y": 0, "width": True, "height": 10},
        {"id": "a", "x": 0, "width": 10, "height": 10},
        {"x": 0, "y": 0, "width": 10, "height": 10},
        {"id": "a", "x": 0, "y": 0, "width": 10, "height": 10, "type": "floating"},
        "not an object",
    ],
)
def test_parse_obstacle_rejects_malformed_geometry(data):
    with pytest.raises(GeometryError):
        parse_obstacle(data)


def test_geometry_error_is_a_value_error():
    assert issubclass(GeometryError, ValueError)


def test_parse_obstacles_rejects_duplicate_ids():
    item = {"id": "a", "x": 0, "y": 0, "width": 10, "height": 10}
    with pytest.raises(GeometryError, match="duplicate"):
        parse_obstacles([item, dict(item)])


@pytest.mark.parametrize("items", [{"id": "a"}, None, 5, "box"])
def test_parse_obstacles_rejects_non_list(items):
    with pytest.raises(GeometryError):
        parse_obstacles(items)


@pytest.mark.parametrize("obstacles", [None, 5])
def test_parse_world_rejects_non_list_obstacles(obstacles):
    with pytest.raises(GeometryError):
        parse_world({"bounds": {"width": 100, "height": 100}, "obstacles": obstacles})


def test_parse_bounds_rejects_bool():
    with pytest.raises(GeometryError):
        parse_bounds({"width": True, "height": 100})


def test_parse_bounds_rejects_non_positive_size():
    with pytest.raises(GeometryError):
        parse_bounds({"width": 0, "height": 100})


def test_parse_world():
    world = parse_world({
        "bounds": {"width": 800, "height": 600},
        "obstacles": [{"id": "a", "x": 1, "y": 2, "width": 3, "height": 4}],
    })

    assert world.bounds == WorldBounds(800, 600)
    assert len(world.obstacles) == 1
    assert world.to_dict()["obstacles"][0]["id"] == "a"


def test_parse_world_requires_bounds():
    with pytest.raises(GeometryError):
        parse_world({"obstacles": []})


def test_world_snapshot_is_read_only(world):
    with pytest.raises(dataclasses.FrozenInstanceError):
        world.obstacles = ()
    with pytest.raises(dataclasses.FrozenInstanceError):
        world.obstacles[0].rect.x = 0


def test_rect_contains_is_inclusive_strictly_contains_is_not():
    rect = Rect(0, 0, 10, 10)

    assert rect.contains(10, 10)
    assert not rect.strictly_contains(10, 10)
    assert rect.strictly_contains(5, 5)
    assert rect.contains(-2, 5, padding=2)


def test_rect_distance_to():
    rect = Rect(0, 0, 10, 10)

    assert rect.distance_to(5, 5) == 0
    assert rect.distance_to(13, 14) == pytest.approx(5.0)
    assert rect.closest_point(-5, 5) == (0, 5)


def test_obstacle_at_uses_padding(world):
    assert world.obstacle_at(115, 200) is None
    assert world.obstacle_at(115, 200, padding=10).id == "box"


def test_bounds_differs_from():
    bounds = WorldBounds(800, 600)

    assert not bounds.differs_from(WorldBounds(850, 600), tolerance=100)
    assert bounds.differs_from(WorldBounds(800, 720), tolerance=100)


def test_normalize_angle():
    assert normalize_angle(0.5) == pytest.approx(0.5)
    assert abs(normalize_angle(3 * math.pi)) == pytest.approx(math.pi)
    assert normalize_angle(-math.pi / 2 - 2 * math.pi) == pytest.approx(-math.pi / 2)


def test_attractor_strength_fades_linearly():
    attractor = Attractor(x=0, y=0, updated_at=10.0)

    assert attractor.strength_at(10.0, decay=2.0) == pytest.approx(1.0)
    assert attractor.strength_at(11.0, decay=2.0) == pytest.approx(0.5)
    assert attractor.strength_at(13.0, decay=2.0) == 0.0
