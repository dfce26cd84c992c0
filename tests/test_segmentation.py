"""Tests for edge-cell segmentation."""

import math

import pytest

from conftest import make_features, make_world
from fireflies.perception.edges import EdgeCell, find_edge_cells
from fireflies.perception.world_state import Rect
from fireflies.strategies.segmentation import (
    FloodFillSegmentation,
    OpenCVSegmentation,
    extract_features,
    feature_similarity,
    find_clusters,
    make_segmentation,
    merge_close_objects,
)


def cells(*coords, grid=8):
    return [EdgeCell.at(cx, cy, grid) for cx, cy in coords]


def as_sets(clusters):
    return {frozenset((c.cx, c.cy) for c in cluster) for cluster in clusters}


def assert_partition(clusters, edges):
    seen = []
    for cluster in clusters:
        seen.extend((c.cx, c.cy) for c in cluster)
    assert len(seen) == len(set(seen))  # Pairwise disjoint
    assert set(seen) == {(c.cx, c.cy) for c in edges}


def scene_edges():
    world = make_world(
        Rect(100, 100, 30, 30),
        Rect(100, 170, 40, 20),
        Rect(180, 120, 16, 64),
        bounds=(300, 300),
    )
    return find_edge_cells((40, 150), 0.1, world, 8, math.pi * 0.9, 160)


def test_find_clusters_partitions_input():
    edges = scene_edges()
    clusters = find_clusters(edges)

    assert len(clusters) >= 2
    assert_partition(clusters, edges)


def test_find_clusters_uses_8_connectivity():
    clusters = find_clusters(cells((0, 0), (1, 1), (2, 2), (10, 10), (11, 10)))

    assert as_sets(clusters) == {
        frozenset({(0, 0), (1, 1), (2, 2)}),
        frozenset({(10, 10), (11, 10)}),
    }


def test_find_clusters_keeps_single_cells():
    edges = cells((0, 0), (5, 5))

    assert_partition(find_clusters(edges), edges)


def test_opencv_matches_flood_fill():
    edges = scene_edges()

    flood = FloodFillSegmentation().clusters(edges)
    opencv = OpenCVSegmentation().clusters(edges)

    assert as_sets(flood) == as_sets(opencv)
    assert_partition(opencv, edges)


def test_extract_features():
    features = extract_features(cells((0, 0), (1, 0)), grid_size=8)

    assert features.id == "obj_0_0"
    assert features.centroid == (8.0, 4.0)
    assert features.bounds == Rect(0, 0, 16, 8)
    assert features.cell_count == 2
    assert features.aspect_ratio == pytest.approx(2.0)


def test_extract_features_rejects_noise():
    assert extract_features(cells((0, 0)), grid_size=8) is None
    assert extract_features(cells((0, 0), (1, 0)), grid_size=8, min_cells=3) is None


def test_extract_features_id_ignores_cell_order():
    a = extract_features(cells((3, 4), (2, 4), (2, 5)), grid_size=8)
    b = extract_features(cells((2, 5), (3, 4), (2, 4)), grid_size=8)

    assert a == b


def test_merge_close_objects():
    left = extract_features(cells((0, 0), (1, 0)), grid_size=8)
    right = extract_features(cells((3, 0), (4, 0)), grid_size=8)
    far = extract_features(cells((20, 20), (21, 20)), grid_size=8)

    merged = merge_close_objects([left, right, far], threshold=30, grid_size=8)

    assert len(merged) == 2
    assert merged[0].cell_count == 4
    assert merged[1] == far


def test_feature_similarity():
    a = make_features(100, 100)

    assert feature_similarity(a, a, 80) == pytest.approx(1.0)
    assert feature_similarity(a, make_features(140, 100), 80) == pytest.approx(0.75)
    assert feature_similarity(a, make_features(300, 100), 80) == pytest.approx(0.5)


def test_segment_detects_the_box(world):
    edges = find_edge_cells((60, 200), 0.0, world, 8, math.pi * 0.7, 120)

    objects = FloodFillSegmentation().segment(edges)

    assert len(objects) == 1
    box = objects[0].bounds
    assert abs(box.x - 120) <= 8 and abs(box.y - 180) <= 8
    assert abs(box.width - 40) <= 8 and abs(box.height - 40) <= 8
    assert objects[0].centroid == pytest.approx((140, 200))


def test_segment_is_idempotent(world, pipeline):
    first = pipeline.detect((60, 200), 0.0, world)
    second = pipeline.detect((60, 200), 0.0, world)

    assert first == second
    assert first


def test_segment_empty():
    assert FloodFillSegmentation().segment([]) == []
    assert OpenCVSegmentation().segment([]) == []


def test_make_segmentation():
    assert isinstance(make_segmentation("opencv"), OpenCVSegmentation)
    assert isinstance(make_segmentation("floodfill", grid_size=4), FloodFillSegmentation)
    with pytest.raises(ValueError):
        make_segmentation("kmeans")
