"""
Segmentation strategies - Group edge cells into candidate objects.

Two approaches:
- FloodFillSegmentation: iterative 8-connected flood fill (default)
- OpenCVSegmentation: rasterise, cv2.connectedComponents (same clusters)

Both partition their input exactly: every edge cell lands in exactly
one cluster. Noise rejection and merging happen afterwards, on features.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

import cv2
import numpy as np

from fireflies.config import (
    GRID_SIZE,
    MEMORY_MATCH_THRESHOLD,
    MERGE_DISTANCE,
    MIN_CLUSTER_CELLS,
)
from fireflies.perception.edges import EdgeCell
from fireflies.perception.world_state import Rect

NEIGHBOURS_8 = (
    (-1, 0), (1, 0), (0, -1), (0, 1),
    (-1, -1), (1, -1), (-1, 1), (1, 1),
)


@dataclass(frozen=True)
class ObjectFeatures:
    """One candidate object detected this tick."""

    id: str
    centroid: tuple[float, float]
    bounds: Rect
    cell_count: int
    aspect_ratio: float
    cells: tuple[EdgeCell, ...]

    def distance_to(self, other: ObjectFeatures) -> float:
        return math.hypot(
            self.centroid[0] - other.centroid[0],
            self.centroid[1] - other.centroid[1],
        )


def find_clusters(edges: list[EdgeCell]) -> list[list[EdgeCell]]:
    """
    Split edge cells into 8-connected clusters.

    Iterative flood fill over a coordinate lookup; every input cell is
    visited exactly once, so the clusters partition the input.
    """
    lookup = {(c.cx, c.cy): c for c in edges}
    visited: set[tuple[int, int]] = set()
    clusters = []

    for edge in edges:
        start = (edge.cx, edge.cy)
        if start in visited:
            continue

        cluster = []
        stack = [start]
        visited.add(start)
        while stack:
            key = stack.pop()
            cluster.append(lookup[key])
            for dx, dy in NEIGHBOURS_8:
                n = (key[0] + dx, key[1] + dy)
                if n in lookup and n not in visited:
                    visited.add(n)
                    stack.append(n)

        clusters.append(cluster)

    return clusters


def extract_features(
    cells: list[EdgeCell],
    grid_size: float = GRID_SIZE,
    min_cells: int = MIN_CLUSTER_CELLS,
) -> ObjectFeatures | None:
    """
    Compute geometric features of a cluster.

    Returns None for noise: fewer than `min_cells` cells, or a cluster
    spanning less than two cells in both directions.
    """
    if len(cells) < min_cells:
        return None

    ordered = tuple(sorted(cells, key=lambda c: (c.cx, c.cy)))
    xs = [c.world_x for c in ordered]
    ys = [c.world_y for c in ordered]
    min_x, max_x = min(xs), max(xs)
    min_y, max_y = min(ys), max(ys)

    width = max_x - min_x + grid_size
    height = max_y - min_y + grid_size
    if width < grid_size * 2 and height < grid_size * 2:
        return None

    first = ordered[0]
    return ObjectFeatures(
        id=f"obj_{first.cx}_{first.cy}",
        centroid=(sum(xs) / len(xs), sum(ys) / len(ys)),
        bounds=Rect(min_x - grid_size / 2, min_y - grid_size / 2, width, height),
        cell_count=len(ordered),
        aspect_ratio=width / max(height, 1.0),
        cells=ordered,
    )


def merge_close_objects(
    objects: list[ObjectFeatures],
    threshold: float = MERGE_DISTANCE,
    grid_size: float = GRID_SIZE,
) -> list[ObjectFeatures]:
    """Merge objects whose centroids lie within `threshold` of a seed object."""
    if len(objects) <= 1:
        return objects

    merged = []
    used: set[int] = set()

    for i, seed in enumerate(objects):
        if i in used:
            continue
        used.add(i)

        group = [seed]
        for j in range(i + 1, len(objects)):
            if j in used:
                continue
            if seed.distance_to(objects[j]) < threshold:
                group.append(objects[j])
                used.add(j)

        if len(group) == 1:
            merged.append(seed)
            continue

        cells = [c for obj in group for c in obj.cells]
        features = extract_features(cells, grid_size, min_cells=1)
        if features is not None:
            merged.append(features)

    return merged


def feature_similarity(
    a: ObjectFeatures,
    b: ObjectFeatures,
    match_distance: float = MEMORY_MATCH_THRESHOLD,
) -> float:
    """
    Weighted similarity in [0, 1].

    50% position (inverse normalised centroid distance), 30% size ratio,
    20% aspect ratio closeness.
    """
    position_score = max(0.0, 1.0 - a.distance_to(b) / match_distance)

    size_a = a.bounds.area
    size_b = b.bounds.area
    size_ratio = min(size_a, size_b) / max(size_a, size_b) if max(size_a, size_b) > 0 else 0.0

    aspect_score = max(0.0, 1.0 - abs(a.aspect_ratio - b.aspect_ratio) / 2)

    return position_score * 0.5 + size_ratio * 0.3 + aspect_score * 0.2


class SegmentationStrategy(ABC):
    """Base class for edge-cell clustering algorithms."""

    def __init__(
        self,
        grid_size: float = GRID_SIZE,
        min_cells: int = MIN_CLUSTER_CELLS,
        merge_distance: float = MERGE_DISTANCE,
    ):
        self.grid_size = grid_size
        self.min_cells = min_cells
        self.merge_distance = merge_distance

    @abstractmethod
    def clusters(self, edges: list[EdgeCell]) -> list[list[EdgeCell]]:
        """
        Partition edge cells into connected clusters.

        Args:
            edges: Edge cells from perception.

        Returns:
            Disjoint clusters whose union is the input.
        """
        ...

    def segment(self, edges: list[EdgeCell]) -> list[ObjectFeatures]:
        """Cluster, drop noise, merge fragments."""
        if not edges:
            return []

        objects = []
        for cluster in self.clusters(edges):
            features = extract_features(cluster, self.grid_size, self.min_cells)
            if features is not None:
                objects.append(features)

        return merge_close_objects(objects, self.merge_distance, self.grid_size)


class FloodFillSegmentation(SegmentationStrategy):
    """Cluster edge cells with an iterative 8-connected flood fill."""

    def clusters(self, edges: list[EdgeCell]) -> list[list[EdgeCell]]:
        return find_clusters(edges)


class OpenCVSegmentation(SegmentationStrategy):
    """
    Cluster edge cells using OpenCV connected components.

    Algorithm:
    1. Rasterise edge cells into a binary image (one pixel per cell)
    2. cv2.connectedComponents with 8-connectivity
    3. Group cells by label, in order of first appearance
    """

    def clusters(self, edges: list[EdgeCell]) -> list[list[EdgeCell]]:
        if not edges:
            return []

        min_cx = min(c.cx for c in edges)
        min_cy = min(c.cy for c in edges)
        width = max(c.cx for c in edges) - min_cx + 1
        height = max(c.cy for c in edges) - min_cy + 1

        image = np.zeros((height, width), dtype=np.uint8)
        for c in edges:
            image[c.cy - min_cy, c.cx - min_cx] = 255

        _, labels = cv2.connectedComponents(image, connectivity=8)

        groups: dict[int, list[EdgeCell]] = {}
        seen: set[tuple[int, int]] = set()
        for c in edges:
            if (c.cx, c.cy) in seen:
                continue
            seen.add((c.cx, c.cy))
            label = int(labels[c.cy - min_cy, c.cx - min_cx])
            groups.setdefault(label, []).append(c)

        return list(groups.values())


def make_segmentation(name: str, **kwargs) -> SegmentationStrategy:
    """Build a segmentation strategy by name ("floodfill" or "opencv")."""
    if name == "opencv":
        return OpenCVSegmentation(**kwargs)
    if name == "floodfill":
        return FloodFillSegmentation(**kwargs)
    raise ValueError(f"Unknown segmentation strategy: {name}")
