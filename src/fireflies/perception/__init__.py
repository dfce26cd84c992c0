"""
Perception Layer - What a firefly sees and believes.

- WorldSnapshot: shared, frozen ground truth (obstacles + bounds)
- find_edge_cells: FOV-limited occupancy edge scan
- PredictionError: surprise / omission events

Belief memory and the cognition pipeline depend on the strategies
package; import them from their modules:
- perception.belief_memory: BeliefMemory, MemoryEntry
- perception.pipeline: CognitionPipeline
"""

from .world_state import (
    Attractor,
    GeometryError,
    Obstacle,
    ObstacleType,
    Rect,
    WorldBounds,
    WorldSnapshot,
    parse_bounds,
    parse_obstacles,
    parse_world,
    validate_world,
)
from .edges import EdgeCell, find_edge_cells, is_in_field_of_view
from .prediction import PredictionError, PredictionKind, PredictionState

__all__ = [
    "Attractor",
    "GeometryError",
    "Obstacle",
    "ObstacleType",
    "Rect",
    "WorldBounds",
    "WorldSnapshot",
    "parse_bounds",
    "parse_obstacles",
    "parse_world",
    "validate_world",
    "EdgeCell",
    "find_edge_cells",
    "is_in_field_of_view",
    "PredictionError",
    "PredictionKind",
    "PredictionState",
]
