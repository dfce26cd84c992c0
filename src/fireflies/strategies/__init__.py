"""
Swappable strategy implementations (Strategy pattern).

Each strategy type has an ABC and one or more implementations.
Pass the desired implementation to CognitionPipeline or Navigator.
"""

from .segmentation import (
    SegmentationStrategy,
    FloodFillSegmentation,
    OpenCVSegmentation,
    ObjectFeatures,
    find_clusters,
    extract_features,
    merge_close_objects,
    feature_similarity,
    make_segmentation,
)
from .avoidance import (
    AvoidanceStrategy,
    BeliefAvoidance,
    DirectAvoidance,
    WallRepulsion,
    make_avoidance,
)
from .wander import (
    WanderStrategy,
    SmoothWander,
    NoWander,
)
