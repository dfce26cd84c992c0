"""
Runtime tunable parameters.

One Parameters instance is shared by the simulation and the web
interface. The web API can modify values at runtime; changes take
effect on the next tick. Single-threaded asyncio means no locks needed.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import asdict, dataclass
from pathlib import Path

from fireflies import config

logger = logging.getLogger(__name__)

PARAMS_FILE = Path.cwd() / "fireflies_params.json"

SEGMENTATION_CHOICES = ("floodfill", "opencv")
AVOIDANCE_CHOICES = ("belief", "direct")
CHOICES = {"segmentation": SEGMENTATION_CHOICES, "avoidance": AVOIDANCE_CHOICES}


@dataclass
class Parameters:
    """Runtime tunable parameters."""

    # Sensing
    grid_size: int = config.GRID_SIZE
    sense_radius: float = config.SENSE_RADIUS
    fov_angle: float = config.FOV_ANGLE
    segmentation: str = "floodfill"  # "floodfill" or "opencv"
    merge_distance: float = config.MERGE_DISTANCE

    # Memory / prediction
    memory_match_threshold: float = config.MEMORY_MATCH_THRESHOLD
    memory_fade_rate: float = config.MEMORY_FADE_RATE
    surprise_threshold: float = config.SURPRISE_THRESHOLD
    learning_rate: float = config.LEARNING_RATE
    confirmation_boost: float = config.CONFIRMATION_BOOST

    # Movement
    base_speed: float = config.BASE_SPEED
    max_speed: float = config.MAX_SPEED
    turn_rate: float = config.TURN_RATE
    avoidance_distance: float = config.AVOIDANCE_DISTANCE
    avoidance_strength: float = config.AVOIDANCE_STRENGTH
    wander_strength: float = config.WANDER_STRENGTH
    avoidance: str = "belief"  # "belief" or "direct"

    # Population & timing
    agent_count: int = config.AGENT_COUNT
    perception_interval: float = config.PERCEPTION_INTERVAL

    def update(self, **kwargs):
        """Update parameters from dict (e.g., from web API)."""
        for key, value in kwargs.items():
            if not hasattr(self, key):
                logger.warning(f"Unknown parameter: {key}")
                continue
            expected_type = type(getattr(self, key))
            try:
                coerced = expected_type(value)
            except (TypeError, ValueError, OverflowError):
                logger.warning(f"Invalid value for {key}: {value}")
                continue
            choices = CHOICES.get(key)
            if choices is not None:
                if coerced not in choices:
                    logger.warning(f"Invalid value for {key}: {value}, expected one of {choices}")
                    continue
            elif not math.isfinite(coerced) or coerced <= 0:
                logger.warning(f"Parameter {key} must be positive and finite, got {value}")
                continue
            setattr(self, key, coerced)

    @classmethod
    def load(cls, path: Path | None = None) -> Parameters:
        """Load from JSON file, or return defaults."""
        path = path or PARAMS_FILE
        if path.exists():
            try:
                with open(path) as f:
                    data = json.load(f)
                params = cls()
                params.update(**data)
                logger.info(f"Parameters loaded from {path}")
                return params
            except (OSError, ValueError, TypeError) as e:
                logger.warning(f"Failed to load {path}: {e}, using defaults")
        return cls()

    def to_dict(self) -> dict:
        """Convert to dict for JSON API."""
        return asdict(self)
