"""
Prediction - Beliefs, prediction errors and belief updates.

A firefly predicts that remembered objects stay where they were.
Reality disagrees in two ways:
- POSITIVE error (surprise): something is where it was not expected
  (a remembered object moved, or an unexpected collision)
- NEGATIVE error (omission): a remembered object is missing from view

Errors are simulation events, not faults. They live for
ERROR_DISPLAY_DURATION seconds and are never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from fireflies.config import (
    BOUNDARY_MARGIN,
    COLLISION_BOOST,
    CONFIRMATION_BOOST,
    DRAGGABLE_P_STATIC,
    ERROR_DISPLAY_DURATION,
    FIXED_OBSTACLE_P_STATIC,
    LARGE_OBJECT_AREA,
    LEARNING_RATE,
    P_STATIC_MAX,
    P_STATIC_MIN,
    SURPRISE_THRESHOLD,
    UNKNOWN_OBJECT_P_STATIC,
)
from .world_state import WorldBounds

if TYPE_CHECKING:
    from fireflies.strategies.segmentation import ObjectFeatures


class PredictionKind(Enum):
    POSITIVE = "positive"  # Surprise
    NEGATIVE = "negative"  # Omission


@dataclass(frozen=True)
class PredictionError:
    """One mismatch between belief and sensed reality."""

    kind: PredictionKind
    entry_id: str
    magnitude: float  # Displacement for POSITIVE, 0 for NEGATIVE
    confidence: float
    timestamp: float
    expected_position: tuple[float, float] | None = None
    agent_id: str | None = None

    def is_expired(self, now: float, duration: float = ERROR_DISPLAY_DURATION) -> bool:
        return now - self.timestamp >= duration

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "entry_id": self.entry_id,
            "agent_id": self.agent_id,
            "magnitude": round(self.magnitude, 2),
            "confidence": round(self.confidence, 3),
            "timestamp": self.timestamp,
            "expected_position": (
                [round(v, 1) for v in self.expected_position]
                if self.expected_position is not None
                else None
            ),
        }


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def clamp_p_static(value: float) -> float:
    return clamp(value, P_STATIC_MIN, P_STATIC_MAX)


def initial_p_static(
    features: ObjectFeatures,
    bounds: WorldBounds,
    is_known_draggable: bool = False,
) -> float:
    """
    Prior P(static) for a newly detected object.

    Known draggable sources start uncertain. Objects near the world
    boundary or unusually large are probably fixed layout.
    """
    if is_known_draggable:
        return DRAGGABLE_P_STATIC

    cx, cy = features.centroid
    near_edge = (
        cx < BOUNDARY_MARGIN
        or cx > bounds.width - BOUNDARY_MARGIN
        or cy < BOUNDARY_MARGIN
        or cy > bounds.height - BOUNDARY_MARGIN
    )
    is_large = features.bounds.area > LARGE_OBJECT_AREA

    if near_edge or is_large:
        return FIXED_OBSTACLE_P_STATIC
    return UNKNOWN_OBJECT_P_STATIC


def surprise_confidence(displacement: float, threshold: float = SURPRISE_THRESHOLD) -> float:
    """Confidence of a displacement surprise, proportional up to 2x threshold."""
    return clamp(displacement / (threshold * 2), 0.0, 1.0)


def update_after_positive_error(
    p_static: float,
    confidence: float,
    learning_rate: float = LEARNING_RATE,
) -> float:
    """Object moved: decrease P(static), more for larger displacement."""
    return clamp_p_static(p_static * (1 - learning_rate * clamp(confidence, 0.0, 1.0)))


def update_after_negative_error(
    p_static: float,
    learning_rate: float = LEARNING_RATE,
) -> float:
    """Object disappeared: decrease P(static) by half the learning rate."""
    return clamp_p_static(p_static * (1 - learning_rate * 0.5))


def update_after_confirmation(
    p_static: float,
    boost: float = CONFIRMATION_BOOST,
) -> float:
    """Object was where expected: nudge P(static) toward 1."""
    return clamp_p_static(p_static + (1 - p_static) * boost)


def update_after_collision(
    p_static: float,
    boost: float = COLLISION_BOOST,
) -> float:
    """Ran into an object: it is solid and in the way, pull P(static) up."""
    return clamp_p_static(p_static + (1 - p_static) * boost)


@dataclass
class PredictionState:
    """Per-agent prediction errors still on display."""

    active_errors: list[PredictionError] = field(default_factory=list)
    confirmed: list[str] = field(default_factory=list)
    last_update: float = 0.0

    def record(
        self,
        errors: list[PredictionError],
        confirmed: list[str],
        now: float,
        duration: float = ERROR_DISPLAY_DURATION,
    ) -> None:
        self.active_errors = [e for e in self.active_errors if not e.is_expired(now, duration)]
        self.active_errors.extend(errors)
        self.confirmed = list(confirmed)
        self.last_update = now

    def active(self, now: float, duration: float = ERROR_DISPLAY_DURATION) -> list[PredictionError]:
        return [e for e in self.active_errors if not e.is_expired(now, duration)]

    def is_surprised(self, now: float) -> bool:
        return any(e.kind is PredictionKind.POSITIVE for e in self.active(now))

    def is_confused(self, now: float) -> bool:
        return any(e.kind is PredictionKind.NEGATIVE for e in self.active(now))
