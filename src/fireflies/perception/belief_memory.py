"""
Belief memory - What a firefly remembers about its surroundings.

Each firefly owns one BeliefMemory. Entries persist across perception
ticks; they are matched against fresh detections, carry a belief
P(static) and a decaying confidence, and are forgotten once confidence
runs out or they have been unseen for too long.

Per-tick update (observe):
1. Score every (detection, entry) pair, greedily assign by similarity
2. Matched: surprise (moved) or confirmation (in place), refresh features
3. Unmatched detections: new entry with a heuristic prior
4. Unmatched entries still in view: missing object (omission)
5. Unmatched entries: passive confidence decay, then prune
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field

from fireflies.config import (
    COLLISION_PADDING,
    CONFIRM_MIN_CONFIDENCE,
    CONFIRMATION_BAND,
    CONFIRMATION_BOOST,
    COLLISION_BOOST,
    EXPECTED_HIT_CONFIDENCE,
    FOV_ANGLE,
    LEARNING_RATE,
    MATCH_CONFIDENCE_GAIN,
    MAX_MEMORY_AGE,
    MEMORY_FADE_RATE,
    MEMORY_MATCH_THRESHOLD,
    MIN_CONFIDENCE,
    MIN_MATCH_SCORE,
    MISSING_CONFIDENCE_DECAY,
    MISSING_MIN_CONFIDENCE,
    SENSE_RADIUS,
    SURPRISE_THRESHOLD,
    TOUCH_RADIUS,
)
from fireflies.strategies.segmentation import ObjectFeatures, feature_similarity
from .edges import is_in_field_of_view
from .prediction import (
    PredictionError,
    PredictionKind,
    clamp,
    clamp_p_static,
    initial_p_static,
    surprise_confidence,
    update_after_collision,
    update_after_confirmation,
    update_after_negative_error,
    update_after_positive_error,
)
from .world_state import Obstacle, WorldSnapshot

logger = logging.getLogger(__name__)


class MemoryEntry:
    """
    Persistent record of one remembered object.

    `p_static` and `confidence` are clamped on every assignment.
    `obstacle_id` links back to ground truth and is only used to pick
    the prior when the entry is created.
    """

    def __init__(
        self,
        id: str,
        features: ObjectFeatures,
        p_static: float,
        confidence: float = 1.0,
        last_seen: float = 0.0,
        is_visible: bool = True,
        obstacle_id: str | None = None,
    ):
        self.id = id
        self.features = features
        self.p_static = p_static
        self.confidence = confidence
        self.last_seen = last_seen
        self.is_visible = is_visible
        self.obstacle_id = obstacle_id

    @property
    def p_static(self) -> float:
        return self._p_static

    @p_static.setter
    def p_static(self, value: float) -> None:
        self._p_static = clamp_p_static(value)

    @property
    def confidence(self) -> float:
        return self._confidence

    @confidence.setter
    def confidence(self, value: float) -> None:
        self._confidence = clamp(value, 0.0, 1.0)

    @property
    def centroid(self) -> tuple[float, float]:
        return self.features.centroid

    def age(self, now: float) -> float:
        return now - self.last_seen

    def to_dict(self) -> dict:
        b = self.features.bounds
        return {
            "id": self.id,
            "centroid": [round(v, 1) for v in self.centroid],
            "bounds": {"x": b.x, "y": b.y, "width": b.width, "height": b.height},
            "cell_count": self.features.cell_count,
            "p_static": round(self.p_static, 3),
            "confidence": round(self.confidence, 3),
            "last_seen": self.last_seen,
            "is_visible": self.is_visible,
            "obstacle_id": self.obstacle_id,
        }

    def __repr__(self) -> str:
        return (
            f"MemoryEntry({self.id}, p_static={self.p_static:.2f}, "
            f"confidence={self.confidence:.2f})"
        )


@dataclass
class MemoryUpdate:
    """Outcome of one perception tick."""

    errors: list[PredictionError] = field(default_factory=list)
    confirmed: list[str] = field(default_factory=list)
    created: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    matched: int = 0


class BeliefMemory:
    """
    Private, persistent object memory of one firefly.

    Usage:
        memory = BeliefMemory(agent_id="ff-0")

        # Each perception tick:
        update = memory.observe(detections, now, dt, pos, heading, world)

        # After an unexpected collision:
        entry = memory.touch(detections, contact, now, world)
    """

    def __init__(
        self,
        agent_id: str = "",
        match_threshold: float = MEMORY_MATCH_THRESHOLD,
        min_match_score: float = MIN_MATCH_SCORE,
        fade_rate: float = MEMORY_FADE_RATE,
        surprise_threshold: float = SURPRISE_THRESHOLD,
        confirmation_band: float = CONFIRMATION_BAND,
        learning_rate: float = LEARNING_RATE,
        confirmation_boost: float = CONFIRMATION_BOOST,
        min_confidence: float = MIN_CONFIDENCE,
        max_age: float = MAX_MEMORY_AGE,
    ):
        self.agent_id = agent_id
        self.match_threshold = match_threshold
        self.min_match_score = min_match_score
        self.fade_rate = fade_rate
        self.surprise_threshold = surprise_threshold
        self.confirmation_band = confirmation_band
        self.learning_rate = learning_rate
        self.confirmation_boost = confirmation_boost
        self.min_confidence = min_confidence
        self.max_age = max_age

        self._entries: dict[str, MemoryEntry] = {}
        self._ids = itertools.count()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry_id: str) -> bool:
        return entry_id in self._entries

    @property
    def entries(self) -> list[MemoryEntry]:
        return list(self._entries.values())

    def get(self, entry_id: str) -> MemoryEntry | None:
        return self._entries.get(entry_id)

    def clear(self) -> None:
        self._entries.clear()

    # -------------------------------------------------------------------------
    # Per-tick update
    # -------------------------------------------------------------------------

    def observe(
        self,
        detections: list[ObjectFeatures],
        now: float,
        dt: float,
        pos: tuple[float, float],
        heading: float,
        world: WorldSnapshot,
        fov_angle: float = FOV_ANGLE,
        radius: float = SENSE_RADIUS,
    ) -> MemoryUpdate:
        """
        Fold one tick of detections into memory.

        Args:
            detections: Objects segmented this tick.
            now: Simulation time (seconds).
            dt: Time since the previous perception tick.
            pos: Firefly position, for the missing-object test.
            heading: Firefly heading.
            world: Current world snapshot (bounds and prior hints).
            fov_angle: Full FOV cone used for perception.
            radius: Sensing range used for perception.

        Returns:
            MemoryUpdate with emitted prediction errors.
        """
        result = MemoryUpdate()

        for entry in self._entries.values():
            entry.is_visible = False

        pairs = self._match(detections)
        matched_entries = set()
        matched_detections = set()
        for det_index, entry_id in pairs:
            entry = self._entries[entry_id]
            self._apply_match(entry, detections[det_index], now, result)
            matched_entries.add(entry_id)
            matched_detections.add(det_index)
        result.matched = len(pairs)

        for i, detection in enumerate(detections):
            if i not in matched_detections:
                entry = self._create(detection, now, world)
                result.created.append(entry.id)

        for entry in list(self._entries.values()):
            if entry.id in matched_entries or entry.id in result.created:
                continue
            if entry.confidence > MISSING_MIN_CONFIDENCE and is_in_field_of_view(
                pos, heading, entry.centroid, fov_angle, radius
            ):
                self._apply_missing(entry, now, result)
            entry.confidence -= self.fade_rate * dt

        result.removed = self._prune(now)
        return result

    def _match(self, detections: list[ObjectFeatures]) -> list[tuple[int, str]]:
        """Greedy one-to-one assignment by descending similarity."""
        candidates = []
        for i, detection in enumerate(detections):
            for entry in self._entries.values():
                if detection.distance_to(entry.features) >= self.match_threshold:
                    continue
                score = feature_similarity(detection, entry.features, self.match_threshold)
                if score > self.min_match_score:
                    candidates.append((score, i, entry.id))

        candidates.sort(key=lambda c: -c[0])

        used_detections = set()
        used_entries = set()
        pairs = []
        for _, i, entry_id in candidates:
            if i in used_detections or entry_id in used_entries:
                continue
            used_detections.add(i)
            used_entries.add(entry_id)
            pairs.append((i, entry_id))
        return pairs

    def _apply_match(
        self,
        entry: MemoryEntry,
        detection: ObjectFeatures,
        now: float,
        result: MemoryUpdate,
    ) -> None:
        displacement = detection.distance_to(entry.features)

        if displacement > self.surprise_threshold:
            confidence = surprise_confidence(displacement, self.surprise_threshold)
            result.errors.append(PredictionError(
                kind=PredictionKind.POSITIVE,
                entry_id=entry.id,
                magnitude=displacement,
                confidence=confidence,
                timestamp=now,
                expected_position=entry.centroid,
                agent_id=self.agent_id,
            ))
            entry.p_static = update_after_positive_error(
                entry.p_static, confidence, self.learning_rate
            )
            logger.debug(
                f"{self.agent_id}: {entry.id} moved {displacement:.1f}, "
                f"p_static -> {entry.p_static:.2f}"
            )
        elif (
            displacement <= self.confirmation_band
            and entry.confidence > CONFIRM_MIN_CONFIDENCE
        ):
            entry.p_static = update_after_confirmation(entry.p_static, self.confirmation_boost)
            result.confirmed.append(entry.id)

        entry.features = detection
        entry.last_seen = now
        entry.is_visible = True
        entry.confidence += MATCH_CONFIDENCE_GAIN

    def _apply_missing(self, entry: MemoryEntry, now: float, result: MemoryUpdate) -> None:
        result.errors.append(PredictionError(
            kind=PredictionKind.NEGATIVE,
            entry_id=entry.id,
            magnitude=0.0,
            confidence=entry.confidence,
            timestamp=now,
            expected_position=entry.centroid,
            agent_id=self.agent_id,
        ))
        entry.p_static = update_after_negative_error(entry.p_static, self.learning_rate)
        entry.confidence *= MISSING_CONFIDENCE_DECAY
        logger.debug(
            f"{self.agent_id}: {entry.id} missing, p_static -> {entry.p_static:.2f}"
        )

    def _create(
        self,
        detection: ObjectFeatures,
        now: float,
        world: WorldSnapshot,
    ) -> MemoryEntry:
        obstacle = _overlapping_obstacle(detection, world)
        is_draggable = obstacle is not None and obstacle.is_draggable
        entry = MemoryEntry(
            id=f"mem_{next(self._ids)}",
            features=detection,
            p_static=initial_p_static(detection, world.bounds, is_draggable),
            confidence=1.0,
            last_seen=now,
            is_visible=True,
            obstacle_id=obstacle.id if obstacle is not None else None,
        )
        self._entries[entry.id] = entry
        logger.debug(
            f"{self.agent_id}: new {entry.id} at "
            f"({entry.centroid[0]:.0f}, {entry.centroid[1]:.0f}), "
            f"prior {entry.p_static:.2f}"
        )
        return entry

    def _prune(self, now: float) -> list[str]:
        removed = [
            e.id
            for e in self._entries.values()
            if e.confidence < self.min_confidence or e.age(now) > self.max_age
        ]
        for entry_id in removed:
            del self._entries[entry_id]
        return removed

    # -------------------------------------------------------------------------
    # Collisions
    # -------------------------------------------------------------------------

    def expects_obstacle_at(
        self,
        px: float,
        py: float,
        padding: float = COLLISION_PADDING,
        min_confidence: float = EXPECTED_HIT_CONFIDENCE,
    ) -> MemoryEntry | None:
        """Confident entry whose padded box covers the point, if any."""
        for entry in self._entries.values():
            if entry.confidence > min_confidence and entry.features.bounds.contains(
                px, py, padding
            ):
                return entry
        return None

    def touch(
        self,
        detections: list[ObjectFeatures],
        contact: tuple[float, float],
        now: float,
        world: WorldSnapshot,
        boost: float = COLLISION_BOOST,
    ) -> MemoryEntry | None:
        """
        Forceful update after an unexpected collision.

        Detections come from a close-range, all-around sensing pass.
        They are matched or added like in observe(), without the
        missing-object test or decay. The entry nearest the contact
        point is then fully trusted and pulled toward static.

        Returns:
            The touched entry, or None if nothing was sensed near the contact.
        """
        touched = []
        matched = set()
        for det_index, entry_id in self._match(detections):
            entry = self._entries[entry_id]
            entry.features = detections[det_index]
            entry.last_seen = now
            entry.is_visible = True
            touched.append(entry)
            matched.add(det_index)

        for i, detection in enumerate(detections):
            if i not in matched:
                touched.append(self._create(detection, now, world))

        candidates = [(e.features.bounds.distance_to(*contact), e) for e in touched]
        candidates = [c for c in candidates if c[0] <= TOUCH_RADIUS]
        if not candidates:
            return None

        _, entry = min(candidates, key=lambda c: c[0])
        entry.confidence = 1.0
        entry.p_static = update_after_collision(entry.p_static, boost)
        entry.last_seen = now
        logger.info(
            f"{self.agent_id}: collision with {entry.id}, "
            f"p_static -> {entry.p_static:.2f}"
        )
        return entry

    def snapshot(self) -> list[dict]:
        """Read-only view for debug visualisation."""
        return [e.to_dict() for e in self._entries.values()]


def _overlapping_obstacle(detection: ObjectFeatures, world: WorldSnapshot) -> Obstacle | None:
    """Ground-truth obstacle whose rectangle overlaps the detection box."""
    for obstacle in world.obstacles:
        if obstacle.rect.overlaps(detection.bounds):
            return obstacle
    return None
