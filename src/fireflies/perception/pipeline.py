"""
Cognition pipeline - One perception tick for one firefly.

The pipeline:
1. Find edge cells in the firefly's FOV cone (perception)
2. Group them into objects via SegmentationStrategy
3. Fold the objects into the firefly's BeliefMemory
4. Record emitted prediction errors on the firefly

Runs at the low-frequency cadence. Reads only the firefly's own state
and the shared, frozen WorldSnapshot.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING

from fireflies.config import TOUCH_RADIUS
from fireflies.params import Parameters
from fireflies.strategies.segmentation import (
    ObjectFeatures,
    SegmentationStrategy,
    make_segmentation,
)
from .belief_memory import BeliefMemory, MemoryEntry, MemoryUpdate
from .edges import find_edge_cells
from .world_state import WorldSnapshot

if TYPE_CHECKING:
    from fireflies.control.agent import Agent

logger = logging.getLogger(__name__)


class CognitionPipeline:
    """
    Perception -> Segmentation -> Belief Memory.

    Usage:
        pipeline = CognitionPipeline(params)

        # Each perception tick, for each firefly:
        update = pipeline.tick(agent, world, now, dt)

        # With a custom strategy:
        pipeline = CognitionPipeline(params, segmentation=OpenCVSegmentation())
    """

    def __init__(
        self,
        params: Parameters | None = None,
        segmentation: SegmentationStrategy | None = None,
    ):
        self.params = params or Parameters()
        self._fixed_segmentation = segmentation is not None
        self._segmentation = segmentation
        self._segmentation_key: tuple | None = None

    @property
    def segmentation(self) -> SegmentationStrategy:
        """Current strategy, rebuilt when its parameters change."""
        if self._fixed_segmentation:
            return self._segmentation

        key = (self.params.segmentation, self.params.grid_size, self.params.merge_distance)
        if key != self._segmentation_key:
            self._segmentation = make_segmentation(
                self.params.segmentation,
                grid_size=self.params.grid_size,
                merge_distance=self.params.merge_distance,
            )
            self._segmentation_key = key
            logger.info(f"Segmentation: {self._segmentation.__class__.__name__}")
        return self._segmentation

    def detect(
        self,
        pos: tuple[float, float],
        heading: float,
        world: WorldSnapshot,
        fov_angle: float | None = None,
        radius: float | None = None,
    ) -> list[ObjectFeatures]:
        """Edge scan plus segmentation; deterministic for a given pose and world."""
        edges = find_edge_cells(
            pos,
            heading,
            world,
            grid_size=self.params.grid_size,
            fov_angle=self.params.fov_angle if fov_angle is None else fov_angle,
            radius=self.params.sense_radius if radius is None else radius,
        )
        return self.segmentation.segment(edges)

    def tick(
        self,
        agent: Agent,
        world: WorldSnapshot,
        now: float,
        dt: float,
    ) -> MemoryUpdate:
        """Run one cognition tick for `agent`."""
        pos = (agent.x, agent.y)
        detections = self.detect(pos, agent.heading, world)

        self.configure_memory(agent.memory)
        update = agent.memory.observe(
            detections,
            now,
            dt,
            pos,
            agent.heading,
            world,
            fov_angle=self.params.fov_angle,
            radius=self.params.sense_radius,
        )
        agent.prediction.record(update.errors, update.confirmed, now)

        if update.errors:
            kinds = ", ".join(f"{e.kind.value}:{e.entry_id}" for e in update.errors)
            logger.debug(f"{agent.id}: prediction errors [{kinds}]")
        return update

    def touch(
        self,
        agent: Agent,
        contact: tuple[float, float],
        world: WorldSnapshot,
        now: float,
    ) -> MemoryEntry | None:
        """Close-range, all-around sensing pass after an unexpected collision."""
        detections = self.detect(
            (agent.x, agent.y),
            agent.heading,
            world,
            fov_angle=2 * math.pi,
            radius=TOUCH_RADIUS,
        )
        return agent.memory.touch(detections, contact, now, world)

    def configure_memory(self, memory: BeliefMemory) -> None:
        """Push runtime parameters into a firefly's memory."""
        memory.match_threshold = self.params.memory_match_threshold
        memory.fade_rate = self.params.memory_fade_rate
        memory.surprise_threshold = self.params.surprise_threshold
        memory.confirmation_band = self.params.surprise_threshold / 2
        memory.learning_rate = self.params.learning_rate
        memory.confirmation_boost = self.params.confirmation_boost
