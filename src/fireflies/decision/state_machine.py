"""
State machine for the firefly population.

Re-seeding the population is an explicit transition, not a side
effect of new geometry arriving. The simulation asks the machine what
to do with each world update and reports back when seeding is done.
"""

from __future__ import annotations

import logging
from enum import Enum, auto

from fireflies.config import RESEED_TOLERANCE
from fireflies.perception.world_state import WorldBounds

logger = logging.getLogger(__name__)


class PopulationState(Enum):
    """Population state enumeration."""

    IDLE = auto()
    SEEDING = auto()
    RUNNING = auto()
    STOPPED = auto()


class StateMachine:
    """
    Lifecycle of the firefly population.

    States:
    - IDLE: No world yet
    - SEEDING: Population must be (re)generated before the next tick
    - RUNNING: Fireflies are ticking; their state survives world updates
    - STOPPED: Simulation halted

    Transitions to SEEDING when the world bounds change by more than
    `tolerance` in either dimension, or the desired agent count changes.

    Usage:
        sm = StateMachine()

        # On every world update:
        sm.world_changed(bounds, desired_count)

        # Before ticking:
        if sm.state == PopulationState.SEEDING:
            ...regenerate agents...
            sm.seeded(bounds, len(agents))
    """

    def __init__(self, tolerance: float = RESEED_TOLERANCE):
        self.tolerance = tolerance
        self.state = PopulationState.IDLE
        self.seeded_bounds: WorldBounds | None = None
        self.seeded_count = 0
        self.reseeds = 0

    @property
    def is_running(self) -> bool:
        return self.state == PopulationState.RUNNING

    @property
    def needs_seed(self) -> bool:
        return self.state == PopulationState.SEEDING

    def world_changed(self, bounds: WorldBounds, desired_count: int) -> PopulationState:
        """
        React to new world geometry or a new population size.

        Returns:
            The state after the transition.
        """
        if self.state == PopulationState.STOPPED:
            return self.state

        if self.state == PopulationState.IDLE or self.seeded_bounds is None:
            self._transition(PopulationState.SEEDING, "initial world")
        elif bounds.differs_from(self.seeded_bounds, self.tolerance):
            self._transition(
                PopulationState.SEEDING,
                f"bounds {self.seeded_bounds.width:.0f}x{self.seeded_bounds.height:.0f}"
                f" -> {bounds.width:.0f}x{bounds.height:.0f}",
            )
        elif desired_count != self.seeded_count:
            self._transition(
                PopulationState.SEEDING,
                f"agent count {self.seeded_count} -> {desired_count}",
            )
        return self.state

    def seeded(self, bounds: WorldBounds, count: int) -> None:
        """Population regenerated for `bounds`."""
        if self.state != PopulationState.SEEDING:
            logger.warning(f"seeded() called in state {self.state.name}")
        self.seeded_bounds = bounds
        self.seeded_count = count
        self.reseeds += 1
        self._transition(PopulationState.RUNNING, f"{count} fireflies seeded")

    def stop(self) -> None:
        self._transition(PopulationState.STOPPED, "stop requested")

    def _transition(self, new_state: PopulationState, reason: str) -> None:
        if new_state == self.state:
            return
        logger.info(f"State: {self.state.name} -> {new_state.name} ({reason})")
        self.state = new_state
