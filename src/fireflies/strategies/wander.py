"""
Wander strategies - Organic heading noise.

A wander strategy returns a heading drift (radians per second). The
navigator scales it by the frame time and adds it to the firefly's
current heading before blending in avoidance and attraction.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod

import numpy as np

from fireflies.config import WANDER_STRENGTH, WANDER_VARIATION


class WanderStrategy(ABC):
    """Base class for heading noise."""

    @abstractmethod
    def offset(self, phase: float, now: float, rng: np.random.Generator) -> float:
        """
        Heading drift for this frame.

        Args:
            phase: Per-firefly phase, so fireflies do not move in lockstep.
            now: Simulation time (seconds).
            rng: The firefly's own random generator.

        Returns:
            Heading drift in radians per second.
        """
        ...


class SmoothWander(WanderStrategy):
    """
    Slow sinusoidal curve plus small random jitter.

    The sinusoid gives each firefly a persistent, gently changing
    bias; the jitter keeps paths from looking mechanical.
    """

    def __init__(
        self,
        strength: float = WANDER_STRENGTH,
        variation: float = WANDER_VARIATION,
        frequency: float = 0.35,
    ):
        self.strength = strength
        self.variation = variation
        self.frequency = frequency

    def offset(self, phase: float, now: float, rng: np.random.Generator) -> float:
        bias = self.strength * math.sin(2 * math.pi * self.frequency * now + phase)
        jitter = self.variation * (rng.random() * 2 - 1)
        return bias * 0.5 + jitter * 0.5


class NoWander(WanderStrategy):
    """Straight-line motion; useful for deterministic runs."""

    def offset(self, phase: float, now: float, rng: np.random.Generator) -> float:
        return 0.0
