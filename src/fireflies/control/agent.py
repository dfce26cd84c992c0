"""
Agent - One firefly.

Pose, motion state, timing and a private belief memory. Nothing here
is shared with other fireflies.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np

from fireflies.config import BASE_SPEED
from fireflies.perception.belief_memory import BeliefMemory
from fireflies.perception.prediction import PredictionState


@dataclass
class Agent:
    """A firefly and everything it owns."""

    id: str
    x: float
    y: float
    heading: float = 0.0
    speed: float = BASE_SPEED
    phase: float = 0.0  # Offsets wander and speed oscillation
    rng: np.random.Generator = field(default_factory=np.random.default_rng)
    memory: BeliefMemory = field(default_factory=BeliefMemory)
    prediction: PredictionState = field(default_factory=PredictionState)

    # Steering
    target_heading: float = 0.0
    is_avoiding: bool = False
    avoid_heading: float = 0.0
    avoid_until: float = 0.0  # Escape heading is held until this time

    # Timing
    last_perception: float | None = None

    # Stats
    collisions: int = 0
    unexpected_collisions: int = 0

    def __post_init__(self):
        if not self.memory.agent_id:
            self.memory.agent_id = self.id

    @property
    def position(self) -> tuple[float, float]:
        return (self.x, self.y)

    @property
    def velocity(self) -> tuple[float, float]:
        return (math.cos(self.heading) * self.speed, math.sin(self.heading) * self.speed)

    def is_escaping(self, now: float) -> bool:
        return now < self.avoid_until

    def pose(self, now: float) -> dict:
        """Pose and status for the rendering layer."""
        return {
            "id": self.id,
            "x": round(self.x, 2),
            "y": round(self.y, 2),
            "heading": round(self.heading, 4),
            "speed": round(self.speed, 2),
            "is_avoiding": self.is_avoiding,
            "is_escaping": self.is_escaping(now),
            "is_surprised": self.prediction.is_surprised(now),
            "is_confused": self.prediction.is_confused(now),
            "memory_size": len(self.memory),
            "collisions": self.collisions,
            "unexpected_collisions": self.unexpected_collisions,
        }
