"""
Decision Layer - What to do.

Contains:
- Navigator: Frame-rate steering from beliefs
- CollisionResolver: Hard contact with ground truth
- StateMachine: Population lifecycle (seeding / running)
"""

from .collision import CollisionEvent, CollisionResolver
from .navigation import Navigator, attractor_pull, turn_toward
from .state_machine import PopulationState, StateMachine

__all__ = [
    "CollisionEvent",
    "CollisionResolver",
    "Navigator",
    "attractor_pull",
    "turn_toward",
    "PopulationState",
    "StateMachine",
]
