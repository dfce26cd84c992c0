"""
Control Layer - Execution.

Simulation loop that coordinates all other layers.
"""

from .agent import Agent
from .simulation import Simulation, spawn_positions

__all__ = ["Agent", "Simulation", "spawn_positions"]
