"""
Predictive Fireflies.

Small agents that sense a 2D world of rectangles, remember what they
saw, believe some of it is static, and steer by those beliefs.

Layers:
- perception: world snapshot, edge scan, belief memory, prediction errors
- strategies: segmentation, avoidance and wander algorithms
- decision: navigation, collisions, population state machine
- control: agents and the simulation loop
- web: aiohttp interface
"""

__version__ = "0.1.0"
