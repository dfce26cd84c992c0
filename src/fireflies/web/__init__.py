"""
Web Layer - Interface for the geometry provider and the renderer.

Provides:
- World geometry ingestion and attractor updates
- Poses, prediction errors and memory snapshots
- Parameter tuning
- State stream (WebSocket)
"""

from .server import create_app, run_server

__all__ = ["create_app", "run_server"]
