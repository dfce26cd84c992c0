#!/usr/bin/env python3
"""
Predictive Fireflies - Main Entry Point

Usage:
    fireflies                          # Run the demo scene
    fireflies --scene scene.json       # Run a scene from a JSON file
    fireflies --web --port 8080        # Run with the web interface
    fireflies --duration 30 --seed 3   # Fixed-length, reproducible run
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

DEMO_SCENE = {
    "bounds": {"width": 1000, "height": 700},
    "obstacles": [
        {"id": "header", "type": "fixed", "x": 0, "y": 0, "width": 1000, "height": 60},
        {"id": "sidebar", "type": "fixed", "x": 820, "y": 120, "width": 140, "height": 420},
        {"id": "card-1", "type": "fixed", "x": 180, "y": 200, "width": 200, "height": 120},
        {"id": "card-2", "type": "fixed", "x": 460, "y": 380, "width": 220, "height": 140},
        {"id": "toy", "type": "draggable", "x": 300, "y": 480, "width": 60, "height": 60},
    ],
}


def load_scene(path: Path | None) -> dict:
    """Raw scene mapping from a JSON file, or the demo scene."""
    if path is None:
        return DEMO_SCENE
    with open(path) as f:
        return json.load(f)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Predictive Fireflies simulation")
    parser.add_argument(
        "--agents",
        type=int,
        default=None,
        help="Number of fireflies (default from parameters)",
    )
    parser.add_argument(
        "--scene",
        type=Path,
        default=None,
        help="Scene JSON file with {bounds, obstacles} (default: demo scene)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=0,
        help="Random seed for spawning and wander",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until Ctrl+C)",
    )
    parser.add_argument(
        "--web",
        action="store_true",
        help="Enable web interface",
    )
    parser.add_argument("--host", default=None, help="Web interface host")
    parser.add_argument("--port", type=int, default=None, help="Web interface port")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    args = parser.parse_args()

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info("Predictive Fireflies starting...")

    from fireflies.config import WEB_HOST, WEB_PORT
    from fireflies.control import Simulation
    from fireflies.params import Parameters
    from fireflies.perception import GeometryError

    params = Parameters.load()
    if args.agents is not None:
        params.update(agent_count=args.agents)

    simulation = Simulation(params=params, seed=args.seed)
    try:
        simulation.load_world(load_scene(args.scene))
    except (OSError, ValueError) as e:
        # GeometryError is a ValueError, as is malformed JSON
        kind = "Invalid scene" if isinstance(e, GeometryError) else "Cannot read scene"
        logger.error(f"{kind}: {e}")
        sys.exit(2)

    world = simulation.world
    logger.info(
        f"Scene: {world.bounds.width:.0f}x{world.bounds.height:.0f}, "
        f"{len(world.obstacles)} obstacles, {params.agent_count} fireflies, seed {args.seed}"
    )

    async def run():
        runner = None
        if args.web:
            from fireflies.web import run_server

            runner = await run_server(
                simulation,
                host=args.host or WEB_HOST,
                port=args.port or WEB_PORT,
            )
            logger.info("Press Ctrl+C to stop")
        try:
            await simulation.run(duration=args.duration)
        finally:
            if runner is not None:
                await runner.cleanup()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted")

    status = simulation.status()
    logger.info(
        f"Done: {status['frames']} frames, {status['perception_ticks']} perception ticks, "
        f"{sum(len(a.memory) for a in simulation.agents)} memories"
    )


if __name__ == "__main__":
    main()
