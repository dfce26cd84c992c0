"""
Web server - aiohttp application for the simulation.

Inputs from the outside world (geometry, attractor, parameters) come
in over HTTP; poses, prediction errors and memory snapshots go out
over HTTP and a WebSocket stream for an external renderer.
"""

import asyncio
import json
import logging

from aiohttp import web

from fireflies.config import WEB_HOST, WEB_PORT, WS_STREAM_HZ
from fireflies.perception.world_state import GeometryError

logger = logging.getLogger(__name__)


class WebServer:
    """
    Simulation web interface.

    Provides:
    - Status, poses, prediction errors and memory snapshots (JSON)
    - World geometry ingestion
    - Attractor (cursor) updates
    - Parameter tuning
    - State stream (WebSocket)
    """

    def __init__(self, simulation=None, stream_hz: float = WS_STREAM_HZ):
        """
        Args:
            simulation: Optional Simulation instance for live data
            stream_hz: WebSocket state stream rate
        """
        self.simulation = simulation
        self.stream_hz = stream_hz
        self.app = web.Application()
        self._setup_routes()

    def _setup_routes(self):
        """Configure routes."""
        self.app.router.add_get("/api/status", self.api_status)
        self.app.router.add_get("/api/agents", self.api_agents)
        self.app.router.add_get("/api/agents/{agent_id}/memory", self.api_agent_memory)
        self.app.router.add_get("/api/errors", self.api_errors)

        # Geometry provider
        self.app.router.add_get("/api/world", self.api_world_get)
        self.app.router.add_post("/api/world", self.api_world_set)

        # External attractor
        self.app.router.add_post("/api/attractor", self.api_attractor_set)
        self.app.router.add_delete("/api/attractor", self.api_attractor_clear)

        # Parameters
        self.app.router.add_get("/api/params", self.api_params_get)
        self.app.router.add_post("/api/params", self.api_params_set)

        # Streaming
        self.app.router.add_get("/ws/state", self.ws_state)

    def _unavailable(self):
        return web.json_response({"error": "Simulation not available"}, status=404)

    async def _read_json(self, request):
        """Request body as a JSON object, or raise HTTPBadRequest."""
        try:
            data = await request.json()
        except ValueError:
            raise web.HTTPBadRequest(
                text='{"error": "Invalid JSON"}', content_type="application/json"
            ) from None
        if not isinstance(data, dict):
            raise web.HTTPBadRequest(
                text='{"error": "Expected a JSON object"}', content_type="application/json"
            )
        return data

    async def api_status(self, request):
        """Get current simulation status."""
        if not self.simulation:
            return web.json_response({"state": "unknown", "agents": 0})
        return web.json_response(self.simulation.status())

    async def api_agents(self, request):
        """Get every firefly's pose."""
        if not self.simulation:
            return self._unavailable()
        return web.json_response({
            "time": self.simulation.now,
            "agents": self.simulation.poses(),
        })

    async def api_agent_memory(self, request):
        """Get one firefly's memory snapshot."""
        if not self.simulation:
            return self._unavailable()

        agent_id = request.match_info["agent_id"]
        snapshot = self.simulation.memory_snapshot(agent_id)
        if agent_id not in snapshot:
            return web.json_response({"error": f"Unknown agent {agent_id}"}, status=404)
        return web.json_response({"agent_id": agent_id, "entries": snapshot[agent_id]})

    async def api_errors(self, request):
        """Get prediction errors still on display."""
        if not self.simulation:
            return self._unavailable()
        errors = self.simulation.active_errors()
        return web.json_response({
            "time": self.simulation.now,
            "errors": [e.to_dict() for e in errors],
        })

    async def api_world_get(self, request):
        """Get the current world geometry."""
        if not self.simulation:
            return self._unavailable()
        if self.simulation.world is None:
            return web.json_response({"error": "No world loaded"}, status=404)
        return web.json_response(self.simulation.world.to_dict())

    async def api_world_set(self, request):
        """Replace world geometry. Malformed geometry is rejected with 400."""
        if not self.simulation:
            return self._unavailable()

        data = await self._read_json(request)
        try:
            state = self.simulation.load_world(data)
        except GeometryError as e:
            logger.warning(f"Rejected geometry: {e}")
            return web.json_response({"error": str(e)}, status=400)

        world = self.simulation.world
        logger.info(
            f"World updated: {world.bounds.width:.0f}x{world.bounds.height:.0f}, "
            f"{len(world.obstacles)} obstacles"
        )
        return web.json_response({"state": state.name, "world": world.to_dict()})

    async def api_attractor_set(self, request):
        """Move the attractor to {x, y}."""
        if not self.simulation:
            return self._unavailable()

        data = await self._read_json(request)
        try:
            x = float(data["x"])
            y = float(data["y"])
            strength = float(data.get("strength", 1.0))
        except (KeyError, TypeError, ValueError):
            return web.json_response({"error": "Expected numeric x and y"}, status=400)
        try:
            self.simulation.set_attractor(x, y, strength=strength)
        except GeometryError as e:
            return web.json_response({"error": str(e)}, status=400)
        return web.json_response({"x": x, "y": y, "strength": strength})

    async def api_attractor_clear(self, request):
        """Remove the attractor."""
        if not self.simulation:
            return self._unavailable()
        self.simulation.clear_attractor()
        return web.json_response({"ok": True})

    async def api_params_get(self, request):
        """Get current tunable parameters."""
        if self.simulation and self.simulation.params:
            return web.json_response(self.simulation.params.to_dict())
        return web.json_response({"error": "Parameters not available"}, status=404)

    async def api_params_set(self, request):
        """Update tunable parameters; invalid values are logged and skipped."""
        if not self.simulation or not self.simulation.params:
            return web.json_response({"error": "Parameters not available"}, status=404)

        data = await self._read_json(request)
        self.simulation.params.update(**data)
        return web.json_response(self.simulation.params.to_dict())

    async def ws_state(self, request):
        """
        WebSocket streaming poses and prediction errors.

        Clients may send {"cmd": "attractor", "x": .., "y": ..} to move
        the attractor without a separate HTTP request.
        """
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        logger.info("State WebSocket connected")
        stream = asyncio.ensure_future(self._stream_state(ws))

        try:
            async for msg in ws:
                if msg.type == web.WSMsgType.TEXT:
                    try:
                        data = json.loads(msg.data)
                        if data.get("cmd") == "attractor" and self.simulation:
                            self.simulation.set_attractor(float(data["x"]), float(data["y"]))
                            await ws.send_json({"ok": True})
                    except (ValueError, KeyError, TypeError, AttributeError) as e:
                        await ws.send_json({"error": str(e)})

        except Exception as e:
            logger.error(f"State WebSocket error: {e}")
        finally:
            stream.cancel()
            try:
                await stream
            except asyncio.CancelledError:
                pass
            logger.info("State WebSocket disconnected")

        return ws

    async def _stream_state(self, ws):
        period = 1.0 / self.stream_hz
        while not ws.closed:
            if self.simulation:
                try:
                    await ws.send_json({
                        "time": self.simulation.now,
                        "state": self.simulation.state.name,
                        "agents": self.simulation.poses(),
                        "errors": [e.to_dict() for e in self.simulation.active_errors()],
                    })
                except ConnectionResetError:
                    break
            await asyncio.sleep(period)


def create_app(simulation=None, stream_hz: float = WS_STREAM_HZ) -> web.Application:
    """Create the web application."""
    server = WebServer(simulation, stream_hz)
    return server.app


async def run_server(simulation=None, host=WEB_HOST, port=WEB_PORT):
    """Run the web server."""
    app = create_app(simulation)
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info(f"Web server running at http://{host}:{port}")
    return runner
