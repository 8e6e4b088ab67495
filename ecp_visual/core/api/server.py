"""
API Server - aiohttp-based HTTP and WebSocket server for the visual system.

Serves key injection, the state snapshot, the WebSocket observer endpoint
and, when present, the browser visualiser's static files.
"""

from typing import Optional

from aiohttp import web

from ecp_visual.core.logging_utils import get_module_logger

from .controller import APIController
from .middleware import (
    error_handling_middleware,
    request_logging_middleware,
    set_debug_mode,
)
from .routes import setup_all_routes
from .routes.websocket import close_all_websockets


logger = get_module_logger("APIServer")


def create_app(controller: APIController, public_dir=None) -> web.Application:
    """Create and configure the aiohttp application."""
    app = web.Application(middlewares=[request_logging_middleware, error_handling_middleware])
    app["controller"] = controller
    app["websockets"] = set()
    setup_all_routes(app, controller, public_dir=public_dir)
    app.on_shutdown.append(close_all_websockets)
    return app


class APIServer:
    """
    HTTP server for the visual system.

    The server uses aiohttp and shares the event loop with the poller, so
    request handlers and polls interleave only at await points.
    """

    def __init__(
        self,
        controller: APIController,
        host: str = "0.0.0.0",
        port: int = 30002,
        public_dir=None,
        debug: bool = False,
    ):
        """
        Initialize the API server.

        Args:
            controller: APIController instance wrapping VisualSystem
            host: Host to bind to
            port: Port to bind to
            public_dir: Directory with index.html and assets, if any
            debug: If True, enable verbose error responses
        """
        self.controller = controller
        self.host = host
        self.port = port
        self.public_dir = public_dir
        self.debug = debug

        self._app: Optional[web.Application] = None
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None
        self._running = False

        set_debug_mode(debug)

    @property
    def app(self) -> Optional[web.Application]:
        return self._app

    async def start(self) -> None:
        """Start the server (non-blocking)."""
        if self._running:
            logger.warning("API server already running")
            return

        self._app = create_app(self.controller, self.public_dir)
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()

        self._running = True
        mode_info = " (debug mode)" if self.debug else ""
        logger.info("Server running at http://%s:%d%s", self.host, self.port, mode_info)

    async def stop(self) -> None:
        """Stop the server gracefully, closing open WebSockets first."""
        if not self._running:
            return

        logger.info("Stopping API server...")

        if self._runner:
            # cleanup() runs on_shutdown, which closes the sockets
            await self._runner.cleanup()
            self._runner = None

        self._site = None
        self._app = None
        self._running = False

        await self.controller.shutdown()
        logger.info("API server stopped")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"
