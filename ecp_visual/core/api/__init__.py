"""
HTTP and WebSocket surface for the visual system.

Usage:
    from ecp_visual.core.api import APIServer, APIController

    controller = APIController(visual_system)
    server = APIServer(controller, host="0.0.0.0", port=30002)
    await server.start()
"""

from .controller import APIController
from .server import APIServer, create_app
from .subscribers import WebSocketSubscriber

__all__ = ["APIController", "APIServer", "WebSocketSubscriber", "create_app"]
