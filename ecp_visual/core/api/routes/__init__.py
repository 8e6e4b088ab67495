"""
API route modules.

- system: Health check
- control: Key injection and state snapshot
- websocket: Observer WebSocket endpoint
- static: Browser visualiser assets (only when a public directory exists)
"""

from .system import setup_system_routes
from .control import setup_control_routes
from .websocket import setup_websocket_routes
from .static import setup_static_routes


def setup_all_routes(app, controller, public_dir=None):
    """Register all routes with the application.

    Static routes go last; they include a catch-all for asset paths.
    """
    setup_system_routes(app, controller)
    setup_control_routes(app, controller)
    setup_websocket_routes(app, controller)
    setup_static_routes(app, public_dir)


__all__ = ["setup_all_routes"]
