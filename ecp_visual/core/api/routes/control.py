"""
Control Routes - Key injection and state snapshot.
"""

from aiohttp import web

from ..controller import APIController


def setup_control_routes(app: web.Application, controller: APIController) -> None:
    """Register control routes."""
    app.router.add_post("/keypress/{key}", keypress_handler)
    app.router.add_get("/state", state_handler)


async def keypress_handler(request: web.Request) -> web.Response:
    """POST /keypress/{key} - Inject a key press and forward it to the device."""
    controller: APIController = request.app["controller"]
    key = request.match_info["key"]
    result = controller.press_key(key, forward=True)
    return web.json_response(result)


async def state_handler(request: web.Request) -> web.Response:
    """GET /state - Current state snapshot plus the log."""
    controller: APIController = request.app["controller"]
    return web.json_response(controller.get_state())
