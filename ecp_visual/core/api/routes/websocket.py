"""
WebSocket Routes - Observer endpoint.

Each connection becomes a BroadcastLog subscriber. It first receives the
initial snapshot and the stored log, then every broadcast until it closes.
Inbound ``{"type": "keypress", "key": ...}`` messages are applied as button
presses; anything else is ignored.
"""

import json
from typing import Any, Optional

from aiohttp import WSCloseCode, WSMsgType, web

from ecp_visual.core.logging_utils import get_module_logger

from ..controller import APIController
from ..subscribers import WebSocketSubscriber


logger = get_module_logger("WebSocketRoutes")

WS_SOURCE = "WS"
HEARTBEAT_SECONDS = 20.0


def setup_websocket_routes(app: web.Application, controller: APIController) -> None:
    """Register WebSocket routes. ``/`` upgrades are handled by the index route."""
    app.router.add_get("/ws", websocket_handler)


def is_websocket_request(request: web.Request) -> bool:
    return request.headers.get("Upgrade", "").lower() == "websocket"


def parse_keypress(raw: str) -> Optional[str]:
    """Return the key of a well-formed keypress message, else ``None``."""
    try:
        message: Any = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(message, dict) or message.get("type") != "keypress":
        return None
    key = message.get("key")
    if not isinstance(key, str) or not key:
        return None
    return key


async def websocket_handler(request: web.Request) -> web.WebSocketResponse:
    """GET /ws - Observer WebSocket."""
    controller: APIController = request.app["controller"]
    ws = web.WebSocketResponse(heartbeat=HEARTBEAT_SECONDS)
    await ws.prepare(request)

    peer = request.remote or "?"
    subscriber = WebSocketSubscriber(ws, max_pending=controller.max_pending_sends, peer=peer)
    sockets = request.app["websockets"]
    sockets.add(subscriber)
    logger.info("Client connected: %s", peer)

    try:
        # Broadcasts published while the initial sync is in flight wait
        # behind it instead of being lost
        subscriber.hold()
        controller.subscribe(subscriber)
        for message in controller.initial_messages():
            await ws.send_str(json.dumps(message))
        subscriber.release()

        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                key = parse_keypress(msg.data)
                if key is None:
                    logger.debug("Ignoring message from %s: %.80s", peer, msg.data)
                    continue
                controller.press_key(key, WS_SOURCE)
            elif msg.type == WSMsgType.ERROR:
                logger.warning("Connection to %s closed with error: %s", peer, ws.exception())
                break
    except ConnectionResetError:
        logger.debug("Client %s reset the connection", peer)
    finally:
        controller.unsubscribe(subscriber)
        sockets.discard(subscriber)
        await subscriber.close()
        logger.info("Client disconnected: %s", peer)

    return ws


async def close_all_websockets(app: web.Application) -> None:
    """on_shutdown hook: close every open observer socket."""
    subscribers = list(app["websockets"])
    for subscriber in subscribers:
        await subscriber.close(code=WSCloseCode.GOING_AWAY, message=b"Server shutdown")
    app["websockets"].clear()
    if subscribers:
        logger.info("Closed %d WebSocket connection(s)", len(subscribers))
