"""
Static Routes - Browser visualiser assets.

``/`` serves ``index.html`` from the public directory, or upgrades to the
observer WebSocket when the client asks for one. Other files under the
public directory are served as-is.
"""

from pathlib import Path
from typing import Optional

from aiohttp import web

from ecp_visual.core.logging_utils import get_module_logger

from .websocket import is_websocket_request, websocket_handler


logger = get_module_logger("StaticRoutes")

INDEX_FILE = "index.html"


def setup_static_routes(app: web.Application, public_dir: Optional[Path]) -> None:
    """Register the index route and, when ``public_dir`` exists, the asset routes."""
    root = Path(public_dir).resolve() if public_dir else None
    if root is not None and not root.is_dir():
        logger.info("Public directory %s not found; static files disabled", root)
        root = None
    app["public_dir"] = root

    app.router.add_get("/", index_handler)
    if root is not None:
        app.router.add_get("/{path:.+}", asset_handler)


def _resolve_asset(root: Path, relative: str) -> Optional[Path]:
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        return None
    if not candidate.is_file():
        return None
    return candidate


async def index_handler(request: web.Request) -> web.StreamResponse:
    """GET / - index.html, or the observer WebSocket on upgrade."""
    if is_websocket_request(request):
        return await websocket_handler(request)

    root: Optional[Path] = request.app["public_dir"]
    index = _resolve_asset(root, INDEX_FILE) if root is not None else None
    if index is None:
        raise web.HTTPNotFound(text="No visualiser installed")
    return web.FileResponse(index)


async def asset_handler(request: web.Request) -> web.StreamResponse:
    """GET /{path} - A file under the public directory."""
    root: Path = request.app["public_dir"]
    relative = request.match_info["path"]
    asset = _resolve_asset(root, relative)
    if asset is None and (root / relative).is_dir():
        asset = _resolve_asset(root, f"{relative.rstrip('/')}/{INDEX_FILE}")
    if asset is None:
        raise web.HTTPNotFound(text=f"Not found: /{relative}")
    return web.FileResponse(asset)
