"""
ECP client - HTTP access to a Roku-style External Control Protocol device.

The device only answers polls; it never pushes. Queries return small XML
documents which are picked apart with regular expressions rather than a full
XML parser, and missing fields fall back to defaults instead of raising.
"""

from __future__ import annotations

import asyncio
import re
from typing import TYPE_CHECKING, Optional, Tuple
from urllib.parse import quote

import aiohttp

from .errors import DeviceUnavailableError
from .logging_utils import get_module_logger
from .state import DEFAULT_APP_ID, DEFAULT_APP_NAME, DEFAULT_POWER_MODE

if TYPE_CHECKING:
    from .broadcast import BroadcastLog

logger = get_module_logger("ECPClient")

DEFAULT_PORT = 8060
DEFAULT_TIMEOUT_MS = 1500

_APP_ELEMENT = re.compile(r"<app\b([^>]*)>([^<]*)</app>")
_ID_ATTR = re.compile(r"""\bid\s*=\s*["']([^"']*)["']""")


def xml_field(xml: str, tag: str) -> Optional[str]:
    """Return the stripped text of ``<tag>…</tag>``, or ``None`` if absent."""
    match = re.search(rf"<{re.escape(tag)}>([^<]*)</{re.escape(tag)}>", xml or "")
    return match.group(1).strip() if match else None


def parse_power_mode(xml: str) -> str:
    return xml_field(xml, "power-mode") or DEFAULT_POWER_MODE


def parse_active_app(xml: str) -> Tuple[str, str]:
    """Extract ``(name, id)`` from an active-app document.

    Accepts both flat ``<name>``/``<id>`` elements and the
    ``<app id="12">Netflix</app>`` form real devices answer with.
    """
    name = xml_field(xml, "name")
    app_id = xml_field(xml, "id")

    if name is None or app_id is None:
        match = _APP_ELEMENT.search(xml or "")
        if match:
            attrs, body = match.groups()
            if name is None and body.strip():
                name = body.strip()
            if app_id is None:
                id_match = _ID_ATTR.search(attrs)
                if id_match:
                    app_id = id_match.group(1).strip()

    return name or DEFAULT_APP_NAME, app_id or DEFAULT_APP_ID


class ECPClient:
    """Async client for one ECP device.

    One ``aiohttp.ClientSession`` is opened lazily and reused for every
    request; call :meth:`close` on shutdown.
    """

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        *,
        log: Optional["BroadcastLog"] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.host = host
        self.port = port
        self.timeout_ms = timeout_ms
        self.log = log
        self._timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000.0)
        self._session = session
        self._owns_session = session is None
        self._base_url = f"http://{host}:{port}"

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    # ------------------------------------------------------------------
    # Transport

    async def get(self, path: str) -> str:
        """GET ``path`` and return the body text whatever the status code."""
        url = f"{self._base_url}{path}"
        try:
            async with self._get_session().get(url, timeout=self._timeout) as response:
                return await response.text(errors="replace")
        except asyncio.TimeoutError as exc:
            raise DeviceUnavailableError(path, "timeout", cause=exc) from exc
        except (aiohttp.ClientError, OSError) as exc:
            raise DeviceUnavailableError(path, str(exc) or type(exc).__name__, cause=exc) from exc

    async def post(self, path: str) -> None:
        url = f"{self._base_url}{path}"
        try:
            async with self._get_session().post(url, data=b"", timeout=self._timeout) as response:
                await response.read()
        except asyncio.TimeoutError as exc:
            raise DeviceUnavailableError(path, "timeout", cause=exc) from exc
        except (aiohttp.ClientError, OSError) as exc:
            raise DeviceUnavailableError(path, str(exc) or type(exc).__name__, cause=exc) from exc

    # ------------------------------------------------------------------
    # ECP operations

    async def get_device_info(self) -> str:
        return await self.get("/query/device-info")

    async def get_active_app(self) -> str:
        return await self.get("/query/active-app")

    async def keypress(self, key: str) -> bool:
        """Send ``key`` to the device. Failures are logged, never raised."""
        try:
            await self.post(f"/keypress/{quote(key, safe='')}")
            return True
        except DeviceUnavailableError as exc:
            if self.log is not None:
                self.log.record("error", f"ECP keypress {key} failed", exc.reason)
            else:
                logger.error("ECP keypress %s failed: %s", key, exc.reason)
            return False


__all__ = [
    "DEFAULT_PORT",
    "DEFAULT_TIMEOUT_MS",
    "ECPClient",
    "xml_field",
    "parse_power_mode",
    "parse_active_app",
]
