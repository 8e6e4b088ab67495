"""Test doubles shared by the unit tests."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Union

from ecp_visual.core.errors import DeviceUnavailableError


def device_info_xml(power_mode: Optional[str] = "PowerOn") -> str:
    field = f"<power-mode>{power_mode}</power-mode>" if power_mode is not None else ""
    return f"<device-info><model-name>Test TV</model-name>{field}</device-info>"


def active_app_xml(name: str = "Home", app_id: str = "0") -> str:
    return f'<active-app><app id="{app_id}">{name}</app></active-app>'


class FakeClock:
    """Monotonic clock the test advances by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000.0


class RecordingSubscriber:
    """Subscriber that keeps every payload it is handed."""

    def __init__(self, *, ready: bool = True, fail: bool = False) -> None:
        self._ready = ready
        self.fail = fail
        self.payloads: List[str] = []

    @property
    def ready(self) -> bool:
        return self._ready

    def set_ready(self, value: bool) -> None:
        self._ready = value

    def deliver(self, payload: str) -> None:
        if self.fail:
            raise RuntimeError("subscriber exploded")
        self.payloads.append(payload)

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return [json.loads(p) for p in self.payloads]

    def of_type(self, kind: str) -> List[Dict[str, Any]]:
        return [m for m in self.messages if m.get("type") == kind]


Reply = Union[str, BaseException]


class FakeDeviceClient:
    """Scripted DeviceClient.

    Each query pops the next reply from its queue; once the queue is down to
    one item that item repeats. An exception instance is raised instead of
    returned.
    """

    def __init__(
        self,
        info: Sequence[Reply] = (device_info_xml(),),
        app: Sequence[Reply] = (active_app_xml(),),
        *,
        host: str = "10.0.0.5",
        port: int = 8060,
    ) -> None:
        self.info_replies: List[Reply] = list(info)
        self.app_replies: List[Reply] = list(app)
        self.host = host
        self.port = port
        self.info_calls = 0
        self.app_calls = 0
        self.keypresses: List[str] = []
        self.closed = False
        self.gate: Optional[asyncio.Event] = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @staticmethod
    def _next(replies: List[Reply]) -> str:
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def get_device_info(self) -> str:
        self.info_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        return self._next(self.info_replies)

    async def get_active_app(self) -> str:
        self.app_calls += 1
        return self._next(self.app_replies)

    async def keypress(self, key: str) -> bool:
        self.keypresses.append(key)
        return True

    async def close(self) -> None:
        self.closed = True


def unreachable(path: str = "/query/device-info") -> DeviceUnavailableError:
    return DeviceUnavailableError(path, "connection refused")
