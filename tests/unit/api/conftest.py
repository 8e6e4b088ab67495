"""Pytest fixtures for API unit tests.

Builds a real VisualSystem around a scripted device client, so routes are
exercised end to end without a device on the network.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Coroutine, Optional, TypeVar

import pytest
from aiohttp import web

from ecp_visual.core.api.controller import APIController
from ecp_visual.core.api.server import create_app
from ecp_visual.core.config import AppConfig
from ecp_visual.core.config_manager import get_config_manager
from ecp_visual.core.paths import DEFAULT_CONFIG_PATH
from ecp_visual.core.system import VisualSystem

from tests.unit.fakes import FakeDeviceClient


T = TypeVar("T")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run an async coroutine synchronously for testing."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def make_config(**overrides: str) -> AppConfig:
    raw = get_config_manager().read_config(DEFAULT_CONFIG_PATH)
    # No debounce: tests press keys back to back
    raw["buttons.debounce_ms"] = "0"
    raw.update(overrides)
    return AppConfig.from_config(raw, env={})


def create_test_system(config: Optional[AppConfig] = None) -> VisualSystem:
    return VisualSystem(config or make_config(), client=FakeDeviceClient())


def create_test_app(controller: APIController, public_dir: Optional[Path] = None) -> web.Application:
    return create_app(controller, public_dir)


async def receive_until(ws, kind: str, *, timeout: float = 2.0) -> dict:
    """Read JSON messages until one of type ``kind`` arrives."""
    while True:
        message = await ws.receive_json(timeout=timeout)
        if message.get("type") == kind:
            return message


@pytest.fixture
def system() -> VisualSystem:
    return create_test_system()


@pytest.fixture
def controller(system: VisualSystem) -> APIController:
    return APIController(system)


@pytest.fixture
def public_dir(tmp_path: Path) -> Path:
    root = tmp_path / "public"
    root.mkdir()
    (root / "index.html").write_text("<html><body>visualiser</body></html>", encoding="utf-8")
    (root / "app.js").write_text("console.log('hi');", encoding="utf-8")
    (tmp_path / "secret.txt").write_text("nope", encoding="utf-8")
    return root
