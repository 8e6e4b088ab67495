"""
State poller - reconciles the canonical state against the device.

The device cannot push, so connectivity, power mode and the foreground app are
discovered by polling on a fixed cadence. Each poll compares what the device
reports with the canonical state and broadcasts a snapshot only when
something observers care about actually changed.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional, Protocol, Set

from .asyncio_utils import cancel_tasks, create_logged_task
from .broadcast import BroadcastLog
from .errors import DeviceUnavailableError
from .ecp_client import parse_active_app, parse_power_mode
from .logging_utils import get_module_logger
from .state import CanonicalState

logger = get_module_logger("StatePoller")

APP_CHANGE_HUE_SHIFT = 47
DEFAULT_POLL_INTERVAL_MS = 200


class DeviceClient(Protocol):
    """What the poller needs from a device connection."""

    @property
    def address(self) -> str: ...

    async def get_device_info(self) -> str: ...

    async def get_active_app(self) -> str: ...


class StatePoller:
    """Runs one reconciliation cycle per :meth:`poll` call.

    Calls may overlap when the device is slow; each cycle writes individual
    fields of the shared state and tolerates another cycle doing the same.
    """

    def __init__(self, client: DeviceClient, state: CanonicalState, log: BroadcastLog) -> None:
        self.client = client
        self.state = state
        self.log = log
        self.error_count = 0
        self.connected = False
        self.has_connected_once = False
        # Set only when a live connection drops; cleared by the next success
        self._lost = False

    async def poll(self) -> None:
        try:
            info_xml = await self.client.get_device_info()
        except DeviceUnavailableError as exc:
            self._on_failure(exc)
            return

        power_mode = parse_power_mode(info_xml)

        self.error_count = 0
        self.log.reset_error_throttle()

        changed = False
        restoring = False

        if not self.has_connected_once:
            self.has_connected_once = True
            # Initial reading, not a transition
            self.state.power_mode = power_mode
            self.log.record("info", f"ECP connected to device at {self.client.address}")
            self.log.record("info", f"Device is {'on' if power_mode == 'PowerOn' else power_mode}")
        else:
            if self._lost:
                self._lost = False
                restoring = True
                self.log.record("info", "ECP connection restored")
                changed = True
            if power_mode != self.state.power_mode:
                self.state.power_mode = power_mode
                self.log.record("ecp", f"Power mode changed: {power_mode}")
                changed = True

        try:
            app_xml = await self.client.get_active_app()
        except DeviceUnavailableError as exc:
            if restoring:
                self._lost = True
            self._on_failure(exc)
            return

        app_name, app_id = parse_active_app(app_xml)
        if app_name != self.state.active_app:
            self.state.active_app = app_name
            self.state.active_app_id = app_id
            self.log.record("ecp", f"App changed: {app_name}")
            self.state.params.hue = (self.state.params.hue + APP_CHANGE_HUE_SHIFT) % 360
            changed = True

        self.connected = True
        self.state.connected = True

        if changed:
            self.log.send({"type": "state", "state": self.state.safe_state()})

    def _on_failure(self, exc: DeviceUnavailableError) -> None:
        self.error_count += 1
        logger.debug("Poll failed (%d consecutive): %s", self.error_count, exc)

        if self.connected:
            self.connected = False
            self._lost = True
            self.state.connected = False
            self.log.record("warn", f"ECP connection lost after {self.error_count} errors")
            self.log.send({"type": "state", "state": self.state.safe_state()})
        elif self.error_count == 1:
            self.log.record("warn", f"ECP not reachable at {self.client.address}")


class PollScheduler:
    """Fires :meth:`StatePoller.poll` every ``interval_ms``.

    A tick never waits for the previous poll to finish, so a slow device can
    have several polls in flight at once.
    """

    def __init__(self, poller: StatePoller, interval_ms: float = DEFAULT_POLL_INTERVAL_MS) -> None:
        if interval_ms <= 0:
            raise ValueError("poll interval must be positive")
        self.poller = poller
        self.interval = interval_ms / 1000.0
        self._ticker: Optional[asyncio.Task[Any]] = None
        self._in_flight: Set[asyncio.Task[Any]] = set()

    @property
    def is_running(self) -> bool:
        return self._ticker is not None and not self._ticker.done()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def start(self) -> None:
        if self.is_running:
            logger.warning("Poll scheduler already running")
            return
        self._ticker = create_logged_task(self._run(), logger=logger, context="poll-ticker")
        logger.info("Polling every %.0f ms", self.interval * 1000)

    async def stop(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        await cancel_tasks(self._in_flight)
        logger.info("Poll scheduler stopped")

    def _spawn_poll(self) -> None:
        create_logged_task(
            self.poller.poll(),
            logger=logger,
            context="poll",
            pending=self._in_flight,
        )

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while True:
            self._spawn_poll()
            next_tick += self.interval
            # Fixed cadence; if the loop fell behind, restart from now
            delay = next_tick - loop.time()
            if delay < 0:
                next_tick = loop.time()
                delay = 0
            await asyncio.sleep(delay)


__all__ = [
    "APP_CHANGE_HUE_SHIFT",
    "DEFAULT_POLL_INTERVAL_MS",
    "DeviceClient",
    "StatePoller",
    "PollScheduler",
]
