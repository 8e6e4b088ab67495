"""
VisualSystem - composition root for the ECP visual server.

Builds the single CanonicalState and hands it by reference to the poller and
the button handler, wires both to one BroadcastLog, and owns the start/stop
lifecycle of the polling loop and the device session.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from .broadcast import BroadcastLog, ErrorThrottle
from .buttons import ButtonHandler
from .config import AppConfig
from .ecp_client import ECPClient
from .logging_utils import get_module_logger
from .poller import DeviceClient, PollScheduler, StatePoller
from .state import CanonicalState

logger = get_module_logger("VisualSystem")


class VisualSystem:
    """Owns the core components and their shared state.

    ``client`` and ``clock`` are injectable so tests can drive the system
    without a device or real time.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        client: Optional[DeviceClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config

        self.state = CanonicalState(params=config.visual.defaults.copy())

        throttle = ErrorThrottle(
            max_repeats=config.errors.max_repeats,
            cooldown_ms=config.errors.cooldown_ms,
            clock=clock,
        )
        self.log = BroadcastLog(config.broadcast.max_entries, throttle=throttle)

        if client is None:
            client = ECPClient(
                config.device.host,
                config.device.port,
                config.device.timeout_ms,
                log=self.log,
            )
        self.client = client

        self.poller = StatePoller(self.client, self.state, self.log)
        self.scheduler = PollScheduler(self.poller, config.poll.interval_ms)
        self.buttons = ButtonHandler(
            self.state,
            config.buttons.mapping,
            config.visual,
            self.log,
            debounce_ms=config.buttons.debounce_ms,
            clock=clock,
        )
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def handle_key(self, key: str, source: str = "unknown") -> CanonicalState:
        return self.buttons.handle(key, source)

    async def forward_key(self, key: str) -> bool:
        """Pass ``key`` on to the device when it supports keypresses."""
        keypress = getattr(self.client, "keypress", None)
        if keypress is None:
            return False
        return await keypress(key)

    def initial_snapshot(self) -> dict:
        include_buttons = self.config.broadcast.replay_buttons_on_connect
        return self.state.safe_state(include_buttons=include_buttons)

    async def start(self) -> None:
        if self._running:
            logger.warning("Visual system already running")
            return
        logger.info(
            "Starting: device %s:%d, poll %d ms, %d button bindings",
            self.config.device.host,
            self.config.device.port,
            self.config.poll.interval_ms,
            len(self.config.buttons.mapping),
        )
        self.scheduler.start()
        self._running = True

    async def stop(self) -> None:
        """Stop polling and tell observers to reload."""
        if not self._running:
            return
        self._running = False
        await self.scheduler.stop()
        self.log.send({"type": "reload"})
        logger.info("Visual system stopped")

    async def close(self) -> None:
        """Release the device session. Call after the server has stopped."""
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()


__all__ = ["VisualSystem"]
