"""
API Controller - Thin wrapper around VisualSystem for the HTTP surface.

Routes call into this class instead of touching the core components
directly, so transport code never mutates state on its own.
"""

from typing import Any, Dict, Optional, Set

from ecp_visual.core.asyncio_utils import cancel_tasks, create_logged_task
from ecp_visual.core.broadcast import Subscriber
from ecp_visual.core.logging_utils import get_module_logger
from ecp_visual.core.system import VisualSystem


logger = get_module_logger("APIController")


def _package_version() -> str:
    from ecp_visual import __version__
    return __version__


class APIController:
    """
    API controller providing programmatic access to the visual server.

    Wraps a VisualSystem: key injection, state snapshots, and subscriber
    registration for WebSocket observers.
    """

    def __init__(self, system: VisualSystem):
        self.logger = get_module_logger("APIController")
        self.system = system
        self._forwards: Set[Any] = set()

    # =========================================================================
    # System Endpoints
    # =========================================================================

    async def health_check(self) -> Dict[str, Any]:
        """Check server health."""
        return {
            "status": "healthy",
            "version": _package_version(),
            "connected": self.system.state.connected,
        }

    # =========================================================================
    # Control Endpoints
    # =========================================================================

    def press_key(self, key: str, source: str = "unknown", *, forward: bool = False) -> Dict[str, Any]:
        """Apply ``key`` locally and optionally forward it to the device.

        The forward is fire-and-forget; its outcome is reported through the
        broadcast log, never to the caller.
        """
        self.system.handle_key(key, source)
        if forward and self.system.config.device.forward_keypresses:
            create_logged_task(
                self.system.forward_key(key),
                logger=self.logger,
                context=f"forward-key:{key}",
                pending=self._forwards,
            )
        return {"ok": True, "key": key}

    def get_state(self) -> Dict[str, Any]:
        snapshot = self.system.state.safe_state()
        snapshot["logs"] = self.system.log.snapshot_entries()
        return snapshot

    # =========================================================================
    # Subscribers
    # =========================================================================

    def initial_messages(self) -> list[Dict[str, Any]]:
        """Messages a newly connected observer receives, in order."""
        messages: list[Dict[str, Any]] = [
            {"type": "state", "state": self.system.initial_snapshot(), "isInitial": True},
        ]
        messages.extend({"type": "log", "entry": entry} for entry in self.system.log.snapshot_entries())
        return messages

    def subscribe(self, subscriber: Subscriber) -> None:
        self.system.log.subscribe(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        self.system.log.unsubscribe(subscriber)

    @property
    def max_pending_sends(self) -> int:
        return self.system.config.broadcast.max_pending_sends

    async def shutdown(self, reason: Optional[str] = None) -> None:
        await cancel_tasks(self._forwards)
        if reason:
            self.logger.info("Controller shutting down: %s", reason)
