"""
Broadcast log - bounded event log plus best-effort fan-out to observers.

Everything observers see goes through here: log entries, state snapshots and
button events. Repeated identical errors (typically a device that has gone
away) are throttled so they do not flood the console or the observers.
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Set, Tuple, runtime_checkable

from .logging_utils import get_module_logger

logger = get_module_logger("BroadcastLog")

DEFAULT_MAX_ENTRIES = 50
DEFAULT_MAX_REPEATS = 5
DEFAULT_COOLDOWN_MS = 10_000


class LogLevel(str, Enum):
    """Levels observers understand. ``ecp`` and ``button`` are info-grade tags."""
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    ECP = "ecp"
    BUTTON = "button"


def _iso_timestamp(moment: datetime) -> str:
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: datetime
    level: str
    message: str
    detail: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ts": _iso_timestamp(self.timestamp),
            "level": self.level,
            "message": self.message,
            "detail": self.detail,
        }


@runtime_checkable
class Subscriber(Protocol):
    """Anything that can receive serialized events.

    ``ready`` is checked before every delivery; a subscriber that is not ready
    simply misses that message.
    """

    @property
    def ready(self) -> bool: ...

    def deliver(self, payload: str) -> None: ...


class ThrottleDecision(Enum):
    EMIT = "emit"
    SUPPRESS = "suppress"
    NOTICE = "notice"


@dataclass
class ErrorThrottle:
    """Per-message error counter with one shared suppression deadline.

    A message is logged normally until it has been seen more than
    ``max_repeats`` times. It is then dropped until the deadline passes; the
    first occurrence after that becomes a single "suppressed" notice and the
    message starts counting from zero again.
    """

    max_repeats: int = DEFAULT_MAX_REPEATS
    cooldown_ms: int = DEFAULT_COOLDOWN_MS
    clock: Callable[[], float] = time.monotonic
    counts: Dict[str, int] = field(default_factory=dict)
    suppressing: Set[str] = field(default_factory=set)
    suppressed_until: float = 0.0

    def check(self, message: str) -> ThrottleDecision:
        count = self.counts.get(message, 0) + 1
        self.counts[message] = count
        if count <= self.max_repeats:
            return ThrottleDecision.EMIT

        now = self.clock()
        if message not in self.suppressing:
            self.suppressing.add(message)
            if self.suppressed_until <= now:
                self.suppressed_until = now + self.cooldown_ms / 1000.0
            return ThrottleDecision.SUPPRESS

        if now < self.suppressed_until:
            return ThrottleDecision.SUPPRESS

        self.suppressing.discard(message)
        self.counts[message] = 0
        return ThrottleDecision.NOTICE

    def reset(self) -> None:
        self.counts.clear()
        self.suppressing.clear()
        self.suppressed_until = 0.0

    @property
    def is_clear(self) -> bool:
        return not self.counts and not self.suppressing and self.suppressed_until == 0.0


class BroadcastLog:
    """Bounded log (most recent first) and the sole path to subscribers."""

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        *,
        throttle: Optional[ErrorThrottle] = None,
        now: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.max_entries = max(1, int(max_entries))
        self.throttle = throttle or ErrorThrottle()
        self._now = now
        self._entries: List[LogEntry] = []
        self._subscribers: List[Subscriber] = []
        self.console = get_module_logger("Log")

    # ------------------------------------------------------------------
    # Subscriber registry

    def subscribe(self, subscriber: Subscriber) -> None:
        if subscriber not in self._subscribers:
            self._subscribers.append(subscriber)
            logger.debug("Subscriber added (%d total)", len(self._subscribers))

    def unsubscribe(self, subscriber: Subscriber) -> None:
        if subscriber in self._subscribers:
            self._subscribers.remove(subscriber)
            logger.debug("Subscriber removed (%d total)", len(self._subscribers))

    @property
    def subscribers(self) -> Tuple[Subscriber, ...]:
        return tuple(self._subscribers)

    # ------------------------------------------------------------------
    # Log

    @property
    def entries(self) -> List[LogEntry]:
        return list(self._entries)

    def snapshot_entries(self) -> List[Dict[str, Any]]:
        return [entry.to_dict() for entry in self._entries]

    def record(self, level: str, message: str, detail: str = "") -> Optional[LogEntry]:
        """Append an entry, echo it to the console and fan it out.

        Returns the stored entry, or ``None`` when an error was throttled.
        """
        level = str(getattr(level, "value", level))

        if level == LogLevel.ERROR.value:
            decision = self.throttle.check(message)
            if decision is ThrottleDecision.SUPPRESS:
                return None
            if decision is ThrottleDecision.NOTICE:
                message = f"{message} (suppressed for {self.throttle.cooldown_ms}ms)"

        entry = LogEntry(timestamp=self._now(), level=level, message=message, detail=detail or "")
        self._entries.insert(0, entry)
        del self._entries[self.max_entries:]

        self.send({"type": "log", "entry": entry.to_dict()})
        self._echo(entry)
        return entry

    def reset_error_throttle(self) -> None:
        self.throttle.reset()

    def _echo(self, entry: LogEntry) -> None:
        if entry.level == LogLevel.ERROR.value:
            if entry.detail:
                self.console.error("%s %s", entry.message, entry.detail)
            else:
                self.console.error(entry.message)
        elif entry.level == LogLevel.WARN.value:
            self.console.warning(entry.message)
        elif entry.level == LogLevel.ECP.value:
            self.console.info("[ECP] %s", entry.message)
        elif entry.level == LogLevel.BUTTON.value:
            self.console.info("[BTN] %s", entry.message)
        else:
            self.console.info(entry.message)

    # ------------------------------------------------------------------
    # Fan-out

    def send(self, event: Dict[str, Any]) -> int:
        """Serialize ``event`` once and hand it to every ready subscriber.

        Returns how many subscribers accepted it.
        """
        if not self._subscribers:
            return 0

        payload = json.dumps(event, default=str)
        delivered = 0
        for subscriber in list(self._subscribers):
            if not subscriber.ready:
                continue
            try:
                subscriber.deliver(payload)
            except Exception as exc:
                logger.warning("Dropping %s for subscriber %r: %s", event.get("type"), subscriber, exc)
                continue
            delivered += 1
        return delivered


__all__ = [
    "DEFAULT_MAX_ENTRIES",
    "DEFAULT_MAX_REPEATS",
    "DEFAULT_COOLDOWN_MS",
    "LogLevel",
    "LogEntry",
    "Subscriber",
    "ThrottleDecision",
    "ErrorThrottle",
    "BroadcastLog",
]
