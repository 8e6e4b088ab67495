"""Component-tagged loggers under the ``ecp_visual`` namespace.

Every component asks for ``get_module_logger("Poller")`` and gets a logger
that prefixes its lines with ``[Poller]``, so the console reads the same
whichever module produced a line.
"""

from __future__ import annotations

import logging
from typing import Optional, Union

LOGGER_NAMESPACE = "ecp_visual"
FALLBACK_COMPONENT = "Server"


def _qualified_name(name: Optional[str]) -> str:
    if not name:
        return LOGGER_NAMESPACE
    if name == LOGGER_NAMESPACE or name.startswith(f"{LOGGER_NAMESPACE}."):
        return name
    return f"{LOGGER_NAMESPACE}.{name}"


def _component_for(name: str) -> str:
    # "ecp_visual.app.master" -> "master", "ecp_visual.Poller" -> "Poller"
    tail = name[len(LOGGER_NAMESPACE):].lstrip(".") if name.startswith(LOGGER_NAMESPACE) else name
    return tail.rsplit(".", 1)[-1] or FALLBACK_COMPONENT


class StructuredLogger:
    """Wraps a stdlib logger and tags each message with ``[component]``.

    Arguments are merged before tagging; a format string that does not match
    its arguments is logged with the arguments appended rather than raising
    inside a log call.
    """

    __slots__ = ("_logger", "_component")

    def __init__(self, logger: logging.Logger, component: Optional[str] = None) -> None:
        self._logger = logger
        self._component = component or _component_for(logger.name)

    def __getattr__(self, item):
        return getattr(self._logger, item)

    @property
    def name(self) -> str:
        return self._logger.name

    @property
    def component(self) -> str:
        return self._component

    def _render(self, message: object, args: tuple) -> str:
        text = str(message)
        if args:
            try:
                text = text % args
            except (TypeError, ValueError):
                text = f"{text} | args={' '.join(map(str, args))}"
        tag = f"[{self._component}]"
        return text if text.startswith(tag) else f"{tag} {text}"

    def log(self, level: int, message: object, *args, **kwargs) -> None:
        if self._logger.isEnabledFor(level):
            self._logger.log(level, self._render(message, args), **kwargs)

    def debug(self, message: object, *args, **kwargs) -> None:
        self.log(logging.DEBUG, message, *args, **kwargs)

    def info(self, message: object, *args, **kwargs) -> None:
        self.log(logging.INFO, message, *args, **kwargs)

    def warning(self, message: object, *args, **kwargs) -> None:
        self.log(logging.WARNING, message, *args, **kwargs)

    def error(self, message: object, *args, **kwargs) -> None:
        self.log(logging.ERROR, message, *args, **kwargs)

    def exception(self, message: object, *args, **kwargs) -> None:
        kwargs.setdefault("exc_info", True)
        self.log(logging.ERROR, message, *args, **kwargs)


LoggerLike = Union[StructuredLogger, logging.Logger, None]


def ensure_structured_logger(logger: LoggerLike, *, fallback_name: Optional[str] = None) -> StructuredLogger:
    """Accept whatever logger a caller passed and return a tagged one."""
    if isinstance(logger, StructuredLogger):
        return logger
    if isinstance(logger, logging.Logger):
        return StructuredLogger(logger)
    return get_module_logger(fallback_name)


def get_module_logger(name: Optional[str] = None) -> StructuredLogger:
    """Return a structured logger scoped to the ecp_visual namespace."""
    return StructuredLogger(logging.getLogger(_qualified_name(name)))


__all__ = [
    "LoggerLike",
    "StructuredLogger",
    "ensure_structured_logger",
    "get_module_logger",
]
