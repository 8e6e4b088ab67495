"""Exception types shared across the ECP visual server."""

from __future__ import annotations

from typing import Optional


class ECPVisualError(Exception):
    """Base class for errors raised by this package."""


class DeviceUnavailableError(ECPVisualError):
    """The remote device could not be reached or did not answer in time.

    Timeouts, refused connections and transport errors all map here so that
    callers never need to tell them apart.
    """

    def __init__(self, path: str, reason: str, *, cause: Optional[BaseException] = None) -> None:
        super().__init__(f"{path}: {reason}")
        self.path = path
        self.reason = reason
        self.cause = cause


class ConfigError(ECPVisualError):
    """Configuration values that cannot produce a usable server."""


__all__ = ["ECPVisualError", "DeviceUnavailableError", "ConfigError"]
