"""Canonical device and visual state shared by the poller and button handler."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

HISTORY_LIMIT = 10

DEFAULT_POWER_MODE = "unknown"
DEFAULT_APP_NAME = "Home"
DEFAULT_APP_ID = "0"

# Wire name -> attribute name for boolean params a button may toggle
TOGGLE_FIELDS: Dict[str, str] = {
    "colorShift": "color_shift",
    "pulseOnBeat": "pulse_on_beat",
}


def resolve_toggle_field(name: str) -> Optional[str]:
    """Map a toggle target (``colorShift`` or ``color_shift``) to an attribute."""
    if name in TOGGLE_FIELDS:
        return TOGGLE_FIELDS[name]
    if name in TOGGLE_FIELDS.values():
        return name
    return None


@dataclass(slots=True)
class VisualParams:
    """Generative parameters driven by button presses."""

    hue: int = 200
    speed: float = 1.0
    complexity: int = 3
    scale: float = 1.0
    mode: str = "lissajous"
    color_shift: bool = False
    pulse_on_beat: bool = False

    def copy(self) -> "VisualParams":
        return replace(self)

    def restore(self, other: "VisualParams") -> None:
        """Overwrite every field in place with the values of ``other``."""
        for f in fields(self):
            setattr(self, f.name, getattr(other, f.name))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hue": self.hue,
            "speed": self.speed,
            "complexity": self.complexity,
            "scale": self.scale,
            "mode": self.mode,
            "colorShift": self.color_shift,
            "pulseOnBeat": self.pulse_on_beat,
        }


@dataclass(slots=True)
class CanonicalState:
    """Single source of truth for everything observers can see.

    One instance is created at startup and handed by reference to the poller
    and the button handler. Each of them writes individual fields; no update
    spans both components, so interleaved writes never need a lock.
    """

    params: VisualParams = field(default_factory=VisualParams)
    connected: bool = False
    power_mode: str = DEFAULT_POWER_MODE
    active_app: str = DEFAULT_APP_NAME
    active_app_id: str = DEFAULT_APP_ID
    volume: int = 50
    last_button: Optional[str] = None
    button_history: List[str] = field(default_factory=list)

    def record_button(self, key: str) -> None:
        self.last_button = key
        self.button_history = [key, *self.button_history][:HISTORY_LIMIT]

    def safe_state(self, *, include_buttons: bool = True) -> Dict[str, Any]:
        """Snapshot of the externally shared fields.

        ``include_buttons=False`` blanks ``lastButton``/``buttonHistory`` so a
        freshly connected observer does not replay old presses.
        """
        return {
            "connected": self.connected,
            "powerMode": self.power_mode,
            "activeApp": self.active_app,
            "volume": self.volume,
            "lastButton": self.last_button if include_buttons else None,
            "buttonHistory": list(self.button_history) if include_buttons else [],
            "params": self.params.to_dict(),
        }


__all__ = [
    "HISTORY_LIMIT",
    "DEFAULT_POWER_MODE",
    "DEFAULT_APP_NAME",
    "DEFAULT_APP_ID",
    "TOGGLE_FIELDS",
    "resolve_toggle_field",
    "VisualParams",
    "CanonicalState",
]
