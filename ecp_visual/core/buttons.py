"""Button press handling: debounce, key→action mapping, parameter updates."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, Iterator, Mapping, Optional

from .logging_utils import get_module_logger
from .state import CanonicalState, resolve_toggle_field

if TYPE_CHECKING:
    from .broadcast import BroadcastLog
    from .config import VisualConfig

logger = get_module_logger("ButtonHandler")

DEFAULT_SOURCE = "unknown"
DEFAULT_DEBOUNCE_MS = 50.0


class ActionKind(Enum):
    HUE = "hue"
    SPEED = "speed"
    COMPLEXITY = "complexity"
    SCALE = "scale"
    CYCLE_MODE = "cycleMode"
    TOGGLE = "toggle"
    VOLUME = "volume"
    RESET = "reset"


@dataclass(frozen=True, slots=True)
class ButtonAction:
    """What a key does, plus the parameters its action kind needs."""

    kind: ActionKind
    value: float = 0.0
    min: Optional[float] = None
    max: Optional[float] = None
    cycle: Optional[int] = None
    param: Optional[str] = None

    @classmethod
    def parse(cls, binding: str) -> "ButtonAction":
        """Parse a binding such as ``speed 0.25 min=0.1 max=5`` or ``toggle param=colorShift``.

        Raises:
            ValueError: unknown action kind, malformed number or missing toggle target.
        """
        tokens = binding.split()
        if not tokens:
            raise ValueError("empty binding")

        try:
            kind = ActionKind(tokens[0])
        except ValueError:
            raise ValueError(f"unknown action '{tokens[0]}'") from None

        value = 0.0
        options: Dict[str, str] = {}
        for token in tokens[1:]:
            if "=" in token:
                name, raw = token.split("=", 1)
                options[name.strip()] = raw.strip()
            else:
                value = float(token)

        unknown = set(options) - {"min", "max", "cycle", "param", "value"}
        if unknown:
            raise ValueError(f"unknown option(s) {sorted(unknown)}")
        if "value" in options:
            value = float(options["value"])

        cycle = int(options["cycle"]) if "cycle" in options else None
        if cycle is not None and cycle < 1:
            raise ValueError("cycle must be >= 1")

        param = options.get("param")
        if kind is ActionKind.TOGGLE:
            if not param or resolve_toggle_field(param) is None:
                raise ValueError(f"toggle needs a known param, got {param!r}")

        lo = float(options["min"]) if "min" in options else None
        hi = float(options["max"]) if "max" in options else None
        if lo is not None and hi is not None and lo > hi:
            raise ValueError(f"min {lo} is greater than max {hi}")

        return cls(kind=kind, value=value, min=lo, max=hi, cycle=cycle, param=param)


class ButtonMapping(Mapping[str, ButtonAction]):
    """Immutable key → action lookup. Unknown keys simply are not present."""

    def __init__(self, actions: Optional[Mapping[str, ButtonAction]] = None) -> None:
        self._actions: Dict[str, ButtonAction] = dict(actions or {})

    @classmethod
    def from_bindings(cls, bindings: Mapping[str, str]) -> "ButtonMapping":
        """Build a mapping from raw ``{key: "action args"}`` strings.

        Bindings that fail to parse are skipped with a warning so a typo in
        one line does not take every other button down with it.
        """
        actions: Dict[str, ButtonAction] = {}
        for key, binding in bindings.items():
            try:
                actions[key] = ButtonAction.parse(binding)
            except ValueError as exc:
                logger.warning("Ignoring binding for key %s (%r): %s", key, binding, exc)
        return cls(actions)

    def __getitem__(self, key: str) -> ButtonAction:
        return self._actions[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._actions)

    def __len__(self) -> int:
        return len(self._actions)

    def __repr__(self) -> str:
        return f"ButtonMapping({sorted(self._actions)})"


def clamp(value: float, lo: float, hi: float) -> float:
    return min(max(value, lo), hi)


class ButtonHandler:
    """Applies key presses from any ingress channel to the canonical state.

    A single debounce gate covers every caller: two deliveries of the same
    press arriving over HTTP and WebSocket within the window collapse into
    one.
    """

    def __init__(
        self,
        state: CanonicalState,
        mapping: ButtonMapping,
        visual: "VisualConfig",
        log: "BroadcastLog",
        *,
        debounce_ms: float = DEFAULT_DEBOUNCE_MS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.state = state
        self.mapping = mapping
        self.visual = visual
        self.log = log
        self.debounce_s = max(0.0, debounce_ms) / 1000.0
        self._clock = clock
        self._last_accepted: Optional[float] = None

    def handle(self, key: str, source: str = DEFAULT_SOURCE) -> CanonicalState:
        now = self._clock()
        if self._last_accepted is not None and now - self._last_accepted < self.debounce_s:
            logger.debug("Debounced key %s from %s", key, source)
            return self.state
        self._last_accepted = now

        suffix = f" [{source}]" if source != DEFAULT_SOURCE else ""
        self.log.record("button", f"Key pressed: {key}{suffix}")

        self.state.record_button(key)

        action = self.mapping.get(key)
        if action is not None:
            self._apply(action)

        self.log.send({"type": "button", "key": key, "params": self.state.params.to_dict()})
        return self.state

    def _apply(self, action: ButtonAction) -> None:
        p = self.state.params
        visual = self.visual

        match action.kind:
            case ActionKind.HUE:
                p.hue = int(p.hue + action.value) % 360
            case ActionKind.SPEED:
                lo = visual.speed_min if action.min is None else action.min
                hi = visual.speed_max if action.max is None else action.max
                p.speed = round(clamp(p.speed + action.value, lo, hi), 2)
            case ActionKind.SCALE:
                lo = visual.scale_min if action.min is None else action.min
                hi = visual.scale_max if action.max is None else action.max
                p.scale = round(clamp(p.scale + action.value, lo, hi), 2)
            case ActionKind.COMPLEXITY:
                if action.cycle:
                    p.complexity = (p.complexity % action.cycle) + 1
                else:
                    floor = visual.complexity_min if action.min is None else action.min
                    p.complexity = int(clamp(p.complexity + action.value, floor, math.inf))
            case ActionKind.CYCLE_MODE:
                modes = visual.modes
                idx = modes.index(p.mode) if p.mode in modes else -1
                p.mode = modes[(idx + 1) % len(modes)]
                self.log.record("button", f"Mode cycled to: {p.mode}")
            case ActionKind.TOGGLE:
                attr = resolve_toggle_field(action.param or "")
                if attr is None:
                    logger.warning("Toggle action without a known param: %r", action.param)
                    return
                setattr(p, attr, not getattr(p, attr))
            case ActionKind.VOLUME:
                self.state.volume = int(clamp(self.state.volume + action.value, 0, 100))
            case ActionKind.RESET:
                p.restore(visual.defaults)
                self.log.record("button", "Params reset to defaults")


__all__ = [
    "DEFAULT_SOURCE",
    "DEFAULT_DEBOUNCE_MS",
    "ActionKind",
    "ButtonAction",
    "ButtonMapping",
    "ButtonHandler",
    "clamp",
]
