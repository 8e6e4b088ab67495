"""Typed configuration for the ECP visual server."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence, Tuple

from .buttons import DEFAULT_DEBOUNCE_MS, ButtonMapping
from .broadcast import DEFAULT_COOLDOWN_MS, DEFAULT_MAX_ENTRIES, DEFAULT_MAX_REPEATS
from .config_manager import get_config_manager
from .ecp_client import DEFAULT_PORT as DEFAULT_DEVICE_PORT
from .ecp_client import DEFAULT_TIMEOUT_MS
from .errors import ConfigError
from .logging_utils import get_module_logger
from .paths import DEFAULT_CONFIG_PATH, PUBLIC_DIR, USER_CONFIG_PATH
from .poller import DEFAULT_POLL_INTERVAL_MS
from .state import VisualParams

logger = get_module_logger("Config")

DEFAULT_DEVICE_HOST = "192.168.1.155"
DEFAULT_HTTP_PORT = 30002
DEFAULT_MODES: Tuple[str, ...] = ("lissajous", "rose", "spirograph", "wave", "particles")

ENV_DEVICE_HOST = "ECP_HOST"
ENV_DEVICE_HOST_ALIAS = "ROKU_IP"
ENV_HTTP_PORT = "PORT"


# ---------------------------------------------------------------------------
# Type coercion helpers for from_config() implementations
# ---------------------------------------------------------------------------


def get_pref_str(prefs: Mapping[str, str], key: str, default: str) -> str:
    val = prefs.get(key)
    return str(val) if val is not None else default


def get_pref_int(prefs: Mapping[str, str], key: str, default: int) -> int:
    val = prefs.get(key)
    if val is None:
        return default
    try:
        return int(val)
    except (ValueError, TypeError):
        logger.warning("Invalid int for %s: %r, using %d", key, val, default)
        return default


def get_pref_float(prefs: Mapping[str, str], key: str, default: float) -> float:
    val = prefs.get(key)
    if val is None:
        return default
    try:
        return float(val)
    except (ValueError, TypeError):
        logger.warning("Invalid float for %s: %r, using %s", key, val, default)
        return default


def get_pref_bool(prefs: Mapping[str, str], key: str, default: bool) -> bool:
    val = prefs.get(key)
    if val is None:
        return default
    if isinstance(val, bool):
        return val
    return str(val).strip().lower() in {"true", "1", "yes", "on"}


def get_pref_list(prefs: Mapping[str, str], key: str, default: Sequence[str]) -> Tuple[str, ...]:
    val = prefs.get(key)
    if val is None:
        return tuple(default)
    return tuple(item.strip() for item in str(val).split(",") if item.strip())


def _check_bounds(name: str, lo: float, hi: float) -> None:
    if lo > hi:
        raise ConfigError(f"{name}: min {lo} is greater than max {hi}")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class DeviceConfig:
    host: str = DEFAULT_DEVICE_HOST
    port: int = DEFAULT_DEVICE_PORT
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    forward_keypresses: bool = True

    @classmethod
    def from_config(cls, prefs: Mapping[str, str]) -> "DeviceConfig":
        defaults = cls()
        return cls(
            host=get_pref_str(prefs, "host", defaults.host),
            port=get_pref_int(prefs, "port", defaults.port),
            timeout_ms=get_pref_int(prefs, "timeout_ms", defaults.timeout_ms),
            forward_keypresses=get_pref_bool(prefs, "forward_keypresses", defaults.forward_keypresses),
        )


@dataclass(slots=True)
class PollConfig:
    interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    @classmethod
    def from_config(cls, prefs: Mapping[str, str]) -> "PollConfig":
        config = cls(interval_ms=get_pref_int(prefs, "interval_ms", cls().interval_ms))
        if config.interval_ms <= 0:
            raise ConfigError(f"poll.interval_ms must be positive, got {config.interval_ms}")
        return config


@dataclass(slots=True)
class ErrorConfig:
    max_repeats: int = DEFAULT_MAX_REPEATS
    cooldown_ms: int = DEFAULT_COOLDOWN_MS

    @classmethod
    def from_config(cls, prefs: Mapping[str, str]) -> "ErrorConfig":
        defaults = cls()
        return cls(
            max_repeats=get_pref_int(prefs, "max_repeats", defaults.max_repeats),
            cooldown_ms=get_pref_int(prefs, "cooldown_ms", defaults.cooldown_ms),
        )


@dataclass(slots=True)
class VisualConfig:
    """Parameter defaults, the ordered mode cycle and the clamp bounds."""

    defaults: VisualParams = field(default_factory=VisualParams)
    modes: Tuple[str, ...] = DEFAULT_MODES
    speed_min: float = 0.1
    speed_max: float = 5.0
    scale_min: float = 0.2
    scale_max: float = 3.0
    complexity_min: int = 1

    @classmethod
    def from_config(cls, prefs: Mapping[str, str]) -> "VisualConfig":
        base = cls()
        modes = get_pref_list(prefs, "modes", base.modes)
        if not modes:
            raise ConfigError("visual.modes must list at least one mode")

        p = base.defaults
        defaults = VisualParams(
            hue=get_pref_int(prefs, "hue", p.hue) % 360,
            speed=get_pref_float(prefs, "speed", p.speed),
            complexity=get_pref_int(prefs, "complexity", p.complexity),
            scale=get_pref_float(prefs, "scale", p.scale),
            mode=get_pref_str(prefs, "mode", modes[0] if p.mode not in modes else p.mode),
            color_shift=get_pref_bool(prefs, "color_shift", p.color_shift),
            pulse_on_beat=get_pref_bool(prefs, "pulse_on_beat", p.pulse_on_beat),
        )

        config = cls(
            defaults=defaults,
            modes=modes,
            speed_min=get_pref_float(prefs, "speed_min", base.speed_min),
            speed_max=get_pref_float(prefs, "speed_max", base.speed_max),
            scale_min=get_pref_float(prefs, "scale_min", base.scale_min),
            scale_max=get_pref_float(prefs, "scale_max", base.scale_max),
            complexity_min=get_pref_int(prefs, "complexity_min", base.complexity_min),
        )
        config.validate()
        return config

    def validate(self) -> None:
        if not self.modes:
            raise ConfigError("visual.modes must list at least one mode")
        _check_bounds("visual.speed", self.speed_min, self.speed_max)
        _check_bounds("visual.scale", self.scale_min, self.scale_max)
        d = self.defaults
        if d.mode not in self.modes:
            raise ConfigError(f"visual.mode '{d.mode}' is not one of {list(self.modes)}")
        if not self.speed_min <= d.speed <= self.speed_max:
            raise ConfigError(f"visual.speed {d.speed} is outside [{self.speed_min}, {self.speed_max}]")
        if not self.scale_min <= d.scale <= self.scale_max:
            raise ConfigError(f"visual.scale {d.scale} is outside [{self.scale_min}, {self.scale_max}]")
        if d.complexity < self.complexity_min:
            raise ConfigError(f"visual.complexity {d.complexity} is below {self.complexity_min}")


@dataclass(slots=True)
class ButtonsConfig:
    debounce_ms: float = DEFAULT_DEBOUNCE_MS
    mapping: ButtonMapping = field(default_factory=ButtonMapping)

    @classmethod
    def from_config(cls, prefs: Mapping[str, str], bindings: Mapping[str, str]) -> "ButtonsConfig":
        return cls(
            debounce_ms=get_pref_float(prefs, "debounce_ms", DEFAULT_DEBOUNCE_MS),
            mapping=ButtonMapping.from_bindings(bindings),
        )


@dataclass(slots=True)
class BroadcastConfig:
    max_entries: int = DEFAULT_MAX_ENTRIES
    replay_buttons_on_connect: bool = False
    max_pending_sends: int = 8

    @classmethod
    def from_config(cls, prefs: Mapping[str, str], log_prefs: Mapping[str, str]) -> "BroadcastConfig":
        defaults = cls()
        return cls(
            max_entries=get_pref_int(log_prefs, "max_entries", defaults.max_entries),
            replay_buttons_on_connect=get_pref_bool(
                prefs, "replay_buttons_on_connect", defaults.replay_buttons_on_connect
            ),
            max_pending_sends=max(1, get_pref_int(prefs, "max_pending_sends", defaults.max_pending_sends)),
        )


@dataclass(slots=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = DEFAULT_HTTP_PORT
    public_dir: Path = PUBLIC_DIR

    @classmethod
    def from_config(cls, prefs: Mapping[str, str]) -> "ServerConfig":
        defaults = cls()
        public_dir = prefs.get("public_dir")
        return cls(
            host=get_pref_str(prefs, "host", defaults.host),
            port=get_pref_int(prefs, "port", defaults.port),
            public_dir=Path(public_dir).expanduser() if public_dir else defaults.public_dir,
        )


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class AppConfig:
    device: DeviceConfig = field(default_factory=DeviceConfig)
    poll: PollConfig = field(default_factory=PollConfig)
    errors: ErrorConfig = field(default_factory=ErrorConfig)
    visual: VisualConfig = field(default_factory=VisualConfig)
    buttons: ButtonsConfig = field(default_factory=ButtonsConfig)
    broadcast: BroadcastConfig = field(default_factory=BroadcastConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    log_level: str = "info"
    log_file: Optional[Path] = None
    console_output: bool = True

    @classmethod
    def from_config(
        cls,
        raw: Mapping[str, str],
        *,
        env: Optional[Mapping[str, str]] = None,
        args: Any = None,
    ) -> "AppConfig":
        """Resolve a flat ``key = value`` mapping into typed sections.

        Precedence, lowest first: ``raw`` (defaults layered with the user
        file), environment variables, then CLI ``args``.
        """
        cm = get_config_manager()
        raw = dict(raw)
        log_prefs = cm.scoped(raw, "logging")
        log_file = log_prefs.get("file")

        config = cls(
            device=DeviceConfig.from_config(cm.scoped(raw, "device")),
            poll=PollConfig.from_config(cm.scoped(raw, "poll")),
            errors=ErrorConfig.from_config(cm.scoped(raw, "errors")),
            visual=VisualConfig.from_config(cm.scoped(raw, "visual")),
            buttons=ButtonsConfig.from_config(cm.scoped(raw, "buttons"), cm.scoped(raw, "button")),
            broadcast=BroadcastConfig.from_config(cm.scoped(raw, "broadcast"), log_prefs),
            server=ServerConfig.from_config(cm.scoped(raw, "server")),
            log_level=get_pref_str(log_prefs, "level", "info"),
            log_file=Path(log_file).expanduser() if log_file else None,
            console_output=get_pref_bool(log_prefs, "console", True),
        )

        config._apply_env_override(os.environ if env is None else env)
        if args is not None:
            config._apply_args_override(args)
        return config

    @classmethod
    def load(
        cls,
        config_path: Optional[Path] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
        args: Any = None,
    ) -> "AppConfig":
        """Read the shipped defaults plus one user file and resolve them."""
        user_path = config_path if config_path is not None else USER_CONFIG_PATH
        if config_path is not None and not Path(config_path).exists():
            raise ConfigError(f"Config file not found: {config_path}")
        raw = get_config_manager().read_layered([DEFAULT_CONFIG_PATH, user_path])
        return cls.from_config(raw, env=env, args=args)

    @classmethod
    async def load_async(
        cls,
        config_path: Optional[Path] = None,
        *,
        env: Optional[Mapping[str, str]] = None,
        args: Any = None,
    ) -> "AppConfig":
        user_path = config_path if config_path is not None else USER_CONFIG_PATH
        if config_path is not None and not Path(config_path).exists():
            raise ConfigError(f"Config file not found: {config_path}")
        raw = await get_config_manager().read_layered_async([DEFAULT_CONFIG_PATH, user_path])
        return cls.from_config(raw, env=env, args=args)

    def _apply_env_override(self, env: Mapping[str, str]) -> None:
        host = env.get(ENV_DEVICE_HOST) or env.get(ENV_DEVICE_HOST_ALIAS)
        if host:
            self.device.host = host
        port = env.get(ENV_HTTP_PORT)
        if port:
            try:
                self.server.port = int(port)
            except ValueError:
                raise ConfigError(f"{ENV_HTTP_PORT} must be an integer, got {port!r}") from None

    def _apply_args_override(self, args: Any) -> None:
        """Apply CLI argument overrides to config values."""
        arg_mappings = {
            "device_host": (self.device, "host"),
            "device_port": (self.device, "port"),
            "http_port": (self.server, "port"),
            "poll_interval_ms": (self.poll, "interval_ms"),
            "public_dir": (self.server, "public_dir"),
        }
        for arg_name, (section, attr) in arg_mappings.items():
            val = getattr(args, arg_name, None)
            if val is not None:
                setattr(section, attr, val)

        log_level = getattr(args, "log_level", None)
        if log_level is not None:
            self.log_level = log_level
        log_file = getattr(args, "log_file", None)
        if log_file is not None:
            self.log_file = Path(log_file)
        console = getattr(args, "console_output", None)
        if console is not None:
            self.console_output = bool(console)

        if self.poll.interval_ms <= 0:
            raise ConfigError(f"poll interval must be positive, got {self.poll.interval_ms}")


__all__ = [
    "DEFAULT_DEVICE_HOST",
    "DEFAULT_HTTP_PORT",
    "DEFAULT_MODES",
    "get_pref_str",
    "get_pref_int",
    "get_pref_float",
    "get_pref_bool",
    "get_pref_list",
    "DeviceConfig",
    "PollConfig",
    "ErrorConfig",
    "VisualConfig",
    "ButtonsConfig",
    "BroadcastConfig",
    "ServerConfig",
    "AppConfig",
]
