
from .broadcast import BroadcastLog, ErrorThrottle, LogEntry, LogLevel, Subscriber
from .buttons import ActionKind, ButtonAction, ButtonHandler, ButtonMapping
from .config import AppConfig
from .ecp_client import ECPClient
from .errors import ConfigError, DeviceUnavailableError, ECPVisualError
from .poller import PollScheduler, StatePoller
from .state import CanonicalState, VisualParams
from .system import VisualSystem

__all__ = [
    'ActionKind',
    'AppConfig',
    'BroadcastLog',
    'ButtonAction',
    'ButtonHandler',
    'ButtonMapping',
    'CanonicalState',
    'ConfigError',
    'DeviceUnavailableError',
    'ECPClient',
    'ECPVisualError',
    'ErrorThrottle',
    'LogEntry',
    'LogLevel',
    'PollScheduler',
    'StatePoller',
    'Subscriber',
    'VisualParams',
    'VisualSystem',
]
