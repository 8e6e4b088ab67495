"""Centralized path constants for the ECP visual server."""

from __future__ import annotations

import os
from pathlib import Path

# Project/package roots
PACKAGE_ROOT = Path(__file__).resolve().parents[1]
PROJECT_ROOT = PACKAGE_ROOT.parent

# Shipped defaults live next to the package so installed copies find them too
DEFAULT_CONFIG_PATH = PACKAGE_ROOT / "config.txt"

# Browser visualiser assets (optional, served when present)
PUBLIC_DIR = PROJECT_ROOT / "public"

# User-specific state (allows running from read-only project directories)
_USER_STATE_ENV = os.environ.get("ECP_VISUAL_STATE_DIR")
USER_STATE_DIR = Path(_USER_STATE_ENV).expanduser() if _USER_STATE_ENV else (Path.home() / ".ecp_visual")
USER_CONFIG_PATH = USER_STATE_DIR / "config.txt"

# Logging directories
LOGS_DIR = USER_STATE_DIR / "logs"
SERVER_LOG_FILE = LOGS_DIR / "server.log"


def ensure_directories() -> None:
    """Create necessary directories if they don't exist."""

    USER_STATE_DIR.mkdir(parents=True, exist_ok=True)
    LOGS_DIR.mkdir(parents=True, exist_ok=True)


__all__ = [
    'PROJECT_ROOT',
    'PACKAGE_ROOT',
    'DEFAULT_CONFIG_PATH',
    'PUBLIC_DIR',
    'USER_STATE_DIR',
    'USER_CONFIG_PATH',
    'LOGS_DIR',
    'SERVER_LOG_FILE',
    'ensure_directories',
]
