"""Shared constants for workstyle."""

import os
from pathlib import Path

__all__ = [
    "BLANK_GLYPH",
    "CONFIG_FILE",
    "DEFAULT_SEPARATOR",
    "LOCK_FILE",
    "RECONNECT_BASE_DELAY",
    "RECONNECT_MAX_DELAY",
    "RENAME_TIMEOUT",
    "SUBSCRIBED_EVENTS",
]

# Config file path - use XDG_CONFIG_HOME with fallback to ~/.config
_xdg_config_home = Path(os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config")
CONFIG_FILE = _xdg_config_home / "workstyle" / "config.toml"

LOCK_FILE = Path(os.environ.get("XDG_RUNTIME_DIR") or "/tmp") / "workstyle.lock"  # noqa: S108

# Rendered for windows matching no pattern when no fallback icon is configured
BLANK_GLYPH = " "

# Between the workspace number and the glyphs
DEFAULT_SEPARATOR = ": "

# Reconnection backoff (seconds): min(BASE * 2**attempt, MAX), retried forever
RECONNECT_BASE_DELAY = 0.5
RECONNECT_MAX_DELAY = 30.0

# Upper bound on a single rename round-trip (seconds)
RENAME_TIMEOUT = 2.0

SUBSCRIBED_EVENTS = ("window", "workspace")
