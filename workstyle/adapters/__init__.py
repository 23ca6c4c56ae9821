"""Backend adapters for window manager abstraction.

Every supported window manager gets an EnvironmentBackend: Hyprland with its
own sockets, Sway and i3 through the i3 IPC protocol.
"""

import os

from .backend import EnvironmentBackend
from .hyprland import HyprlandBackend
from .sway import SwayBackend

__all__ = ["BACKENDS", "EnvironmentBackend", "HyprlandBackend", "SwayBackend", "detect_backend"]

BACKENDS: dict[str, type[EnvironmentBackend]] = {
    "hyprland": HyprlandBackend,
    "sway-or-i3": SwayBackend,
}


def detect_backend(enforced: str | None = None) -> type[EnvironmentBackend] | None:
    """Return the backend class to use.

    Args:
        enforced: a key of BACKENDS, skips the detection

    Returns:
        None if no supported window manager is advertised in the environment
    """
    if enforced:
        return BACKENDS[enforced]
    if os.environ.get("HYPRLAND_INSTANCE_SIGNATURE"):
        return HyprlandBackend
    if os.environ.get("SWAYSOCK") or os.environ.get("I3SOCK"):
        return SwayBackend
    return None
