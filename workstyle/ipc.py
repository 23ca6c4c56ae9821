"""Talk to the window managers over their unix sockets.

Hyprland: one short-lived connection per request on `.socket.sock`, events
on `.socket2.sock`.
"""

__all__ = [
    "EVENTS_SOCKET",
    "HYPRCTL_SOCKET",
    "hyprland_folder",
    "hyprland_request",
    "open_connection",
    "retry_on_reset",
]

import asyncio
import os
from collections.abc import Callable
from logging import Logger
from pathlib import Path
from typing import Any

from .models import WMConnectionError

HYPRCTL_SOCKET = ".socket.sock"
EVENTS_SOCKET = ".socket2.sock"


def retry_on_reset(func: Callable) -> Callable:
    """Retry on reset wrapper."""

    async def wrapper(*args, log: Logger, **kwargs) -> Any:  # noqa: ANN401
        exc = None
        for count in range(3):
            try:
                return await func(*args, **kwargs, log=log)
            except ConnectionResetError as e:  # noqa: PERF203
                exc = e
                log.warning("ipc connection problem, retrying...")
                await asyncio.sleep(0.5 * count)
        log.error("ipc connection failed.")
        raise WMConnectionError(str(exc)) from exc

    return wrapper


async def open_connection(path: str | Path, log: Logger) -> tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """Open a unix socket, turning the usual failures into WMConnectionError."""
    try:
        return await asyncio.open_unix_connection(str(path))
    except (FileNotFoundError, ConnectionRefusedError) as e:
        log.error("socket %s not found! is the window manager running ?", path)
        msg = f"can't connect to {path}"
        raise WMConnectionError(msg) from e


# Hyprland {{{


def hyprland_folder() -> Path:
    """Return the folder holding the sockets of the running Hyprland instance.

    Raises:
        WMConnectionError: if no Hyprland instance is advertised
    """
    signature = os.environ.get("HYPRLAND_INSTANCE_SIGNATURE")
    if not signature:
        msg = "HYPRLAND_INSTANCE_SIGNATURE is not set"
        raise WMConnectionError(msg)
    runtime_folder = Path(os.environ.get("XDG_RUNTIME_DIR", "")) / "hypr" / signature
    if runtime_folder.exists():
        return runtime_folder
    return Path("/tmp/hypr") / signature  # noqa: S108


@retry_on_reset
async def hyprland_request(folder: Path, command: str, log: Logger) -> str:
    """Send `command` on the request socket and return the whole answer."""
    reader, writer = await open_connection(folder / HYPRCTL_SOCKET, log)
    try:
        writer.write(command.encode())
        await writer.drain()
        data = await reader.read()
    except ConnectionResetError:
        raise
    except OSError as e:
        msg = f"{command!r} failed: {e}"
        raise WMConnectionError(msg) from e
    finally:
        writer.close()
        await writer.wait_closed()
    return data.decode("utf-8", errors="replace")


# }}}

