"""Hyprland adapter."""

import asyncio
import json
from collections.abc import Iterable
from logging import Logger
from pathlib import Path
from typing import Any, cast

from ..ipc import EVENTS_SOCKET, hyprland_folder, hyprland_request, open_connection
from ..models import (
    AppIdentifier,
    ClientInfo,
    Event,
    MalformedEventError,
    RenameError,
    Window,
    WindowClose,
    WindowMove,
    WindowNew,
    WindowTitle,
    WMConnectionError,
    Workspace,
    WorkspaceInfo,
    WorkspaceInit,
    WorkspaceRemoved,
    WorkspaceRenamed,
    WorkspaceSnapshot,
)
from .backend import EnvironmentBackend

SPECIAL_PREFIX = "special"


def normalize_address(address: str) -> str:
    """Return a window address without its "0x" prefix."""
    return address.removeprefix("0x")


def is_special(name: str) -> bool:
    """Tell if a workspace name is a special (scratchpad) workspace."""
    return name.startswith(SPECIAL_PREFIX)


def _split(data: str, count: int) -> list[str]:
    """Split event data in `count` fields, the last one keeping its commas."""
    fields = data.split(",", count - 1)
    if len(fields) != count:
        msg = f"expected {count} fields, got {data!r}"
        raise MalformedEventError(msg)
    return fields


def _workspace_id(text: str) -> int:
    try:
        return int(text)
    except ValueError as e:
        msg = f"invalid workspace id {text!r}"
        raise MalformedEventError(msg) from e


class HyprlandBackend(EnvironmentBackend):
    """Hyprland backend implementation."""

    name = "hyprland"

    def __init__(self, log: Logger | None = None, folder: Path | None = None) -> None:
        super().__init__(log)
        self.folder = folder
        self.event_reader: asyncio.StreamReader | None = None
        self.event_writer: asyncio.StreamWriter | None = None

    async def execute(self, command: str, base_command: str = "dispatch") -> bool:
        """Run a command, returning True on success."""
        assert self.folder, "not connected"
        self.log.debug("%s %s", base_command, command)
        response = await hyprland_request(self.folder, f"/{base_command} {command}", log=self.log)
        ok = response.strip() == "ok"
        if not ok:
            self.log.error("FAILED %s: %s", command, response.strip())
        return ok

    async def execute_json(self, command: str) -> Any:  # noqa: ANN401
        """Run a command and return the JSON result."""
        assert self.folder, "not connected"
        self.log.debug(command)
        response = await hyprland_request(self.folder, f"j/{command}", log=self.log)
        try:
            return json.loads(response)
        except json.JSONDecodeError as e:
            msg = f"invalid answer to {command}: {response[:80]!r}"
            raise WMConnectionError(msg) from e

    async def connect(self) -> None:
        if self.folder is None:
            self.folder = hyprland_folder()
        version = await self.execute_json("version")
        self.log.info("Connected to Hyprland %s", version.get("tag", "?") if isinstance(version, dict) else version)

    async def subscribe(self, event_kinds: Iterable[str]) -> None:
        # socket2 always sends every event, filtering happens in parse_event
        assert self.folder, "not connected"
        self.log.debug("subscribing to %s", ", ".join(event_kinds))
        self.event_reader, self.event_writer = await open_connection(self.folder / EVENTS_SOCKET, self.log)

    async def fetch_tree(self) -> list[WorkspaceSnapshot]:
        workspaces = cast("list[WorkspaceInfo]", await self.execute_json("workspaces"))
        clients = cast("list[ClientInfo]", await self.execute_json("clients"))
        snapshot = {
            ws["id"]: WorkspaceSnapshot(id=ws["id"], name=ws["name"]) for ws in workspaces if not is_special(ws["name"])
        }
        for client in clients:
            if not client.get("mapped", True):
                continue
            item = snapshot.get(client["workspace"]["id"])
            if item is None:
                continue
            app = AppIdentifier(client.get("class") or client.get("initialClass", ""), client.get("title", ""))
            item.windows.append(Window(normalize_address(client["address"]), app))
        return list(snapshot.values())

    async def rename(self, workspace: Workspace, new_title: str) -> None:
        if not await self.execute(f"renameworkspace {workspace.id} {new_title}"):
            msg = f"can't rename workspace {workspace.id} to {new_title!r}"
            raise RenameError(msg)

    async def close(self) -> None:
        if self.event_writer is not None:
            writer, self.event_writer = self.event_writer, None
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                self.log.debug("closing the event socket: %s", e)

    async def read_raw(self) -> str:
        if self.event_reader is None:
            msg = "not subscribed"
            raise WMConnectionError(msg)
        try:
            data = await self.event_reader.readline()
        except OSError as e:
            msg = f"event socket error: {e}"
            raise WMConnectionError(msg) from e
        if not data:
            msg = "Hyprland event stream closed"
            raise WMConnectionError(msg)
        return data.decode(errors="replace")

    async def parse_event(self, raw_data: str) -> Event | None:
        """Parse a `name>>data` line."""
        name, separator, data = raw_data.rstrip("\n").partition(">>")
        if not separator:
            msg = f"no '>>' in {raw_data!r}"
            raise MalformedEventError(msg)
        handler = getattr(self, f"event_{name}", None)
        if handler is None:
            return None
        return cast("Event | None", handler(data))

    # Event handlers {{{

    def event_createworkspacev2(self, data: str) -> Event | None:
        """createworkspacev2>>id,name."""
        ws_id, name = _split(data, 2)
        return None if is_special(name) else WorkspaceInit(_workspace_id(ws_id), name)

    def event_destroyworkspacev2(self, data: str) -> Event | None:
        """destroyworkspacev2>>id,name."""
        ws_id, name = _split(data, 2)
        return None if is_special(name) else WorkspaceRemoved(_workspace_id(ws_id))

    def event_renameworkspace(self, data: str) -> Event | None:
        """renameworkspace>>id,name."""
        ws_id, name = _split(data, 2)
        return None if is_special(name) else WorkspaceRenamed(_workspace_id(ws_id), name)

    def event_openwindow(self, data: str) -> Event | None:
        """openwindow>>address,workspace name,class,title."""
        address, ws_name, klass, title = _split(data, 4)
        if is_special(ws_name):
            return None
        return WindowNew(normalize_address(address), AppIdentifier(klass, title), workspace_name=ws_name)

    def event_closewindow(self, data: str) -> Event | None:
        """closewindow>>address."""
        if not data:
            msg = "closewindow without address"
            raise MalformedEventError(msg)
        return WindowClose(normalize_address(data))

    def event_movewindowv2(self, data: str) -> Event | None:
        """movewindowv2>>address,workspace id,workspace name."""
        address, ws_id, ws_name = _split(data, 3)
        if is_special(ws_name):
            # out of sight, out of the title
            return WindowClose(normalize_address(address))
        return WindowMove(normalize_address(address), workspace_id=_workspace_id(ws_id))

    def event_windowtitlev2(self, data: str) -> Event | None:
        """windowtitlev2>>address,title."""
        address, title = _split(data, 2)
        return WindowTitle(normalize_address(address), title)

    # }}}
