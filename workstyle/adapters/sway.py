"""Sway and i3 adapter, on top of i3ipc."""

import asyncio
from collections.abc import Callable, Iterable, Iterator
from logging import Logger
from typing import Any

from i3ipc import Event as I3Event
from i3ipc.aio import Connection

from ..models import (
    AppIdentifier,
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
    WorkspaceInit,
    WorkspaceRemoved,
    WorkspaceRenamed,
    WorkspaceSnapshot,
)
from .backend import EnvironmentBackend

SCRATCHPAD = "__i3_scratch"

Node = dict[str, Any]


def quote(text: str) -> str:
    """Quote a string for an i3 command."""
    return '"{}"'.format(text.replace("\\", "\\\\").replace('"', '\\"'))


def app_of(node: Node) -> AppIdentifier | None:
    """Return the application shown by a container, if it is a window."""
    if node.get("type") not in {"con", "floating_con"} or node.get("nodes") or node.get("floating_nodes"):
        return None
    klass = (node.get("window_properties") or {}).get("class")
    app_id = node.get("app_id")
    title = node.get("name") or ""
    if not (app_id or klass or title):
        return None
    return AppIdentifier(app_id or klass or "", title)


def iter_windows(node: Node) -> Iterator[Window]:
    """Yield the windows below `node`, tiling ones first."""
    for child in node.get("nodes", []) + node.get("floating_nodes", []):
        app = app_of(child)
        if app is not None:
            yield Window(child["id"], app)
        else:
            yield from iter_windows(child)


def iter_workspaces(node: Node) -> Iterator[Node]:
    """Yield the workspace nodes of the tree."""
    for child in node.get("nodes", []):
        if child.get("type") == "workspace":
            if child.get("name") != SCRATCHPAD:
                yield child
        else:
            yield from iter_workspaces(child)


def workspace_holding(tree: Node, window_id: int) -> Node | None:
    """Return the workspace node containing the window `window_id`."""
    for workspace in iter_workspaces(tree):
        if any(window.id == window_id for window in iter_windows(workspace)):
            return workspace
    return None


class SwayBackend(EnvironmentBackend):
    """Sway / i3 backend implementation.

    i3ipc keeps a command socket and a subscription socket. Its handlers push
    (event kind, payload) pairs on a queue; `read_raw` pops them, and a `None`
    is queued when the connection's main loop ends.
    """

    name = "sway"

    def __init__(self, log: Logger | None = None, socket_path: str | None = None) -> None:
        super().__init__(log)
        self.socket_path = socket_path
        self.connection: Connection | None = None
        self.main_task: asyncio.Task | None = None
        self.queue: asyncio.Queue[tuple[I3Event, Node] | None] = asyncio.Queue()

    async def connect(self) -> None:
        connection = Connection(socket_path=self.socket_path)
        try:
            await connection.connect()
        except OSError as e:
            msg = f"can't connect to {connection.socket_path}: {e}"
            raise WMConnectionError(msg) from e
        except Exception as e:  # noqa: BLE001
            # i3ipc raises a bare Exception when no socket path is found
            raise WMConnectionError(str(e)) from e
        self.connection = connection
        self.socket_path = connection.socket_path
        self.main_task = asyncio.create_task(connection.main())
        self.main_task.add_done_callback(self._main_done)
        version = await self.request("get_version")
        self.log.info("Connected to %s", version.human_readable)

    def _main_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            self.log.debug("event loop ended: %r", task.exception())
        self.queue.put_nowait(None)

    def _queue_event(self, kind: I3Event) -> Callable[[Connection, Any], None]:
        def handler(_connection: Connection, event: Any) -> None:  # noqa: ANN401
            self.queue.put_nowait((kind, event.ipc_data))

        return handler

    async def request(self, method: str, *args: Any) -> Any:  # noqa: ANN401
        """Await a request of the i3ipc connection, turning socket failures into WMConnectionError."""
        if self.connection is None:
            msg = "not connected"
            raise WMConnectionError(msg)
        try:
            return await getattr(self.connection, method)(*args)
        except (OSError, ValueError, AssertionError) as e:
            # ValueError: truncated JSON; AssertionError: reply out of sequence
            msg = f"{method} failed: {e!r}"
            raise WMConnectionError(msg) from e

    async def subscribe(self, event_kinds: Iterable[str]) -> None:
        if self.connection is None:
            msg = "not connected"
            raise WMConnectionError(msg)
        kinds = [I3Event(kind) for kind in event_kinds]
        for kind in kinds:
            self.connection.on(kind, self._queue_event(kind))
        # `on` schedules the subscription, await it so nothing is missed before the snapshot
        await self.request("subscribe", kinds)

    async def fetch_tree(self) -> list[WorkspaceSnapshot]:
        tree = await self.request("get_tree")
        return [
            WorkspaceSnapshot(id=node["id"], name=node["name"], windows=list(iter_windows(node)))
            for node in iter_workspaces(tree.ipc_data)
        ]

    async def rename(self, workspace: Workspace, new_title: str) -> None:
        command = f"rename workspace {quote(workspace.name)} to {quote(new_title)}"
        self.log.debug(command)
        replies = await self.request("command", command)
        if not replies:
            msg = "empty reply to a command"
            raise WMConnectionError(msg)
        errors = [reply.error or "unknown error" for reply in replies if not reply.success]
        if errors:
            msg = f"can't rename {workspace.name!r} to {new_title!r}: {'; '.join(errors)}"
            raise RenameError(msg)

    async def close(self) -> None:
        connection, self.connection = self.connection, None
        if self.main_task is not None:
            self.main_task.remove_done_callback(self._main_done)
            self.main_task.cancel()
            self.main_task = None
        if connection is None:
            return
        # i3ipc has no close method
        for attr in ("_sub_socket", "_cmd_socket"):
            sock = getattr(connection, attr, None)
            if sock is None:
                continue
            if attr == "_sub_socket" and sock.fileno() != -1:
                asyncio.get_running_loop().remove_reader(sock.fileno())
            sock.close()

    async def read_raw(self) -> tuple[I3Event, Node]:
        item = await self.queue.get()
        if item is None:
            msg = "i3 IPC connection closed"
            raise WMConnectionError(msg)
        return item

    async def parse_event(self, raw_data: tuple[I3Event, Node]) -> Event | None:
        kind, payload = raw_data
        try:
            change = payload["change"]
            if kind == I3Event.WINDOW:
                return await self._window_event(change, payload["container"])
            if kind == I3Event.WORKSPACE:
                return self._workspace_event(change, payload.get("current"))
        except (KeyError, TypeError) as e:
            msg = f"incomplete {kind.value} event: {e!r}"
            raise MalformedEventError(msg) from e
        return None

    async def _window_event(self, change: str, container: Node) -> Event | None:
        window_id = container["id"]
        if change == "close":
            return WindowClose(window_id)
        if change == "title":
            return WindowTitle(window_id, container.get("name") or "")
        if change not in {"new", "move"}:
            return None
        # window events don't say where the window is
        tree = await self.request("get_tree")
        workspace = workspace_holding(tree.ipc_data, window_id)
        if workspace is None:
            # scratchpad, or gone already
            return WindowClose(window_id) if change == "move" else None
        if change == "move":
            return WindowMove(window_id, workspace_id=workspace["id"])
        app = app_of(container) or AppIdentifier("", container.get("name") or "")
        return WindowNew(window_id, app, workspace_id=workspace["id"])

    def _workspace_event(self, change: str, current: Node | None) -> Event | None:
        if current is None or change not in {"init", "empty", "rename"}:
            return None
        if current.get("name") == SCRATCHPAD:
            return None
        if change == "init":
            return WorkspaceInit(current["id"], current["name"])
        if change == "empty":
            return WorkspaceRemoved(current["id"])
        return WorkspaceRenamed(current["id"], current["name"])
