import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
from i3ipc import CommandReply, Event
from i3ipc.aio import Connection

from workstyle.adapters.sway import SwayBackend, app_of, iter_windows, iter_workspaces, quote, workspace_holding
from workstyle.models import (
    AppIdentifier,
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
)


def con(con_id, app_id=None, klass=None, name="", con_type="con"):
    node = {"id": con_id, "type": con_type, "name": name, "nodes": [], "floating_nodes": []}
    if app_id:
        node["app_id"] = app_id
    if klass:
        node["window_properties"] = {"class": klass}
    return node


def workspace(ws_id, name, nodes=(), floating=()):
    return {"id": ws_id, "type": "workspace", "name": name, "nodes": list(nodes), "floating_nodes": list(floating)}


TREE = {
    "id": 1,
    "type": "root",
    "nodes": [
        {
            "id": 2,
            "type": "output",
            "name": "__i3",
            "nodes": [{"id": 3, "type": "con", "nodes": [workspace(4, "__i3_scratch", [con(5, "pavucontrol")])]}],
        },
        {
            "id": 10,
            "type": "output",
            "name": "eDP-1",
            "nodes": [
                workspace(
                    11,
                    "1: 🦊",
                    [
                        {"id": 12, "type": "con", "name": None, "nodes": [con(13, "firefox", name="Mozilla"), con(14, klass="Gimp")]},
                        con(15, "kitty", name="zsh"),
                    ],
                    [con(16, "mpv", con_type="floating_con")],
                ),
                workspace(20, "2"),
            ],
        },
    ],
}


@pytest.fixture
def connection():
    connection = Mock(spec=Connection)
    connection.get_tree = AsyncMock(return_value=Mock(ipc_data=TREE))
    connection.command = AsyncMock(return_value=[CommandReply({"success": True})])
    connection.subscribe = AsyncMock()
    return connection


@pytest.fixture
def backend(connection):
    backend = SwayBackend(socket_path="/run/user/1000/sway-ipc.sock")
    backend.connection = connection
    return backend


def window_event(change, container):
    return (Event.WINDOW, {"change": change, "container": container})


def workspace_event(change, ws_id, name):
    return (Event.WORKSPACE, {"change": change, "current": {"id": ws_id, "name": name}})


def test_quote():
    assert quote("1: 🦊") == '"1: 🦊"'
    assert quote('say "hi"') == '"say \\"hi\\""'
    assert quote("back\\slash") == '"back\\\\slash"'


def test_tree_walk():
    assert [ws["name"] for ws in iter_workspaces(TREE)] == ["1: 🦊", "2"]
    first = next(iter_workspaces(TREE))
    assert list(iter_windows(first)) == [
        Window(13, AppIdentifier("firefox", "Mozilla")),
        Window(14, AppIdentifier("Gimp", "")),
        Window(15, AppIdentifier("kitty", "zsh")),
        Window(16, AppIdentifier("mpv", "")),
    ]
    assert app_of(first) is None
    assert workspace_holding(TREE, 16)["id"] == 11
    assert workspace_holding(TREE, 5) is None


@pytest.mark.asyncio
async def test_connect(mocker):
    connection = Mock(spec=Connection, socket_path="/run/sway.sock")
    connection.connect = AsyncMock()
    connection.main = AsyncMock()
    connection.get_version = AsyncMock(return_value=Mock(human_readable="sway version 1.9"))
    factory = mocker.patch("workstyle.adapters.sway.Connection", return_value=connection)

    backend = SwayBackend()
    await backend.connect()

    factory.assert_called_once_with(socket_path=None)
    assert backend.socket_path == "/run/sway.sock"
    assert backend.connection is connection
    await backend.close()
    assert backend.connection is None


@pytest.mark.asyncio
async def test_connect_errors(mocker):
    connection = Mock(spec=Connection, socket_path=None)
    connection.connect = AsyncMock(side_effect=Exception("Failed to retrieve the i3 or sway IPC socket path"))
    mocker.patch("workstyle.adapters.sway.Connection", return_value=connection)
    with pytest.raises(WMConnectionError):
        await SwayBackend().connect()

    connection.connect.side_effect = ConnectionRefusedError
    with pytest.raises(WMConnectionError):
        await SwayBackend(socket_path="/run/sway.sock").connect()


@pytest.mark.asyncio
async def test_subscribe(backend, connection):
    await backend.subscribe(["window", "workspace"])
    assert [call.args[0] for call in connection.on.call_args_list] == [Event.WINDOW, Event.WORKSPACE]
    connection.subscribe.assert_awaited_once_with([Event.WINDOW, Event.WORKSPACE])

    # the handlers feed read_raw
    handler = connection.on.call_args_list[0].args[1]
    handler(connection, Mock(ipc_data={"change": "focus", "container": con(15)}))
    assert await backend.read_raw() == (Event.WINDOW, {"change": "focus", "container": con(15)})


@pytest.mark.asyncio
async def test_end_of_stream(mocker):
    connection = Mock(spec=Connection, socket_path="/run/sway.sock")
    connection.connect = AsyncMock()
    connection.main = AsyncMock(side_effect=EOFError)
    connection.get_version = AsyncMock(return_value=Mock(human_readable="sway"))
    mocker.patch("workstyle.adapters.sway.Connection", return_value=connection)

    backend = SwayBackend()
    await backend.connect()
    with pytest.raises(WMConnectionError):
        await asyncio.wait_for(backend.read_raw(), timeout=1)


@pytest.mark.asyncio
async def test_fetch_tree(backend):
    tree = await backend.fetch_tree()
    assert [(ws.id, ws.name, len(ws.windows)) for ws in tree] == [(11, "1: 🦊", 4), (20, "2", 0)]


@pytest.mark.asyncio
async def test_rename(backend, connection):
    await backend.rename(Workspace(11, "1: 🦊", "1"), "1: 🦊🐱")
    connection.command.assert_awaited_once_with('rename workspace "1: 🦊" to "1: 🦊🐱"')


@pytest.mark.asyncio
async def test_rename_failure(backend, connection):
    connection.command.return_value = [CommandReply({"success": False, "error": "Workspace already exists"})]
    with pytest.raises(RenameError):
        await backend.rename(Workspace(11, "1", "1"), "2")


@pytest.mark.asyncio
async def test_request_errors(backend, connection):
    connection.command.side_effect = BrokenPipeError
    with pytest.raises(WMConnectionError):
        await backend.rename(Workspace(11, "1", "1"), "2")

    connection.command.side_effect = None
    connection.command.return_value = []
    with pytest.raises(WMConnectionError):
        await backend.rename(Workspace(11, "1", "1"), "2")

    connection.get_tree.side_effect = ValueError("Expecting value")
    with pytest.raises(WMConnectionError):
        await backend.fetch_tree()


@pytest.mark.asyncio
async def test_workspace_events(backend):
    assert await backend.parse_event(workspace_event("init", 30, "3")) == WorkspaceInit(30, "3")
    assert await backend.parse_event(workspace_event("empty", 30, "3")) == WorkspaceRemoved(30)
    assert await backend.parse_event(workspace_event("rename", 30, "web")) == WorkspaceRenamed(30, "web")
    assert await backend.parse_event(workspace_event("focus", 30, "3")) is None
    assert await backend.parse_event(workspace_event("init", 4, "__i3_scratch")) is None


@pytest.mark.asyncio
async def test_window_events(backend):
    assert await backend.parse_event(window_event("close", con(15, "kitty"))) == WindowClose(15)
    assert await backend.parse_event(window_event("title", con(15, "kitty", name="vim"))) == WindowTitle(15, "vim")
    assert await backend.parse_event(window_event("focus", con(15, "kitty"))) is None

    assert await backend.parse_event(window_event("new", con(13, "firefox", name="Mozilla"))) == WindowNew(
        13, AppIdentifier("firefox", "Mozilla"), workspace_id=11
    )
    assert await backend.parse_event(window_event("move", con(16, "mpv"))) == WindowMove(16, workspace_id=11)
    # moved to the scratchpad
    assert await backend.parse_event(window_event("move", con(5, "pavucontrol"))) == WindowClose(5)


@pytest.mark.asyncio
async def test_other_events(backend):
    assert await backend.parse_event((Event.MODE, {"change": "default"})) is None


@pytest.mark.asyncio
async def test_malformed_events(backend):
    for payload in [{"container": {}}, {"change": "close"}, {"change": "close", "container": {}}, {"change": "close", "container": None}]:
        with pytest.raises(MalformedEventError):
            await backend.parse_event((Event.WINDOW, payload))
