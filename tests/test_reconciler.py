import asyncio
from unittest.mock import AsyncMock

import pytest
from pytest_asyncio import fixture

from workstyle.config import IconTable
from workstyle.models import (
    AppIdentifier,
    RenameError,
    WindowClose,
    WindowMove,
    WindowNew,
    WindowTitle,
    WMConnectionError,
    WorkspaceInit,
    WorkspaceRemoved,
    WorkspaceRenamed,
)
from workstyle.reconciler import Reconciler
from workstyle.store import StateStore

from .conftest import snapshot
from .testtools import FakeBackend


async def drain(reconciler, backend):
    "Process the events queued by the backend, the echoed renames included"
    while not backend.queue.empty():
        await reconciler.handle_event(backend.queue.get_nowait())


@fixture
async def reconciler(table, backend, tree):
    reconciler = Reconciler(table)
    reconciler.backend = backend
    await reconciler.resync(tree)
    backend.renames.clear()
    await drain(reconciler, backend)
    return reconciler


@pytest.mark.asyncio
async def test_resync_renames_everything(table, backend, tree):
    reconciler = Reconciler(table)
    reconciler.backend = backend
    assert await reconciler.resync(tree) == 2
    assert backend.renames == [(1, "1: 🦊🐱"), (2, "2")]
    assert reconciler.store.get(1).last_sent_title == "1: 🦊🐱"
    assert reconciler.store.get(1).name == "1: 🦊🐱"


@pytest.mark.asyncio
async def test_feedback_suppressed(reconciler, backend):
    # the fixture already replayed the echoed renames
    assert backend.renames == []
    await reconciler.handle_event(WorkspaceRenamed(1, "1: 🦊🐱"))
    assert backend.renames == []
    assert reconciler.store.get(1).number_prefix == "1"


@pytest.mark.asyncio
async def test_idempotent(reconciler, backend):
    assert await reconciler.recompute(1) is False
    assert await reconciler.recompute(1) is False
    await reconciler.handle_event(WindowNew("c", AppIdentifier("code"), workspace_id=1))
    assert await reconciler.recompute(1) is False
    assert backend.renames == [(1, "1: 🦊🐱💻")]


@pytest.mark.asyncio
async def test_window_events(reconciler, backend):
    await reconciler.handle_event(WindowNew("c", AppIdentifier("code"), workspace_id=2))
    await reconciler.handle_event(WindowMove("a", workspace_id=2))
    await reconciler.handle_event(WindowClose("b"))
    await drain(reconciler, backend)
    assert backend.renames == [(2, "2: 💻"), (1, "1: 🐱"), (2, "2: 💻🦊"), (1, "1")]


@pytest.mark.asyncio
async def test_window_new_by_name(reconciler, backend):
    # the workspace was renamed already, the event carries its first name
    await reconciler.handle_event(WindowNew("c", AppIdentifier("code"), workspace_name="1"))
    assert backend.renames == [(1, "1: 🦊🐱💻")]


@pytest.mark.asyncio
async def test_title_change(reconciler, backend):
    await reconciler.handle_event(WindowTitle("b", "vim"))
    assert backend.renames == []
    # titles match too, and "firefox" comes first in the table
    await reconciler.handle_event(WindowTitle("b", "Mozilla Firefox"))
    assert backend.renames == [(1, "1: 🦊🦊")]

    await reconciler.handle_event(WindowNew("x", AppIdentifier("", "untitled"), workspace_id=2))
    await reconciler.handle_event(WindowTitle("x", "Visual Studio Code"))
    assert backend.renames == [(1, "1: 🦊🦊"), (2, "2: ?"), (2, "2: 💻")]


@pytest.mark.asyncio
async def test_workspace_events(reconciler, backend):
    await reconciler.handle_event(WorkspaceInit(3, "3"))
    assert backend.renames == []
    await reconciler.handle_event(WindowNew("c", AppIdentifier("kitty"), workspace_id=3))
    await reconciler.handle_event(WorkspaceRemoved(3))
    assert 3 not in reconciler.store
    assert 3 not in reconciler.pending
    assert backend.renames == [(3, "3: 🐱")]


@pytest.mark.asyncio
async def test_stale_confirmation(reconciler, backend):
    backend.echo = False
    await reconciler.handle_event(WindowNew("c", AppIdentifier("code"), workspace_id=2))
    await reconciler.handle_event(WindowNew("d", AppIdentifier("kitty"), workspace_id=2))
    assert backend.renames == [(2, "2: 💻"), (2, "2: 💻🐱")]
    # confirmations arrive late, in order
    await reconciler.handle_event(WorkspaceRenamed(2, "2: 💻"))
    await reconciler.handle_event(WorkspaceRenamed(2, "2: 💻🐱"))
    assert len(backend.renames) == 2
    assert reconciler.store.get(2).name == "2: 💻🐱"
    assert not reconciler.pending[2]


@pytest.mark.asyncio
async def test_external_rename(reconciler, backend):
    await reconciler.handle_event(WorkspaceRenamed(1, "web"))
    ws = reconciler.store.get(1)
    assert ws.number_prefix == "web"
    assert backend.renames == [(1, "web: 🦊🐱")]
    assert ws.last_sent_title == "web: 🦊🐱"


@pytest.mark.asyncio
async def test_rename_error(reconciler, backend):
    backend.fail_renames = True
    await reconciler.handle_event(WindowNew("c", AppIdentifier("code"), workspace_id=2))
    ws = reconciler.store.get(2)
    assert ws.last_sent_title == "2"
    assert ws.name == "2"

    # next event retries
    backend.fail_renames = False
    await reconciler.handle_event(WindowNew("d", AppIdentifier("kitty"), workspace_id=2))
    assert backend.renames == [(2, "2: 💻🐱")]


@pytest.mark.asyncio
async def test_rename_timeout(table, tree):
    async def stuck(*_):
        await asyncio.sleep(10)

    backend = FakeBackend(tree=tree)
    backend.rename = stuck
    reconciler = Reconciler(table, rename_timeout=0.01)
    reconciler.backend = backend
    # a late reply would answer the next request: the connection is given up
    with pytest.raises(WMConnectionError):
        await reconciler.resync(tree)
    assert reconciler.store.get(1).last_sent_title is None


@pytest.mark.asyncio
async def test_trimmed_names(tree):
    "A window manager dropping the trailing blank glyph must not start a rename loop"
    table = IconTable.from_pairs([("firefox", "🦊")])
    backend = FakeBackend(tree=tree, echo=True)
    backend.normalize = str.strip
    reconciler = Reconciler(table)
    reconciler.backend = backend
    await reconciler.resync(tree)
    await drain(reconciler, backend)

    assert backend.renames == [(1, "1: 🦊 "), (2, "2")]
    ws = reconciler.store.get(1)
    assert ws.name == "1: 🦊"
    assert ws.number_prefix == "1"
    assert reconciler.store.find(None, "1: 🦊") is ws

    # closing the unmatched window drops the blank glyph
    await reconciler.handle_event(WindowClose("b"))
    await drain(reconciler, backend)
    assert backend.renames[-1] == (1, "1: 🦊")
    assert len(backend.renames) == 3


@pytest.mark.asyncio
async def test_out_of_sync_resync(reconciler, backend):
    backend.tree = snapshot((1, "1: 🦊🐱", [("b", "kitty")]), (7, "7", [("z", "code")]))
    await reconciler.handle_event(WindowMove("unknown", workspace_id=1))
    assert reconciler.store.workspaces.keys() == {1, 7}
    assert backend.renames == [(1, "1: 🐱"), (7, "7: 💻")]

    fresh = StateStore()
    fresh.replace_all(backend.tree)
    assert [ws.windows for ws in reconciler.store] == [ws.windows for ws in fresh]


@pytest.mark.asyncio
async def test_unknown_workspace_resync(reconciler, backend):
    backend.fetch_tree = AsyncMock(return_value=backend.tree)
    await reconciler.handle_event(WindowNew("c", AppIdentifier("code"), workspace_id=99))
    backend.fetch_tree.assert_awaited_once()


@pytest.mark.asyncio
async def test_compute_title(reconciler):
    assert reconciler.compute_title(1) == "1: 🦊🐱"
    assert reconciler.compute_title(2) == "2"
