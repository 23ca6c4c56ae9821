"""Keep the workspace names in line with their windows.

The reconciler consumes one event at a time:

1. apply it to the store,
2. recompute the title of every workspace whose windows changed,
3. rename the workspace when the title differs from the last one sent.

Renaming makes the window manager emit a rename event. Titles sent and not
confirmed yet are remembered per workspace, so that those events are
recognized as our own and dropped; any other rename is external.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Iterable
from logging import Logger
from typing import TYPE_CHECKING, Any

from .constants import RENAME_TIMEOUT
from .logging_setup import get_logger
from .models import (
    Event,
    RenameError,
    StoreOutOfSync,
    Window,
    WindowClose,
    WindowMove,
    WindowNew,
    WindowTitle,
    WMConnectionError,
    WorkspaceId,
    WorkspaceInit,
    WorkspaceRemoved,
    WorkspaceRenamed,
    WorkspaceSnapshot,
)
from .resolver import IconResolver, make_title
from .store import StateStore

if TYPE_CHECKING:
    from .adapters.backend import EnvironmentBackend
    from .config import IconTable

__all__ = ["Reconciler", "same_name"]


def same_name(name: str, title: str | None) -> bool:
    """Compare a workspace name with a title we sent.

    Window managers may drop the surrounding blanks (a trailing blank glyph).
    """
    return title is not None and name.strip() == title.strip()


class Reconciler:
    """Applies events to the store and renames the affected workspaces."""

    backend: EnvironmentBackend | None = None

    def __init__(
        self,
        table: IconTable,
        resolver: IconResolver | None = None,
        store: StateStore | None = None,
        rename_timeout: float = RENAME_TIMEOUT,
        log: Logger | None = None,
    ) -> None:
        self.table = table
        self.resolver = resolver or IconResolver()
        self.store = store or StateStore(separator=table.separator)
        self.rename_timeout = rename_timeout
        self.log = log or get_logger("reconciler")
        # titles sent, not confirmed by a rename event yet
        self.pending: dict[WorkspaceId, deque[str]] = {}
        self._handlers: dict[type, Callable[[Any], set[WorkspaceId]]] = {
            WorkspaceInit: self.on_workspace_init,
            WorkspaceRemoved: self.on_workspace_removed,
            WorkspaceRenamed: self.on_workspace_renamed,
            WindowNew: self.on_window_new,
            WindowClose: self.on_window_close,
            WindowMove: self.on_window_move,
            WindowTitle: self.on_window_title,
        }

    # Event application {{{

    def apply(self, event: Event) -> set[WorkspaceId]:
        """Apply an event to the store and return the dirty workspaces.

        Raises:
            StoreOutOfSync: if the event doesn't fit the store
        """
        handler = self._handlers.get(type(event))
        if handler is None:
            self.log.debug("ignoring %s", event)
            return set()
        return handler(event)

    def on_workspace_init(self, event: WorkspaceInit) -> set[WorkspaceId]:
        return self.store.on_workspace_init(event.workspace_id, event.name)

    def on_workspace_removed(self, event: WorkspaceRemoved) -> set[WorkspaceId]:
        self.pending.pop(event.workspace_id, None)
        return self.store.on_workspace_removed(event.workspace_id)

    def on_workspace_renamed(self, event: WorkspaceRenamed) -> set[WorkspaceId]:
        workspace = self.store.get(event.workspace_id)
        pending = self.pending.get(event.workspace_id)
        if pending and any(same_name(event.name, title) for title in pending):
            # our own rename: drop it and the older ones
            while not same_name(event.name, pending.popleft()):
                pass
            if not pending:
                # the latest one, spelled the way the window manager stored it
                self.store.on_workspace_renamed(workspace.id, event.name)
            return set()
        if same_name(event.name, workspace.last_sent_title):
            return set()
        self.log.info("Workspace %s renamed to %r from outside", workspace.id, event.name)
        self.store.on_workspace_renamed(workspace.id, event.name)
        workspace.number_prefix = self.store.prefix_of(event.name)
        workspace.last_sent_title = None
        return {workspace.id}

    def on_window_new(self, event: WindowNew) -> set[WorkspaceId]:
        workspace = self.store.find(event.workspace_id, event.workspace_name)
        return self.store.on_window_new(workspace, Window(event.window_id, event.app))

    def on_window_close(self, event: WindowClose) -> set[WorkspaceId]:
        return self.store.on_window_close(event.window_id)

    def on_window_move(self, event: WindowMove) -> set[WorkspaceId]:
        destination = self.store.find(event.workspace_id, event.workspace_name)
        return self.store.on_window_move(event.window_id, None, destination)

    def on_window_title(self, event: WindowTitle) -> set[WorkspaceId]:
        return self.store.on_window_title(event.window_id, event.title)

    # }}}

    def compute_title(self, workspace_id: WorkspaceId) -> str:
        """Return the title a workspace should have."""
        workspace = self.store.get(workspace_id)
        suffix = self.resolver.title_suffix(self.store.apps(workspace_id), self.table)
        return make_title(workspace.number_prefix, suffix, self.table.separator)

    async def recompute(self, workspace_id: WorkspaceId) -> bool:
        """Rename a workspace if its title changed.

        Returns:
            True if a rename was sent

        Raises:
            WMConnectionError: if the window manager doesn't answer in time
        """
        if workspace_id not in self.store:
            return False
        workspace = self.store.get(workspace_id)
        title = self.compute_title(workspace_id)
        if title == workspace.last_sent_title:
            return False
        assert self.backend is not None, "no backend"
        try:
            await asyncio.wait_for(self.backend.rename(workspace, title), timeout=self.rename_timeout)
        except TimeoutError as e:
            # the reply may still come and would answer the next request
            msg = f"renaming workspace {workspace.id} timed out"
            raise WMConnectionError(msg) from e
        except RenameError as e:
            self.log.warning("Rename failed: %s", e)
            return False
        self.log.debug("workspace %s: %r -> %r", workspace.id, workspace.name, title)
        workspace.last_sent_title = title
        self.pending.setdefault(workspace.id, deque()).append(title)
        # the command went through, later commands must use the new name
        self.store.on_workspace_renamed(workspace.id, title)
        return True

    async def recompute_all(self, workspace_ids: Iterable[WorkspaceId]) -> int:
        """Recompute several workspaces, in store order. Return the number of renames."""
        dirty = set(workspace_ids)
        renamed = 0
        for workspace in self.store:
            if workspace.id in dirty and await self.recompute(workspace.id):
                renamed += 1
        return renamed

    async def resync(self, snapshot: list[WorkspaceSnapshot]) -> int:
        """Replace the store with a snapshot and recompute everything."""
        self.pending.clear()
        dirty = self.store.replace_all(snapshot)
        return await self.recompute_all(dirty)

    async def handle_event(self, event: Event) -> None:
        """Process one event, renames included."""
        try:
            dirty = self.apply(event)
        except StoreOutOfSync as e:
            self.log.info("%s, fetching the tree again", e)
            assert self.backend is not None, "no backend"
            await self.resync(await self.backend.fetch_tree())
            return
        if dirty:
            await self.recompute_all(dirty)
