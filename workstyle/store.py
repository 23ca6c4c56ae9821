"""In-memory model of the workspaces and their windows.

Only the reconciler writes to the store, from a single task: no locking.
Every incremental operation returns the ids of the workspaces whose window
list changed, and is a no-op when the same event is delivered twice.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from logging import Logger

from .constants import DEFAULT_SEPARATOR
from .logging_setup import get_logger
from .models import AppIdentifier, StoreOutOfSync, Window, WindowId, Workspace, WorkspaceId, WorkspaceSnapshot

__all__ = ["StateStore"]


class StateStore:
    """Workspace -> ordered windows."""

    def __init__(self, separator: str = DEFAULT_SEPARATOR, log: Logger | None = None) -> None:
        self.separator = separator
        self.log = log or get_logger("store")
        self.workspaces: dict[WorkspaceId, Workspace] = {}
        self._window_index: dict[WindowId, WorkspaceId] = {}
        # every name a workspace went by, the latest owner wins
        self._name_index: dict[str, WorkspaceId] = {}

    def __contains__(self, workspace_id: WorkspaceId) -> bool:
        return workspace_id in self.workspaces

    def __iter__(self) -> Iterator[Workspace]:
        return iter(list(self.workspaces.values()))

    def __len__(self) -> int:
        return len(self.workspaces)

    def prefix_of(self, name: str) -> str:
        """Return the number part of a workspace name."""
        return name.split(self.separator, 1)[0]

    def get(self, workspace_id: WorkspaceId) -> Workspace:
        """Return a workspace.

        Raises:
            StoreOutOfSync: if the workspace is unknown
        """
        try:
            return self.workspaces[workspace_id]
        except KeyError as e:
            msg = f"unknown workspace {workspace_id!r}"
            raise StoreOutOfSync(msg) from e

    def find(self, workspace_id: WorkspaceId | None = None, name: str | None = None) -> Workspace:
        """Return a workspace by id, or by its current name.

        Raises:
            StoreOutOfSync: if no such workspace is known
        """
        if workspace_id is not None:
            return self.get(workspace_id)
        found = self._name_index.get(name) if name is not None else None
        if found is not None and found in self.workspaces:
            return self.workspaces[found]
        msg = f"unknown workspace named {name!r}"
        raise StoreOutOfSync(msg)

    def workspace_of(self, window_id: WindowId) -> Workspace | None:
        """Return the workspace holding a window, if known."""
        workspace_id = self._window_index.get(window_id)
        return None if workspace_id is None else self.workspaces[workspace_id]

    def apps(self, workspace_id: WorkspaceId) -> list[AppIdentifier]:
        """Return the applications of a workspace, in window order."""
        return [window.app for window in self.get(workspace_id).windows]

    def replace_all(self, snapshot: Iterable[WorkspaceSnapshot]) -> set[WorkspaceId]:
        """Rebuild everything from a tree snapshot.

        Returns:
            the ids of every workspace
        """
        workspaces: dict[WorkspaceId, Workspace] = {}
        window_index: dict[WindowId, WorkspaceId] = {}
        self._name_index = {}
        for item in snapshot:
            self._name_index[item.name] = item.id
            workspace = Workspace(id=item.id, name=item.name, number_prefix=self.prefix_of(item.name))
            for window in item.windows:
                if window.id in window_index:
                    self.log.warning("Window %s listed twice in the tree, keeping the first", window.id)
                    continue
                window_index[window.id] = item.id
                workspace.windows.append(Window(window.id, window.app))
            workspaces[item.id] = workspace
        self.workspaces = workspaces
        self._window_index = window_index
        self.log.debug("Store rebuilt: %d workspaces, %d windows", len(workspaces), len(window_index))
        return set(workspaces)

    def on_workspace_init(self, workspace_id: WorkspaceId, name: str) -> set[WorkspaceId]:
        """Register a new (empty) workspace."""
        if workspace_id not in self.workspaces:
            self.workspaces[workspace_id] = Workspace(id=workspace_id, name=name, number_prefix=self.prefix_of(name))
            self._name_index[name] = workspace_id
        return set()

    def on_workspace_removed(self, workspace_id: WorkspaceId) -> set[WorkspaceId]:
        """Forget a workspace and whatever windows it still listed."""
        workspace = self.workspaces.pop(workspace_id, None)
        if workspace:
            for window in workspace.windows:
                self._window_index.pop(window.id, None)
            self._name_index = {k: v for k, v in self._name_index.items() if v != workspace_id}
        return set()

    def on_workspace_renamed(self, workspace_id: WorkspaceId, name: str) -> Workspace:
        """Record the current name of a workspace and return it."""
        workspace = self.get(workspace_id)
        workspace.name = name
        self._name_index[name] = workspace_id
        return workspace

    def on_window_new(self, workspace: Workspace, window: Window) -> set[WorkspaceId]:
        """Append a window to a workspace."""
        current = self.workspace_of(window.id)
        if current is workspace:
            return set()
        dirty = set()
        if current is not None:
            # opened again somewhere else: the close was missed
            self.log.debug("Window %s reopened on %s", window.id, workspace.id)
            current.windows = [w for w in current.windows if w.id != window.id]
            dirty.add(current.id)
        workspace.windows.append(window)
        self._window_index[window.id] = workspace.id
        dirty.add(workspace.id)
        return dirty

    def on_window_close(self, window_id: WindowId) -> set[WorkspaceId]:
        """Remove a window."""
        workspace = self.workspace_of(window_id)
        if workspace is None:
            return set()
        workspace.windows = [w for w in workspace.windows if w.id != window_id]
        del self._window_index[window_id]
        return {workspace.id}

    def on_window_move(self, window_id: WindowId, source: Workspace | None, destination: Workspace) -> set[WorkspaceId]:
        """Move a window to the end of another workspace.

        The store's own idea of where the window is wins over `source`.

        Raises:
            StoreOutOfSync: if the window is unknown
        """
        current = self.workspace_of(window_id)
        if current is None:
            msg = f"unknown window {window_id!r}"
            raise StoreOutOfSync(msg)
        if source is not None and source is not current:
            self.log.debug("Window %s expected on %s, found on %s", window_id, source.id, current.id)
        if current is destination:
            return set()
        window = next(w for w in current.windows if w.id == window_id)
        current.windows = [w for w in current.windows if w.id != window_id]
        destination.windows.append(window)
        self._window_index[window_id] = destination.id
        return {current.id, destination.id}

    def on_window_title(self, window_id: WindowId, title: str) -> set[WorkspaceId]:
        """Update the title of a window."""
        workspace = self.workspace_of(window_id)
        if workspace is None:
            return set()
        for window in workspace.windows:
            if window.id == window_id:
                if window.app.title == title:
                    return set()
                window.app = AppIdentifier(window.app.name, title)
                break
        return {workspace.id}
