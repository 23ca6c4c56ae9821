"""Common types: window manager payloads, the workspace model, events and errors."""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import TypedDict

__all__ = [
    "AppIdentifier",
    "ClientInfo",
    "ConfigurationError",
    "Event",
    "ExitCode",
    "MalformedEventError",
    "RenameError",
    "StoreOutOfSync",
    "Window",
    "WindowClose",
    "WindowMove",
    "WindowNew",
    "WindowTitle",
    "WMConnectionError",
    "Workspace",
    "WorkspaceInfo",
    "WorkspaceInit",
    "WorkspaceRemoved",
    "WorkspaceRenamed",
    "WorkspaceSnapshot",
    "WorkstyleError",
]

WindowId = str | int
WorkspaceId = str | int


# Errors {{{


class WorkstyleError(Exception):
    """Base class for the errors raised by workstyle."""


class WMConnectionError(WorkstyleError, ConnectionError):
    """The window manager socket is unavailable, or the stream ended."""


class MalformedEventError(WorkstyleError):
    """An event payload could not be parsed."""


class RenameError(WorkstyleError):
    """A rename command was rejected or timed out."""


class ConfigurationError(WorkstyleError):
    """The icon table can't be used."""


class StoreOutOfSync(WorkstyleError):
    """An event refers to a workspace or window the store doesn't know."""


class ExitCode(IntEnum):
    """Exit codes of the `workstyle` command."""

    SUCCESS = 0
    USAGE_ERROR = 1
    ENV_ERROR = 2  # No supported window manager found
    CONFIG_ERROR = 3
    ALREADY_RUNNING = 4


# }}}

# Window manager payloads {{{


class WorkspaceDf(TypedDict):
    """Workspace reference inside a Hyprland client."""

    id: int
    name: str


# Client information as returned by Hyprland (the fields we use)
ClientInfo = TypedDict(
    "ClientInfo",
    {
        "address": str,
        "mapped": bool,
        "workspace": WorkspaceDf,
        "class": str,
        "title": str,
        "initialClass": str,
    },
    total=False,
)


class WorkspaceInfo(TypedDict, total=False):
    """Workspace information as returned by Hyprland (the fields we use)."""

    id: int
    name: str
    windows: int


# }}}

# Workspace model {{{


@dataclass(frozen=True)
class AppIdentifier:
    """Identifies the application shown in a window.

    `name` is the class or app-id, `title` the window title. Patterns match
    either of them, case-insensitively.
    """

    name: str
    title: str = ""

    def matches(self, pattern: str) -> bool:
        """Return True if the lower-cased `pattern` is part of the name or the title."""
        return pattern in self.name.lower() or pattern in self.title.lower()

    def __str__(self) -> str:
        return self.name or self.title


@dataclass
class Window:
    """A window, owned by exactly one workspace."""

    id: WindowId
    app: AppIdentifier


@dataclass
class Workspace:
    """A workspace and its windows, in arrival order."""

    id: WorkspaceId
    name: str
    number_prefix: str
    windows: list[Window] = field(default_factory=list)
    last_sent_title: str | None = None


@dataclass
class WorkspaceSnapshot:
    """A workspace as found in a tree snapshot."""

    id: WorkspaceId
    name: str
    windows: list[Window] = field(default_factory=list)


# }}}

# Events {{{


@dataclass(frozen=True)
class WorkspaceInit:
    """A workspace was created."""

    workspace_id: WorkspaceId
    name: str


@dataclass(frozen=True)
class WorkspaceRemoved:
    """A workspace was destroyed."""

    workspace_id: WorkspaceId


@dataclass(frozen=True)
class WorkspaceRenamed:
    """A workspace got a new name (possibly by us)."""

    workspace_id: WorkspaceId
    name: str


@dataclass(frozen=True)
class WindowNew:
    """A window was opened.

    Hyprland reports the workspace by name only, in which case `workspace_id` is None.
    """

    window_id: WindowId
    app: AppIdentifier
    workspace_id: WorkspaceId | None = None
    workspace_name: str | None = None


@dataclass(frozen=True)
class WindowClose:
    """A window was closed."""

    window_id: WindowId


@dataclass(frozen=True)
class WindowMove:
    """A window was moved to another workspace."""

    window_id: WindowId
    workspace_id: WorkspaceId | None = None
    workspace_name: str | None = None


@dataclass(frozen=True)
class WindowTitle:
    """A window changed its title."""

    window_id: WindowId
    title: str


Event = WorkspaceInit | WorkspaceRemoved | WorkspaceRenamed | WindowNew | WindowClose | WindowMove | WindowTitle

# }}}
