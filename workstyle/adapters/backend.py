"""Backend adapter interface."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Iterable
from logging import Logger
from typing import Any

from ..logging_setup import get_logger
from ..models import Event, MalformedEventError, Workspace, WorkspaceSnapshot


class EnvironmentBackend(ABC):
    """Abstract base class for window manager backends (Hyprland, Sway/i3).

    A backend owns the sockets. The expected sequence is `connect`,
    `subscribe`, `fetch_tree`, then `events` and `rename` until the stream
    breaks; then `close` and start over with a fresh backend.
    """

    name = "backend"

    def __init__(self, log: Logger | None = None) -> None:
        """Initialize the backend.

        Args:
            log: Logger to use, defaults to one named after the backend
        """
        self.log = log or get_logger(self.name)

    @abstractmethod
    async def connect(self) -> None:
        """Open the command transport.

        Raises:
            WMConnectionError: if the socket is missing or the handshake fails
        """

    @abstractmethod
    async def subscribe(self, event_kinds: Iterable[str]) -> None:
        """Open the event stream.

        Args:
            event_kinds: kinds of events to receive ("window", "workspace")
        """

    @abstractmethod
    async def fetch_tree(self) -> list[WorkspaceSnapshot]:
        """Return every workspace with its windows."""

    @abstractmethod
    async def rename(self, workspace: Workspace, new_title: str) -> None:
        """Rename a workspace.

        Raises:
            RenameError: if the window manager rejects the command
        """

    @abstractmethod
    async def close(self) -> None:
        """Release the sockets."""

    @abstractmethod
    async def read_raw(self) -> Any:  # noqa: ANN401
        """Return the next raw event.

        Raises:
            WMConnectionError: when the stream is over
        """

    @abstractmethod
    async def parse_event(self, raw_data: Any) -> Event | None:  # noqa: ANN401
        """Parse a raw event, returning None for the events we don't follow.

        Raises:
            MalformedEventError: if the payload can't be understood
        """

    async def events(self) -> AsyncIterator[Event]:
        """Yield the events in order, skipping the malformed ones."""
        while True:
            raw_data = await self.read_raw()
            try:
                event = await self.parse_event(raw_data)
            except MalformedEventError as e:
                self.log.warning("Discarding malformed event: %s", e)
                continue
            if event is not None:
                yield event

    async def __aenter__(self) -> "EnvironmentBackend":
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()
