"""Daemon loop: connect, resync, follow the events, reconnect on failure."""

import asyncio
import fcntl
import os
import signal
from logging import Logger
from pathlib import Path
from typing import IO, Self

from .adapters.backend import EnvironmentBackend
from .config import IconTable
from .constants import LOCK_FILE, RECONNECT_BASE_DELAY, RECONNECT_MAX_DELAY, SUBSCRIBED_EVENTS
from .logging_setup import get_logger
from .models import WorkstyleError
from .reconciler import Reconciler

__all__ = ["Daemon", "SingleInstanceLock", "backoff_delay", "run_daemon"]


def backoff_delay(attempt: int) -> float:
    """Return the delay (seconds) before the reconnection `attempt` (0 based)."""
    return min(RECONNECT_BASE_DELAY * (2**attempt), RECONNECT_MAX_DELAY)


class SingleInstanceLock:
    """Exclusive lock on a file, held while the daemon runs.

    Usable as a context manager; `acquire` raises WorkstyleError when another
    process holds the lock.
    """

    def __init__(self, path: Path = LOCK_FILE) -> None:
        self.path = Path(path)
        self._file: IO[str] | None = None

    def acquire(self) -> None:
        lock_file = self.path.open("a+", encoding="utf-8")
        try:
            fcntl.flock(lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            lock_file.close()
            msg = f"{self.path} is locked, is workstyle already running ?"
            raise WorkstyleError(msg) from e
        lock_file.seek(0)
        lock_file.truncate()
        lock_file.write(f"{os.getpid()}\n")
        lock_file.flush()
        self._file = lock_file

    def release(self) -> None:
        if self._file is None:
            return
        fcntl.flock(self._file, fcntl.LOCK_UN)
        self._file.close()
        self._file = None

    @property
    def locked(self) -> bool:
        return self._file is not None

    def __enter__(self) -> Self:
        self.acquire()
        return self

    def __exit__(self, *args: object) -> None:
        self.release()


class Daemon:
    """Main app object."""

    stopped = False
    task: asyncio.Task | None = None

    def __init__(
        self,
        backend_class: type[EnvironmentBackend],
        table: IconTable,
        log: Logger | None = None,
    ) -> None:
        self.backend_class = backend_class
        self.log = log or get_logger()
        self.reconciler = Reconciler(table)
        self.attempt = 0

    async def session(self) -> None:
        """Run a single connection, until the stream fails.

        The event stream is opened before the tree is fetched: no change can
        fall between the snapshot and the first event.

        Raises:
            WMConnectionError: when the window manager goes away
        """
        backend = self.backend_class(log=get_logger(self.backend_class.name))
        try:
            async with backend:
                await backend.connect()
                await backend.subscribe(SUBSCRIBED_EVENTS)
                self.reconciler.backend = backend
                renamed = await self.reconciler.resync(await backend.fetch_tree())
                self.log.info("Synchronized %d workspaces (%d renamed)", len(self.reconciler.store), renamed)
                self.attempt = 0
                async for event in backend.events():
                    await self.reconciler.handle_event(event)
                    if self.stopped:
                        break
        finally:
            self.reconciler.backend = None

    async def run(self) -> None:
        """Run sessions until stopped, waiting more and more between failures."""
        self.task = asyncio.current_task()
        try:
            while not self.stopped:
                try:
                    await self.session()
                except OSError as e:
                    # WMConnectionError, or a socket error the backend let through
                    delay = backoff_delay(self.attempt)
                    self.log.warning("Lost the window manager (%s), retrying in %.1fs", e, delay)
                    self.attempt += 1
                    await asyncio.sleep(delay)
        except asyncio.CancelledError:
            if not self.stopped:
                raise
        finally:
            self.task = None
        self.log.info("Stopped")

    def stop(self) -> None:
        """Stop the daemon, interrupting the wait for the next event."""
        self.stopped = True
        if self.task is not None and self.task is not asyncio.current_task():
            self.task.cancel()


async def run_daemon(backend_class: type[EnvironmentBackend], table: IconTable) -> None:
    """Run the daemon."""
    daemon = Daemon(backend_class, table)
    asyncio.get_running_loop().add_signal_handler(signal.SIGTERM, daemon.stop)
    daemon.log.debug("[ started ]".center(80, "="))
    try:
        await daemon.run()
    except asyncio.CancelledError:
        daemon.log.critical("cancelled")
