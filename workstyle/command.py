"""workstyle - name your workspaces after the windows they hold."""

import asyncio
import sys

from .adapters import BACKENDS, detect_backend
from .adapters.backend import EnvironmentBackend
from .config_loader import ConfigLoader
from .daemon import SingleInstanceLock, run_daemon
from .logging_setup import get_logger, init_logger
from .models import ConfigurationError, ExitCode, WorkstyleError
from .version import VERSION

__all__ = ["main"]

USAGE = f"""Usage: workstyle [--debug <logfile>] [--config <path>] [--enforce-window-manager <wm>]
       workstyle --version | --help

Renames your workspaces to show icons of the applications they hold.

Options:
  --debug <logfile>             verbose logging, also written to <logfile>
  --config <path>               configuration file (created if missing)
  --enforce-window-manager <wm> skip detection, one of: {", ".join(BACKENDS)}
"""


class UsageError(WorkstyleError):
    """Invalid command line."""


def use_param(txt: str, argv: list[str]) -> str:
    """Check if parameter `txt` is in `argv`.

    if found, removes it from `argv` & returns the argument value
    """
    v = ""
    if txt in argv:
        i = argv.index(txt)
        if i + 1 >= len(argv):
            msg = f"{txt} expects a value"
            raise UsageError(msg)
        v = argv[i + 1]
        del argv[i : i + 2]
    return v


async def start(backend_class: type[EnvironmentBackend], config_path: str) -> None:
    """Load the configuration, then run the daemon."""
    log = get_logger("config")
    table = await ConfigLoader(log, config_path or None).load()
    log.info("%d icon patterns loaded", len(table.mappings))
    await run_daemon(backend_class, table)


def main(argv: list[str] | None = None) -> int:  # noqa: PLR0911
    """Run the command."""
    args = list(sys.argv[1:] if argv is None else argv)
    if "--help" in args or "-h" in args:
        print(USAGE)
        return ExitCode.SUCCESS
    if "--version" in args:
        print(VERSION)
        return ExitCode.SUCCESS
    try:
        debug_flag = use_param("--debug", args)
        config_path = use_param("--config", args)
        enforced = use_param("--enforce-window-manager", args)
        if args:
            msg = f"unexpected arguments: {' '.join(args)}"
            raise UsageError(msg)
        if enforced and enforced not in BACKENDS:
            msg = f"unknown window manager {enforced!r}, expected one of: {', '.join(BACKENDS)}"
            raise UsageError(msg)
    except UsageError as e:
        print(f"workstyle: {e}\n\n{USAGE}", file=sys.stderr)
        return ExitCode.USAGE_ERROR

    if debug_flag:
        init_logger(filename=debug_flag, force_debug=True)
    else:
        init_logger()
    log = get_logger("startup")

    backend_class = detect_backend(enforced or None)
    if backend_class is None:
        log.critical("No supported window manager found (Hyprland, Sway or i3)")
        return ExitCode.ENV_ERROR

    lock = SingleInstanceLock()
    try:
        lock.acquire()
    except WorkstyleError as e:
        log.critical("%s", e)
        return ExitCode.ALREADY_RUNNING

    try:
        asyncio.run(start(backend_class, config_path))
    except KeyboardInterrupt:
        pass
    except ConfigurationError as e:
        log.critical("%s", e)
        return ExitCode.CONFIG_ERROR
    finally:
        lock.release()
    return ExitCode.SUCCESS


if __name__ == "__main__":
    sys.exit(main())
