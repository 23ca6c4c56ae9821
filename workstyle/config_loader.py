"""Configuration file loading.

Reads the TOML configuration, writing the default one first when the file
doesn't exist yet, and turns it into an `IconTable`.
"""

from __future__ import annotations

import os
import tomllib
from importlib import resources
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiofiles
import aiofiles.os

from .config import IconTable, icon_table_from_config
from .constants import CONFIG_FILE
from .models import ConfigurationError

if TYPE_CHECKING:
    import logging

__all__ = ["ConfigLoader", "default_config_text"]


def default_config_text() -> str:
    """Return the content of the default configuration file."""
    return resources.files("workstyle").joinpath("default_config.toml").read_text(encoding="utf-8")


class ConfigLoader:
    """Locates, scaffolds and parses the configuration file."""

    def __init__(self, log: logging.Logger, path: str | Path | None = None) -> None:
        """Initialize the config loader.

        Args:
            log: Logger instance for status and error messages
            path: Configuration file, defaults to CONFIG_FILE
        """
        self.log = log
        self.path = Path(os.path.expandvars(str(path))).expanduser() if path else CONFIG_FILE

    async def ensure_exists(self) -> bool:
        """Write the default configuration if there is none.

        Returns:
            True if the file was created
        """
        if await aiofiles.os.path.exists(self.path):
            return False
        self.log.warning("Config file not found, creating %s", self.path)
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
                await f.write(default_config_text())
        except OSError as e:
            msg = f"Can't write the default configuration to {self.path}: {e}"
            raise ConfigurationError(msg) from e
        return True

    async def read(self) -> dict[str, Any]:
        """Return the parsed configuration file.

        Raises:
            ConfigurationError: If the file can't be read or has syntax errors
        """
        self.log.info("Loading %s", self.path)
        try:
            async with aiofiles.open(self.path, encoding="utf-8") as f:
                content = await f.read()
        except OSError as e:
            msg = f"Can't read {self.path}: {e}"
            raise ConfigurationError(msg) from e
        try:
            return tomllib.loads(content)
        except tomllib.TOMLDecodeError as e:
            msg = f"Problem reading {self.path}: {e}"
            raise ConfigurationError(msg) from e

    async def load(self) -> IconTable:
        """Return the icon table, creating the default configuration if needed."""
        await self.ensure_exists()
        return icon_table_from_config(await self.read(), log=self.log)
