"""Turn applications into glyphs and glyphs into workspace titles."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from logging import Logger

from .config import IconTable
from .constants import BLANK_GLYPH
from .logging_setup import get_logger
from .models import AppIdentifier

__all__ = ["IconResolver", "render", "make_title"]


def render(glyphs: Iterable[str], deduplicate: bool, glyph_separator: str = "") -> str:
    """Join the glyphs of a workspace.

    With `deduplicate`, only the first occurrence of every glyph is kept, at
    its original position (not only consecutive repeats are dropped).

    Args:
        glyphs: glyphs in window order
        deduplicate: keep first occurrences only
        glyph_separator: inserted between two glyphs
    """
    if deduplicate:
        glyphs = dict.fromkeys(glyphs)
    return glyph_separator.join(glyphs)


def make_title(prefix: str, suffix: str, separator: str) -> str:
    """Return the full workspace name, or the bare prefix when there are no glyphs."""
    if not suffix:
        return prefix
    return f"{prefix}{separator}{suffix}"


class IconResolver:
    """Resolves application identifiers using an icon table.

    Identifiers matching no pattern are reported once per process, through
    `on_unresolved` (a warning on the "resolver" logger by default).
    """

    def __init__(self, on_unresolved: Callable[[str], None] | None = None, log: Logger | None = None) -> None:
        self.log = log or get_logger("resolver")
        self.on_unresolved = on_unresolved or self._report
        self.unresolved: set[str] = set()

    def _report(self, identifier: str) -> None:
        self.log.warning("Couldn't identify window: %s", identifier)
        self.log.info("Make sure to add an icon for this application in your config file!")

    def resolve(self, app: AppIdentifier, table: IconTable) -> str:
        """Return the glyph of the first pattern matching `app`."""
        for pattern, glyph in table.mappings:
            if app.matches(pattern):
                return glyph
        identifier = str(app)
        if identifier not in self.unresolved:
            self.unresolved.add(identifier)
            self.on_unresolved(identifier)
        return table.fallback_glyph if table.fallback_glyph is not None else BLANK_GLYPH

    def title_suffix(self, apps: Iterable[AppIdentifier], table: IconTable) -> str:
        """Render the glyphs of `apps` according to the table options."""
        return render((self.resolve(app, table) for app in apps), table.deduplicate, table.glyph_separator)
