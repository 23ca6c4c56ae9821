"""Icon table: the resolved configuration used by the resolver.

The configuration file maps patterns to glyphs, in priority order, plus an
optional `[other]` section::

    "firefox" = "🦊"
    "code" = "💻"

    [other]
    fallback_icon = "🤨"
    deduplicate_icons = true

Patterns are matched case-insensitively against the class / app-id and the
title of each window. **The first matching pattern wins**: put specific
patterns (eg. "firefoxdeveloperedition") before the generic ones ("firefox").
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .constants import DEFAULT_SEPARATOR
from .models import ConfigurationError

if TYPE_CHECKING:
    import logging

__all__ = ["ConfigField", "IconTable", "OTHER_SCHEMA", "icon_table_from_config"]

OTHER_SECTION = "other"


@dataclass
class ConfigField:
    """Describes an expected field of the `[other]` section.

    Attributes:
        name: The configuration key name
        field_type: Expected type
        default: Default value if not provided
        description: Human-readable description for error messages
    """

    name: str
    field_type: type = str
    default: Any = None
    description: str = ""


OTHER_SCHEMA = (
    ConfigField("fallback_icon", str, None, "Glyph for windows matching no pattern"),
    ConfigField("deduplicate_icons", bool, False, "Show each glyph only once per workspace"),
    ConfigField("separator", str, DEFAULT_SEPARATOR, "Between the workspace number and the glyphs"),
    ConfigField("glyph_separator", str, "", "Between two glyphs"),
)


@dataclass(frozen=True)
class IconTable:
    """Ordered pattern -> glyph pairs and rendering options.

    Patterns are stored lower-cased.
    """

    mappings: tuple[tuple[str, str], ...] = ()
    fallback_glyph: str | None = None
    deduplicate: bool = False
    separator: str = DEFAULT_SEPARATOR
    glyph_separator: str = ""

    @classmethod
    def from_pairs(cls, pairs: list[tuple[str, str]] | tuple[tuple[str, str], ...], **options: Any) -> IconTable:  # noqa: ANN401
        """Build a table from (pattern, glyph) pairs, lower-casing the patterns."""
        return cls(mappings=tuple((pattern.lower(), glyph) for pattern, glyph in pairs), **options)


def _check_type(name: str, value: Any, expected: type) -> None:  # noqa: ANN401
    """Raise a ConfigurationError if `value` isn't of the `expected` type."""
    # bool is a subclass of int, never accept it for something else
    if not isinstance(value, expected) or (expected is not bool and isinstance(value, bool)):
        msg = f"[{OTHER_SECTION}] {name} must be a {expected.__name__}, got {type(value).__name__}: {value!r}"
        raise ConfigurationError(msg)


def _parse_other(section: Any, log: logging.Logger | None) -> dict[str, Any]:  # noqa: ANN401
    """Validate the `[other]` section and return the options with defaults applied."""
    if not isinstance(section, dict):
        msg = f"[{OTHER_SECTION}] must be a table"
        raise ConfigurationError(msg)
    known = {f.name: f for f in OTHER_SCHEMA}
    unknown = sorted(set(section) - set(known))
    if unknown:
        msg = f"[{OTHER_SECTION}] unknown option(s): {', '.join(unknown)}"
        raise ConfigurationError(msg)

    options: dict[str, Any] = {}
    for name, option in known.items():
        if name not in section:
            options[name] = option.default
            continue
        _check_type(name, section[name], option.field_type)
        options[name] = section[name]

    if not options["separator"]:
        msg = f"[{OTHER_SECTION}] separator can't be empty"
        raise ConfigurationError(msg)
    if log:
        log.debug("options: %s", options)
    return options


def icon_table_from_config(config: dict[str, Any], log: logging.Logger | None = None) -> IconTable:
    """Build the IconTable from a parsed configuration file.

    Args:
        config: The configuration dictionary, keys in file order
        log: Optional logger for debug output

    Raises:
        ConfigurationError: If a mapping or an option is invalid
    """
    pairs: list[tuple[str, str]] = []
    other: dict[str, Any] = {}
    for key, value in config.items():
        if key == OTHER_SECTION:
            other = value
            continue
        if not key.strip():
            msg = "Empty pattern in the icon mappings"
            raise ConfigurationError(msg)
        if not isinstance(value, str):
            msg = f"Icon for {key!r} must be a string, got {type(value).__name__}: {value!r}"
            raise ConfigurationError(msg)
        pairs.append((key, value))

    options = _parse_other(other, log)
    table = IconTable.from_pairs(
        pairs,
        fallback_glyph=options["fallback_icon"],
        deduplicate=options["deduplicate_icons"],
        separator=options["separator"],
        glyph_separator=options["glyph_separator"],
    )
    if log:
        log.info("Loaded %d icon mappings", len(table.mappings))
    return table
