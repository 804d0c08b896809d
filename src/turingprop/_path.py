"""Dot-delimited path handling shared by references, navigation and notifications."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence


class Segment(StrEnum):
    """Reserved reference segments."""

    SELF = "self"
    PARENT = "parent"
    ROOT = "root"
    VALUE = "value"
    TYPE = "type"
    ID = "id"
    CHILDREN = "children"
    METADATA = "metadata"
    CONSTRAINTS = "constraints"


MAP_SELECTORS = frozenset(s.value for s in (Segment.CHILDREN, Segment.METADATA, Segment.CONSTRAINTS))

SEPARATOR = "."


def parse_path(path: str | Sequence[str]) -> tuple[str, ...]:
    """Normalize a dot-delimited string or a segment sequence into a segment tuple.

    An empty string is the empty path.

    Examples:
        >>> parse_path("user.name")
        ('user', 'name')
        >>> parse_path(["user", "name"])
        ('user', 'name')
        >>> parse_path("")
        ()

    """
    if isinstance(path, str):
        s = path.strip()
        if not s:
            return ()
        return tuple(s.split(SEPARATOR))
    return tuple(path)


def format_path(parts: Iterable[str]) -> str:
    return SEPARATOR.join(parts)


def to_path_string(path: str | Sequence[str]) -> str:
    return path if isinstance(path, str) else format_path(path)


def prefix_path(key: str, path: str) -> str:
    """Re-express `path` relative to the parent holding `key`.

    Examples:
        >>> prefix_path("user", "name")
        'user.name'
        >>> prefix_path("user", "")
        'user'

    """
    return f"{key}{SEPARATOR}{path}" if path else key


def matches_prefix(path: str, prefix: str) -> bool:
    """Check if `path` equals `prefix` or lies below it.

    Examples:
        >>> matches_prefix("user.name", "user")
        True
        >>> matches_prefix("username", "user")
        False

    """
    return path == prefix or path.startswith(prefix + SEPARATOR)
