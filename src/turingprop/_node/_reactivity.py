"""Subscriptions, path filters and mutation options."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from turingprop._path import matches_prefix, parse_path

if TYPE_CHECKING:
    from collections.abc import Iterable

type ChangeCallback = Callable[[list[str]], object]
"""Receives the changed paths, relative to the subscribed node."""

type PathFilter = str | Sequence[str] | Callable[[str], bool]
"""Exact-or-prefix path, several of them, or a predicate over a path."""


@dataclass(frozen=True, slots=True)
class MutationOptions:
    """Options accepted by mutating methods.

    Attributes:
        silent: Skip change notification.
        path: Apply the mutation to this descendant instead of the node itself.

    """

    silent: bool = False
    path: tuple[str, ...] | None = None

    @classmethod
    def at(cls, path: str | Sequence[str], *, silent: bool = False) -> MutationOptions:
        """Build options targeting a descendant given as dotted string or segments."""
        return cls(silent=silent, path=parse_path(path))


SILENT: Final = MutationOptions(silent=True)


@dataclass(slots=True)
class _Listener:
    callback: ChangeCallback
    path_filter: PathFilter | None


@dataclass(slots=True)
class Subscription:
    """Handle returned by `PropertyNode.subscribe`."""

    id: str
    _listeners: dict[str, _Listener] = field(repr=False)

    @property
    def is_active(self) -> bool:
        return self.id in self._listeners

    def unsubscribe(self) -> None:
        """Stop receiving notifications. Safe to call more than once."""
        self._listeners.pop(self.id, None)


def filter_paths(paths: Iterable[str], path_filter: PathFilter | None) -> list[str]:
    """Keep the paths selected by a subscription filter.

    Examples:
        >>> filter_paths(["user.name", "settings.theme"], "user")
        ['user.name']
        >>> filter_paths(["user.name", "user.age"], lambda p: p.endswith("age"))
        ['user.age']

    """
    if path_filter is None:
        return list(paths)
    if isinstance(path_filter, str):
        return [p for p in paths if matches_prefix(p, path_filter)]
    if callable(path_filter):
        return [p for p in paths if path_filter(p)]
    prefixes = list(path_filter)
    return [p for p in paths if any(matches_prefix(p, prefix) for prefix in prefixes)]
