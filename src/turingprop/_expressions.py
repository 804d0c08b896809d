"""Factories for the three expression kinds."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from ._path import parse_path
from ._property import Property
from ._types import LIT, OP, REF

if TYPE_CHECKING:
    from collections.abc import Sequence


def lit(payload: Any) -> Property:
    """Create a literal expression.

    Examples:
        >>> lit(42).value
        42

    """
    return Property(id="lit", type=LIT, value=payload)


def ref(path: str | Sequence[str]) -> Property:
    """Create a reference expression.

    Dot notation and an explicit segment list produce the same stored value.

    Examples:
        >>> ref("parent.name.value").value
        ['parent', 'name', 'value']
        >>> ref(["parent", "name", "value"]).value
        ['parent', 'name', 'value']

    """
    return Property(id="ref", type=REF, value=list(parse_path(path)))


def op(name: str, *args: Property) -> Property:
    """Create an operator-call expression with arguments stored as `arg0..argN-1`."""
    return Property(
        id=name,
        type=OP,
        children={f"arg{i}": arg for i, arg in enumerate(args)},
    )
