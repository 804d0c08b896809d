"""The Property node shape shared by types, expressions, data and metadata."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Final, Literal


class _Unset(Enum):
    UNSET = "UNSET"

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = _Unset.UNSET
"""Marker for an absent `value` / `default_value`. `None` is a real payload."""

type Unset = Literal[_Unset.UNSET]


@dataclass(slots=True, eq=False, repr=False)
class Property:
    """A single node of the homoiconic tree.

    Types, expressions, user data, metadata and constraints all share this shape.
    `type` points to another Property; the root type points to itself, so the
    dataclass compares by identity and `repr()` only shows the type id.

    Attributes:
        id: Identifier, unique only among the siblings of the map holding it.
        type: The Property describing this one.
        value: Literal payload or a nested expression Property.
        default_value: Fallback restored by `PropertyNode.reset()`.
        metadata: Named sibling Properties describing this one.
        constraints: Named boolean-valued expressions used by validation.
        children: Named child Properties.

    """

    id: str
    type: Property
    value: Any = UNSET
    default_value: Any = UNSET
    metadata: dict[str, Property] | None = None
    constraints: dict[str, Property] | None = None
    children: dict[str, Property] | None = None

    def __repr__(self) -> str:
        type_id = self.type.id if isinstance(self.type, Property) else None
        parts = [f"id={self.id!r}", f"type={type_id!r}"]
        if self.value is not UNSET:
            value = self.value
            parts.append(f"value={value!r}" if not isinstance(value, Property) else f"value=<{value.id}>")
        if self.children:
            parts.append(f"children={list(self.children)!r}")
        return f"Property({', '.join(parts)})"
