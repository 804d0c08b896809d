"""JSON wire form, deep copy and structural equality of Property trees.

Type references are always handled by id, never expanded: the meta-type graph
is self-referential and bootstrap types are shared, not copied.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from turingprop._guards import is_property
from turingprop._property import UNSET, Property
from turingprop._types import BOOTSTRAP_TYPES, TYPE

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

type TypeResolver = Callable[[str], Property | None]
"""Maps a serialized type id to a type Property; None defers to the default resolution."""


class TypeRef(BaseModel):
    """Minimal type reference: the id only."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str


class SerializedProperty(BaseModel):
    """JSON-safe mirror of a Property.

    `{id, type: {id}, value?, defaultValue?, metadata?, constraints?, children?}`.
    Absent fields stay unset, so an explicit `null` value survives a round trip.
    Properties nested in a value keep this shape. A plain mapping that has it
    too is written as `{"$plain": {...}}` so it reads back as a mapping.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    type: TypeRef
    value: Any = None
    default_value: Any = Field(default=None, alias="defaultValue")
    metadata: dict[str, SerializedProperty] | None = None
    constraints: dict[str, SerializedProperty] | None = None
    children: dict[str, SerializedProperty] | None = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_unset=True)


def _looks_serialized(value: Any) -> bool:
    if not isinstance(value, Mapping):
        return False
    type_ = value.get("type")
    return isinstance(value.get("id"), str) and isinstance(type_, Mapping) and isinstance(type_.get("id"), str)


_PLAIN_KEY = "$plain"
"""Wraps a plain mapping that would otherwise read back as a serialized Property."""


def _is_escaped(value: Any) -> bool:
    return isinstance(value, Mapping) and len(value) == 1 and isinstance(value.get(_PLAIN_KEY), Mapping)


# =============================================================================
# Serialization
# =============================================================================


def _serialize_value(value: Any) -> Any:
    """Serialize a stored value, turning nested Properties into their wire form."""
    if is_property(value):
        return serialize_property(value).to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize_value(item) for item in value]
    if isinstance(value, Mapping):
        body = {str(k): _serialize_value(v) for k, v in value.items()}
        return {_PLAIN_KEY: body} if _looks_serialized(body) or _is_escaped(body) else body
    return value


def _serialize_map(collection: dict[str, Property] | None) -> dict[str, SerializedProperty] | None:
    if collection is None:
        return None
    return {key: serialize_property(member) for key, member in collection.items()}


def serialize_property(prop: Property) -> SerializedProperty:
    """Build the wire model of a Property tree."""
    fields: dict[str, Any] = {"id": prop.id, "type": TypeRef(id=prop.type.id)}
    if prop.value is not UNSET:
        fields["value"] = _serialize_value(prop.value)
    if prop.default_value is not UNSET:
        fields["default_value"] = _serialize_value(prop.default_value)
    for name in ("metadata", "constraints", "children"):
        serialized = _serialize_map(getattr(prop, name))
        if serialized is not None:
            fields[name] = serialized
    return SerializedProperty(**fields)


# =============================================================================
# Deserialization
# =============================================================================


class _TypeTable:
    """Resolves type ids for one deserialization, sharing one stand-in per unknown id."""

    __slots__ = ("_resolver", "_stand_ins")

    def __init__(self, resolver: TypeResolver | None) -> None:
        self._resolver = resolver
        self._stand_ins: dict[str, Property] = {}

    def resolve(self, type_id: str) -> Property:
        if self._resolver is not None:
            resolved = self._resolver(type_id)
            if resolved is not None:
                return resolved
        bootstrap = BOOTSTRAP_TYPES.get(type_id)
        if bootstrap is not None:
            return bootstrap
        stand_in = self._stand_ins.get(type_id)
        if stand_in is None:
            logger.debug("Creating stand-in type for unknown type id %r", type_id)
            stand_in = Property(id=type_id, type=TYPE)
            self._stand_ins[type_id] = stand_in
        return stand_in


def _revive_value(value: Any, types: _TypeTable) -> Any:
    """Rebuild Properties nested in a deserialized value."""
    if _is_escaped(value):
        return {k: _revive_value(v, types) for k, v in value[_PLAIN_KEY].items()}
    if _looks_serialized(value):
        return _build(SerializedProperty.model_validate(value), types)
    if isinstance(value, list):
        return [_revive_value(item, types) for item in value]
    if isinstance(value, Mapping):
        return {k: _revive_value(v, types) for k, v in value.items()}
    return value


def _build(model: SerializedProperty, types: _TypeTable) -> Property:
    prop = Property(id=model.id, type=types.resolve(model.type.id))
    fields_set = model.model_fields_set
    if "value" in fields_set:
        prop.value = _revive_value(model.value, types)
    if "default_value" in fields_set:
        prop.default_value = _revive_value(model.default_value, types)
    if model.metadata is not None:
        prop.metadata = {key: _build(member, types) for key, member in model.metadata.items()}
    if model.constraints is not None:
        prop.constraints = {key: _build(member, types) for key, member in model.constraints.items()}
    if model.children is not None:
        prop.children = {key: _build(member, types) for key, member in model.children.items()}
    return prop


def deserialize_property(
    data: SerializedProperty | Mapping[str, Any] | str | bytes,
    type_resolver: TypeResolver | None = None,
) -> Property:
    """Rebuild a Property tree from its wire form.

    Args:
        data: A validated model, a plain mapping, or a JSON document.
        type_resolver: Optional hook mapping type ids to type Properties.

    Raises:
        ValueError: If the data does not have the shape of a serialized Property.

    """
    try:
        if isinstance(data, SerializedProperty):
            model = data
        elif isinstance(data, (str, bytes)):
            model = SerializedProperty.model_validate_json(data)
        else:
            model = SerializedProperty.model_validate(data)
        return _build(model, _TypeTable(type_resolver))
    except ValidationError as e:
        msg = f"Invalid serialized property: {e}"
        raise ValueError(msg) from e


# =============================================================================
# Deep copy
# =============================================================================


def clone_value(value: Any) -> Any:
    """Deep copy a stored value; nested Properties are cloned, types are shared."""
    if value is None or value is UNSET:
        return value
    if is_property(value):
        return clone_property(value)
    if isinstance(value, list):
        return [clone_value(item) for item in value]
    if isinstance(value, tuple):
        return tuple(clone_value(item) for item in value)
    if isinstance(value, dict):
        return {k: clone_value(v) for k, v in value.items()}
    return copy.deepcopy(value)


def _clone_map(collection: dict[str, Property] | None) -> dict[str, Property] | None:
    if collection is None:
        return None
    return {key: clone_property(member) for key, member in collection.items()}


def clone_property(prop: Property) -> Property:
    """Deep copy a Property tree without sharing any mutable structure."""
    return Property(
        id=prop.id,
        type=prop.type,
        value=clone_value(prop.value),
        default_value=clone_value(prop.default_value),
        metadata=_clone_map(prop.metadata),
        constraints=_clone_map(prop.constraints),
        children=_clone_map(prop.children),
    )


# =============================================================================
# Structural equality
# =============================================================================


def _map_equals(a: dict[str, Property] | None, b: dict[str, Property] | None) -> bool:
    a = a or {}
    b = b or {}
    if a.keys() != b.keys():
        return False
    return all(property_equals(member, b[key]) for key, member in a.items())


def property_equals(a: Property, b: Property) -> bool:
    """Compare two Property trees by ids, type ids, values, metadata, constraints and children."""
    if a is b:
        return True
    if a.id != b.id or a.type.id != b.type.id:
        return False
    if not value_equals(a.value, b.value) or not value_equals(a.default_value, b.default_value):
        return False
    return (
        _map_equals(a.children, b.children)
        and _map_equals(a.metadata, b.metadata)
        and _map_equals(a.constraints, b.constraints)
    )


def value_equals(a: Any, b: Any) -> bool:  # noqa: PLR0911
    """Compare stored values; `UNSET` equals only itself."""
    if a is b:
        return True
    if a is UNSET or b is UNSET:
        return False
    if is_property(a) and is_property(b):
        return property_equals(a, b)
    if is_property(a) or is_property(b):
        return False
    if isinstance(a, (list, tuple)) and isinstance(b, (list, tuple)):
        return len(a) == len(b) and all(value_equals(x, y) for x, y in zip(a, b, strict=True))
    if isinstance(a, Mapping) and isinstance(b, Mapping):
        return a.keys() == b.keys() and all(value_equals(a[k], b[k]) for k in a)
    return bool(a == b)
