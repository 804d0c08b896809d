"""Live node wrapper over Property trees.

Key types:
- PropertyNode: navigation, evaluation, reactivity, batching, transactions
- MutationOptions: `silent` / `path` options for mutating methods
- ValidationResult / DeepValidationResult: constraint outcomes
- SerializedProperty: validated JSON wire form
"""

from ._node import NodePredicate, PropertyNode, TraversalVisitor
from ._reactivity import SILENT, ChangeCallback, MutationOptions, PathFilter, Subscription, filter_paths
from ._serialize import (
    SerializedProperty,
    TypeRef,
    TypeResolver,
    clone_property,
    deserialize_property,
    property_equals,
    serialize_property,
    value_equals,
)
from ._validation import DeepValidationResult, ValidationResult

__all__ = [
    "SILENT",
    "ChangeCallback",
    "DeepValidationResult",
    "MutationOptions",
    "NodePredicate",
    "PathFilter",
    "PropertyNode",
    "SerializedProperty",
    "Subscription",
    "TraversalVisitor",
    "TypeRef",
    "TypeResolver",
    "ValidationResult",
    "clone_property",
    "deserialize_property",
    "filter_paths",
    "property_equals",
    "serialize_property",
    "value_equals",
]
