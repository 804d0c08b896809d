"""Homoiconic property trees with async expressions, reactivity and transactions."""

__all__ = [
    "BOOTSTRAP_TYPES",
    "CONSTRAINT",
    "DEFAULT_CONFIG",
    "DEFAULT_MAX_DEPTH",
    "EXPR",
    "LIT",
    "OP",
    "OPERATOR",
    "PROPERTY",
    "REF",
    "SILENT",
    "TYPE",
    "UNSET",
    "ChangeCallback",
    "ConfigError",
    "DeepValidationResult",
    "DestroyedNodeError",
    "EvaluationContext",
    "EvaluationDepthError",
    "MissingRegistryError",
    "MutationOptions",
    "OperatorFn",
    "PathFilter",
    "Property",
    "PropertyNode",
    "ReferenceResolutionError",
    "Registry",
    "Segment",
    "SerializedProperty",
    "SubscriberError",
    "SubscriberErrorPolicy",
    "Subscription",
    "TuringPropConfig",
    "TuringPropError",
    "TypeResolver",
    "UnknownOperatorError",
    "ValidationResult",
    "clone_property",
    "create_loop_context",
    "create_registry",
    "current_config",
    "deserialize_property",
    "discover_config",
    "eval_arg",
    "eval_args",
    "eval_args_parallel",
    "evaluate",
    "find_parent",
    "format_path",
    "get_type_name",
    "is_constraint",
    "is_expr",
    "is_lit",
    "is_op",
    "is_operator",
    "is_property",
    "is_ref",
    "is_type",
    "lit",
    "load_config",
    "op",
    "parse_path",
    "ref",
    "serialize_property",
    "use_config",
    "with_bindings",
]

from ._config import (
    DEFAULT_CONFIG,
    ConfigError,
    SubscriberErrorPolicy,
    TuringPropConfig,
    current_config,
    discover_config,
    load_config,
    use_config,
)
from ._errors import (
    DestroyedNodeError,
    EvaluationDepthError,
    MissingRegistryError,
    ReferenceResolutionError,
    SubscriberError,
    TuringPropError,
    UnknownOperatorError,
)
from ._evaluator import (
    create_loop_context,
    eval_arg,
    eval_args,
    eval_args_parallel,
    evaluate,
    find_parent,
    with_bindings,
)
from ._expressions import lit, op, ref
from ._guards import (
    get_type_name,
    is_constraint,
    is_expr,
    is_lit,
    is_op,
    is_operator,
    is_property,
    is_ref,
    is_type,
)
from ._node import (
    SILENT,
    ChangeCallback,
    DeepValidationResult,
    MutationOptions,
    PathFilter,
    PropertyNode,
    SerializedProperty,
    Subscription,
    TypeResolver,
    ValidationResult,
    clone_property,
    deserialize_property,
    serialize_property,
)
from ._path import Segment, format_path, parse_path
from ._property import UNSET, Property
from ._registry import DEFAULT_MAX_DEPTH, EvaluationContext, OperatorFn, Registry, create_registry
from ._types import BOOTSTRAP_TYPES, CONSTRAINT, EXPR, LIT, OP, OPERATOR, PROPERTY, REF, TYPE
