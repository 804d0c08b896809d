"""Type guards for Properties, by identity against the bootstrap types."""

from typing import Any, TypeGuard

from ._property import Property
from ._types import CONSTRAINT, EXPR, LIT, OP, OPERATOR, REF, TYPE


def is_lit(prop: Property) -> bool:
    return prop.type is LIT


def is_ref(prop: Property) -> bool:
    return prop.type is REF


def is_op(prop: Property) -> bool:
    return prop.type is OP


def is_expr(prop: Property) -> bool:
    """Check if a Property is any expression kind (or typed directly as `EXPR`)."""
    type_ = prop.type
    return type_ is LIT or type_ is REF or type_ is OP or type_ is EXPR


def is_type(prop: Property) -> bool:
    return prop.type is TYPE


def is_constraint(prop: Property) -> bool:
    return prop.type is CONSTRAINT


def is_operator(prop: Property) -> bool:
    return prop.type is OPERATOR


def get_type_name(prop: Property) -> str:
    type_ = getattr(prop, "type", None)
    return type_.id if isinstance(type_, Property) else "Unknown"


def is_property(value: Any) -> TypeGuard[Property]:
    """Check that `value` is a well-formed Property.

    Requires a string id and a type that is either the Property itself (the
    root type) or a Property with a string id. The type's own type is not
    followed, so the self-referential root never recurses.
    """
    if not isinstance(value, Property) or not isinstance(value.id, str):
        return False
    type_ = value.type
    if type_ is value:
        return True
    return isinstance(type_, Property) and isinstance(type_.id, str)


def is_expr_value(value: Any) -> TypeGuard[Property]:
    """Check if a stored value is an expression Property to be evaluated."""
    return is_property(value) and is_expr(value)
