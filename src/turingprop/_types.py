"""Bootstrap meta-types.

The type graph is closed: `TYPE` is its own type, every other meta-type has
`TYPE` as its type, and the three expression kinds have `EXPR` as their type.
"""

from typing import Final

from ._property import Property

TYPE: Final = Property(id="Type", type=None)  # type: ignore[arg-type]
TYPE.type = TYPE

EXPR: Final = Property(id="Expr", type=TYPE)
OPERATOR: Final = Property(id="Operator", type=TYPE)
CONSTRAINT: Final = Property(id="Constraint", type=TYPE)
PROPERTY: Final = Property(id="Property", type=TYPE)

LIT: Final = Property(id="Lit", type=EXPR)
REF: Final = Property(id="Ref", type=EXPR)
OP: Final = Property(id="Op", type=EXPR)

BOOTSTRAP_TYPES: Final[dict[str, Property]] = {
    prop.id: prop for prop in (TYPE, EXPR, OPERATOR, CONSTRAINT, PROPERTY, LIT, REF, OP)
}
