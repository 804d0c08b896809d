"""Operator registry and the evaluation context handed to operators."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator, Mapping

    from ._property import Property

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 200


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    """Everything an expression needs to evaluate.

    Attributes:
        current: Receiver of `self`-relative references.
        root: Receiver of `root`-relative references.
        registry: Operator lookup table.
        bindings: Variables injected by loop-style operators.
        depth: Current nesting depth of `evaluate` calls.
        find_parent: Resolves the parent of a Property for `parent` segments.
        max_depth: Depth at which evaluation is aborted.

    """

    current: Property
    root: Property
    registry: Registry
    bindings: Mapping[str, Any] | None = None
    depth: int = 0
    find_parent: Callable[[Property], Property | None] | None = None
    max_depth: int = DEFAULT_MAX_DEPTH


type OperatorFn = Callable[[list[Property], EvaluationContext], Any | Awaitable[Any]]
"""Operator signature: unevaluated arguments and the context; may return an awaitable."""


class Registry:
    """Named lookup table from operator name to operator function.

    No arity or signature checks are made. Not synchronized; mutating a
    registry shared by in-flight evaluations is the caller's concern.
    """

    __slots__ = ("_operators",)

    def __init__(self) -> None:
        self._operators: dict[str, OperatorFn] = {}

    def register(self, name: str, fn: OperatorFn) -> Registry:
        """Register (or replace) an operator.

        Example:
            >>> async def add(args, ctx):
            ...     a, b = await eval_args(args, ctx)
            ...     return a + b
            >>> registry = Registry().register("add", add)

        """
        if name in self._operators:
            logger.debug("Replacing operator %r", name)
        self._operators[name] = fn
        return self

    def operator[F: OperatorFn](self, name: str | None = None) -> Callable[[F], F]:
        """Decorator to register a function as an operator.

        The function's `__name__` is used when `name` is omitted.
        """

        def decorator(fn: F) -> F:
            if name is None:
                if not hasattr(fn, "__name__") or not isinstance(fn.__name__, str):
                    msg = "Operator function must have a valid name."
                    raise TypeError(msg)
                operator_name = fn.__name__
            else:
                operator_name = name
            self.register(operator_name, fn)
            return fn

        return decorator

    def unregister(self, name: str) -> bool:
        """Remove an operator. Returns True if it was registered."""
        return self._operators.pop(name, None) is not None

    def get(self, name: str) -> OperatorFn | None:
        return self._operators.get(name)

    def has(self, name: str) -> bool:
        return name in self._operators

    def keys(self) -> Iterator[str]:
        return iter(self._operators.keys())

    @property
    def size(self) -> int:
        return len(self._operators)

    def clear(self) -> Registry:
        self._operators.clear()
        return self

    def __len__(self) -> int:
        return len(self._operators)

    def __contains__(self, name: object) -> bool:
        return name in self._operators

    def __iter__(self) -> Iterator[str]:
        return self.keys()

    def __repr__(self) -> str:
        return f"Registry({sorted(self._operators)!r})"


def create_registry() -> Registry:
    """Create a new empty registry."""
    return Registry()
