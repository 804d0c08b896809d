"""Expression evaluation: literals, references and operator calls."""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import TYPE_CHECKING, Any

from ._errors import EvaluationDepthError, ReferenceResolutionError, UnknownOperatorError
from ._guards import is_expr, is_expr_value, is_lit, is_op, is_ref
from ._path import MAP_SELECTORS, Segment, format_path, parse_path
from ._property import UNSET

if TYPE_CHECKING:
    from ._property import Property
    from ._registry import EvaluationContext

logger = logging.getLogger(__name__)

_ARG_KEY = re.compile(r"arg(\d+)")


def _sorted_args(expr: Property) -> list[Property]:
    """Collect `arg<N>` children in numeric order."""
    if not expr.children:
        return []
    indexed: list[tuple[int, Property]] = []
    for key, arg in expr.children.items():
        match = _ARG_KEY.fullmatch(key)
        if match is not None:
            indexed.append((int(match.group(1)), arg))
    indexed.sort(key=lambda item: item[0])
    return [arg for _, arg in indexed]


def find_parent(target: Property, root: Property) -> Property | None:
    """Find the Property holding `target` in its children, metadata or constraints.

    Returns None when `target` is `root` or is not in the tree.
    """
    stack: list[Property] = [root]
    seen: set[int] = set()
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        for collection in (node.children, node.metadata, node.constraints):
            if not collection:
                continue
            for member in collection.values():
                if member is target:
                    return node
                stack.append(member)
    return None


async def evaluate(expr: Property, ctx: EvaluationContext) -> Any:
    """Evaluate an expression Property to its value.

    Non-expression Properties evaluate to their raw value (None when absent).

    Raises:
        UnknownOperatorError: If an operator-call names an unregistered operator.
        ReferenceResolutionError: If a reference segment cannot be resolved.
        EvaluationDepthError: If nesting exceeds `ctx.max_depth` or the
            interpreter's recursion limit, whichever comes first.

    """
    if ctx.depth > 0:
        return await _evaluate(expr, ctx)
    try:
        return await _evaluate(expr, ctx)
    except EvaluationDepthError:
        raise
    except RecursionError as e:
        msg = "Interpreter recursion limit reached while evaluating - possible circular reference"
        raise EvaluationDepthError(msg) from e


async def _evaluate(expr: Property, ctx: EvaluationContext) -> Any:
    depth = ctx.depth + 1
    if depth > ctx.max_depth:
        msg = f"Maximum evaluation depth {ctx.max_depth} exceeded - possible circular reference"
        raise EvaluationDepthError(msg)

    if is_lit(expr):
        return expr.value

    eval_ctx = replace(ctx, depth=depth)

    if is_ref(expr):
        return await _resolve_ref(parse_path(expr.value), eval_ctx)

    if is_op(expr):
        fn = ctx.registry.get(expr.id)
        if fn is None:
            raise UnknownOperatorError(expr.id)
        args = _sorted_args(expr)
        logger.debug("Calling operator %r with %d argument(s)", expr.id, len(args))
        result = fn(args, eval_ctx)
        if inspect.isawaitable(result):
            result = await result
        return result

    return None if expr.value is UNSET else expr.value


async def _evaluate_held(prop: Property, owner: Property, ctx: EvaluationContext) -> Any:
    """Read the value a resolved Property holds, evaluating expressions with `owner` as `self`."""
    if is_expr(prop):
        return await evaluate(prop, replace(ctx, current=owner))
    value = prop.value
    if value is UNSET:
        return None
    if is_expr_value(value):
        return await evaluate(value, replace(ctx, current=owner))
    return value


def _lookup_binding(value: Any, path: tuple[str, ...]) -> Any:
    """Index into a bound variable with the segments after the binding name."""
    for i, segment in enumerate(path[1:], start=1):
        if isinstance(value, Mapping):
            if segment not in value:
                msg = f"Key '{segment}' not found in binding '{path[0]}'"
                raise ReferenceResolutionError(msg, path=path, segment=segment)
            value = value[segment]
        elif isinstance(value, Sequence) and not isinstance(value, str) and segment.lstrip("-").isdigit():
            try:
                value = value[int(segment)]
            except IndexError:
                msg = f"Index {segment} out of range in binding '{format_path(path[:i])}'"
                raise ReferenceResolutionError(msg, path=path, segment=segment) from None
        elif hasattr(value, segment):
            value = getattr(value, segment)
        else:
            msg = f"Cannot resolve '{segment}' in binding '{format_path(path[:i])}'"
            raise ReferenceResolutionError(msg, path=path, segment=segment)
    return value


def _parent_of(prop: Property, ctx: EvaluationContext, path: tuple[str, ...]) -> Property:
    parent = ctx.find_parent(prop) if ctx.find_parent is not None else find_parent(prop, ctx.root)
    if parent is None:
        msg = f"Property '{prop.id}' has no parent (reference '{format_path(path)}')"
        raise ReferenceResolutionError(msg, path=path, segment=Segment.PARENT)
    return parent


def _select(prop: Property, selector: str, key: str, path: tuple[str, ...]) -> Property:
    collection: dict[str, Property] | None = getattr(prop, selector)
    if not collection or key not in collection:
        msg = f"'{key}' not found in {selector} of '{prop.id}' (reference '{format_path(path)}')"
        raise ReferenceResolutionError(msg, path=path, segment=key)
    return collection[key]


async def _resolve_ref(path: tuple[str, ...], ctx: EvaluationContext) -> Any:  # noqa: C901, PLR0912
    """Walk a reference path against the context.

    `owner` tracks the Property that owns the current location: entering a
    child makes the child the owner, entering metadata or constraints keeps
    the Property holding them. Expressions met on the way are evaluated with
    `current=owner`.
    """
    if not path:
        msg = "Empty reference path"
        raise ReferenceResolutionError(msg, path=path)

    start = path[0]
    i = 1
    match start:
        case Segment.SELF:
            current = ctx.current
        case Segment.ROOT:
            current = ctx.root
        case Segment.PARENT:
            current = _parent_of(ctx.current, ctx, path)
        case _:
            if ctx.bindings is not None and start in ctx.bindings:
                return _lookup_binding(ctx.bindings[start], path)
            current = ctx.current
            i = 0
    owner = current

    while i < len(path):
        segment = path[i]
        is_last = i == len(path) - 1
        match segment:
            case Segment.VALUE | Segment.ID:
                if not is_last:
                    msg = f"'{segment}' must be the last segment of reference '{format_path(path)}'"
                    raise ReferenceResolutionError(msg, path=path, segment=segment)
                if segment == Segment.ID:
                    return current.id
                return await _evaluate_held(current, owner, ctx)
            case Segment.TYPE:
                if is_last:
                    return current.type
                current = current.type
                owner = current
            case Segment.PARENT:
                current = _parent_of(current, ctx, path)
                owner = current
            case _ if segment in MAP_SELECTORS:
                i += 1
                if i >= len(path):
                    msg = f"'{segment}' must be followed by a key in reference '{format_path(path)}'"
                    raise ReferenceResolutionError(msg, path=path, segment=segment)
                selected = _select(current, segment, path[i], path)
                if segment == Segment.CHILDREN:
                    owner = selected
                else:
                    owner = current
                current = selected
            case _:
                if current.children and segment in current.children:
                    current = current.children[segment]
                    owner = current
                elif current.metadata and segment in current.metadata:
                    owner = current
                    current = current.metadata[segment]
                elif current.constraints and segment in current.constraints:
                    owner = current
                    current = current.constraints[segment]
                else:
                    msg = (
                        f"'{segment}' not found in children, metadata or constraints of '{current.id}'"
                        f" (reference '{format_path(path)}')"
                    )
                    raise ReferenceResolutionError(msg, path=path, segment=segment)
        i += 1

    return await _evaluate_held(current, owner, ctx)


async def eval_arg(arg: Property, ctx: EvaluationContext) -> Any:
    """Evaluate a single operator argument."""
    return await evaluate(arg, ctx)


async def eval_args(args: Sequence[Property], ctx: EvaluationContext) -> list[Any]:
    """Evaluate arguments strictly left to right, each finished before the next starts."""
    results: list[Any] = []
    for arg in args:
        results.append(await evaluate(arg, ctx))
    return results


async def eval_args_parallel(args: Sequence[Property], ctx: EvaluationContext) -> list[Any]:
    """Evaluate arguments concurrently; results keep the argument order."""
    return list(await asyncio.gather(*(evaluate(arg, ctx) for arg in args)))


def with_bindings(ctx: EvaluationContext, bindings: Mapping[str, Any]) -> EvaluationContext:
    """Return a new context with `bindings` overlaid on the existing ones."""
    merged = {**ctx.bindings, **bindings} if ctx.bindings else dict(bindings)
    return replace(ctx, bindings=merged)


def create_loop_context(ctx: EvaluationContext) -> tuple[EvaluationContext, dict[str, Any]]:
    """Create a context whose bindings dict can be updated in place on each iteration.

    Example:
        >>> loop_ctx, bindings = create_loop_context(ctx)
        >>> for item in items:
        ...     bindings["item"] = item
        ...     results.append(await evaluate(body, loop_ctx))

    """
    bindings: dict[str, Any] = dict(ctx.bindings) if ctx.bindings else {}
    return replace(ctx, bindings=bindings), bindings
