"""PropertyNode: a live wrapper over a Property tree.

A node owns one Property and offers navigation, evaluation through the
registry, change notification, batching, transactional rollback, validation
and serialization. Child nodes are materialized lazily and cached by key;
their parent link is set at materialization and never serialized.
"""

from __future__ import annotations

import logging
from collections import deque
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Self

from turingprop._config import SubscriberErrorPolicy, TuringPropConfig, current_config
from turingprop._errors import DestroyedNodeError, MissingRegistryError, SubscriberError
from turingprop._evaluator import evaluate, find_parent
from turingprop._guards import is_expr, is_expr_value, is_property
from turingprop._path import format_path, parse_path, prefix_path, to_path_string
from turingprop._property import UNSET, Property
from turingprop._registry import EvaluationContext

from ._reactivity import MutationOptions, Subscription, _Listener, filter_paths
from ._serialize import (
    clone_property,
    clone_value,
    deserialize_property,
    property_equals,
    serialize_property,
)
from ._transaction import UndoJournal
from ._validation import ROOT_PATH_KEY, DeepValidationResult, ValidationResult

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Hashable, Iterator, Mapping, Sequence

    from turingprop._registry import Registry

    from ._reactivity import ChangeCallback, PathFilter
    from ._serialize import SerializedProperty, TypeResolver

logger = logging.getLogger(__name__)

type TraversalVisitor = Callable[[PropertyNode, list[str]], object]
"""Called with a node and its path relative to the walk's start; a truthy return stops the walk."""

type NodePredicate = Callable[[PropertyNode], bool]


_NO_OPTIONS = MutationOptions()


class PropertyNode:
    """Live wrapper over a Property tree.

    Example:
        >>> registry = Registry().register("add", add)
        >>> node = PropertyNode(Property(id="r", type=PROPERTY, value=op("add", lit(2), lit(3))), registry)
        >>> await node.get_value()
        5

    """

    __slots__ = (
        "_batch_errors",
        "_batched",
        "_child_nodes",
        "_config",
        "_destroyed",
        "_journals",
        "_key",
        "_listeners",
        "_parent",
        "_property",
        "_registry",
        "_subscription_seq",
    )

    def __init__(
        self,
        prop: Property,
        registry: Registry | None = None,
        *,
        config: TuringPropConfig | None = None,
    ) -> None:
        if not is_property(prop):
            msg = f"Expected a Property, got {type(prop).__name__}"
            raise TypeError(msg)
        self._property = prop
        self._registry = registry
        self._config = config
        self._parent: PropertyNode | None = None
        self._key: str | None = None
        self._child_nodes: dict[str, PropertyNode] = {}
        self._listeners: dict[str, _Listener] = {}
        self._subscription_seq = 0
        self._batched: list[str] | None = None
        self._batch_errors: list[Exception] = []
        self._journals: list[UndoJournal] = []
        self._destroyed = False

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def create(
        cls,
        prop: Property,
        registry: Registry | None = None,
        *,
        config: TuringPropConfig | None = None,
    ) -> Self:
        """Wrap a Property tree in a root node."""
        return cls(prop, registry, config=config)

    wrap = create

    @classmethod
    def from_json(
        cls,
        data: SerializedProperty | Mapping[str, Any] | str | bytes,
        type_resolver: TypeResolver | None = None,
        *,
        registry: Registry | None = None,
        config: TuringPropConfig | None = None,
    ) -> Self:
        """Rebuild a tree from its serialized form.

        The serialized form carries no operator functions; attach a registry
        here or later with `set_registry`.

        Raises:
            ValueError: If `data` is not a serialized Property.

        """
        return cls(deserialize_property(data, type_resolver), registry, config=config)

    @staticmethod
    def clone_property(prop: Property) -> Property:
        """Deep copy a Property tree without wrapping it."""
        return clone_property(prop)

    # =========================================================================
    # Registry & config
    # =========================================================================

    def set_registry(self, registry: Registry | None) -> Self:
        self._registry = registry
        return self

    def get_registry(self) -> Registry | None:
        """Get the registry of this node or of its nearest ancestor that has one."""
        node: PropertyNode | None = self
        while node is not None:
            if node._registry is not None:
                return node._registry
            node = node._parent
        return None

    def _explicit_config(self) -> TuringPropConfig | None:
        node: PropertyNode | None = self
        while node is not None:
            if node._config is not None:
                return node._config
            node = node._parent
        return None

    @property
    def config(self) -> TuringPropConfig:
        """Config of the tree, or of the current context when the tree has none."""
        config = self._explicit_config()
        return config if config is not None else current_config()

    # =========================================================================
    # Property access
    # =========================================================================

    def get_property(self) -> Property:
        return self._property

    @property
    def id(self) -> str:
        return self._property.id

    @property
    def type(self) -> Property:
        return self._property.type

    @property
    def key(self) -> str | None:
        """Key under which the parent holds this node (None for a root)."""
        return self._key

    # =========================================================================
    # Navigation
    # =========================================================================

    @property
    def parent(self) -> PropertyNode | None:
        return self._parent

    @property
    def root(self) -> PropertyNode:
        node = self
        while node._parent is not None:
            node = node._parent
        return node

    @property
    def is_root(self) -> bool:
        return self._parent is None

    @property
    def depth(self) -> int:
        """Number of ancestors (root = 0)."""
        d = 0
        node = self._parent
        while node is not None:
            d += 1
            node = node._parent
        return d

    def child(self, key: str) -> PropertyNode | None:
        """Get the child node under `key`, materializing it on first access."""
        children = self._property.children
        if not children or key not in children:
            return None
        child_prop = children[key]
        node = self._child_nodes.get(key)
        if node is None or node._property is not child_prop:
            node = PropertyNode(child_prop)
            node._parent = self
            node._key = key
            self._child_nodes[key] = node
        return node

    def children(self) -> list[PropertyNode]:
        return [node for key in self.child_keys() if (node := self.child(key)) is not None]

    def child_keys(self) -> list[str]:
        return list(self._property.children) if self._property.children else []

    def has_children(self) -> bool:
        return bool(self._property.children)

    @property
    def child_count(self) -> int:
        return len(self._property.children) if self._property.children else 0

    def get(self, path: str | Sequence[str]) -> PropertyNode | None:
        """Resolve a descendant through children only.

        Metadata and constraints are not traversed. Returns None if any segment
        is missing; the empty path is the node itself.
        """
        node: PropertyNode | None = self
        for part in parse_path(path):
            if node is None:
                return None
            node = node.child(part)
        return node

    def path(self) -> list[str]:
        """Keys from the root down to this node."""
        parts: list[str] = []
        node = self
        while node._parent is not None and node._key is not None:
            parts.append(node._key)
            node = node._parent
        parts.reverse()
        return parts

    def path_string(self) -> str:
        return format_path(self.path())

    def ancestors(self) -> list[PropertyNode]:
        """Ancestors from the parent up to the root."""
        result: list[PropertyNode] = []
        node = self._parent
        while node is not None:
            result.append(node)
            node = node._parent
        return result

    def descendants(self) -> list[PropertyNode]:
        """All descendants in pre-order."""
        result: list[PropertyNode] = []

        def collect(node: PropertyNode, _path: list[str]) -> None:
            if node is not self:
                result.append(node)

        self.traverse(collect)
        return result

    def siblings(self) -> list[PropertyNode]:
        if self._parent is None:
            return []
        return [node for node in self._parent.children() if node is not self]

    def _sibling_at(self, offset: int) -> PropertyNode | None:
        if self._parent is None or self._key is None:
            return None
        keys = self._parent.child_keys()
        try:
            index = keys.index(self._key) + offset
        except ValueError:
            return None
        if 0 <= index < len(keys):
            return self._parent.child(keys[index])
        return None

    @property
    def next_sibling(self) -> PropertyNode | None:
        return self._sibling_at(1)

    @property
    def previous_sibling(self) -> PropertyNode | None:
        return self._sibling_at(-1)

    # =========================================================================
    # Evaluation
    # =========================================================================

    def _find_parent_property(self, target: Property) -> Property | None:
        node: PropertyNode | None = self
        while node is not None:
            if node._property is target:
                return node._parent._property if node._parent is not None else None
            node = node._parent
        return find_parent(target, self.root._property)

    def _context_for(self, current: Property) -> EvaluationContext:
        registry = self.get_registry()
        if registry is None:
            msg = "No registry set. Call set_registry() first."
            raise MissingRegistryError(msg)
        return EvaluationContext(
            current=current,
            root=self.root._property,
            registry=registry,
            find_parent=self._find_parent_property,
            max_depth=self.config.max_depth,
        )

    async def _read(self, prop: Property, owner: Property) -> Any:
        """Evaluate what `prop` holds, with `owner` as the receiver of `self`."""
        if is_expr(prop):
            return await evaluate(prop, self._context_for(owner))
        value = prop.value
        if value is UNSET:
            return None
        if is_expr_value(value):
            return await evaluate(value, self._context_for(owner))
        return value

    # =========================================================================
    # Values
    # =========================================================================

    def get_raw_value(self) -> Any:
        """Get the stored value without evaluating it (None when absent)."""
        value = self._property.value
        return None if value is UNSET else value

    async def get_value(self, path: str | Sequence[str] | None = None) -> Any:
        """Evaluate the value of this node, or of the descendant at `path`.

        Returns None when `path` does not resolve.
        """
        self._check_destroyed()
        node = self if path is None else self.get(path)
        if node is None:
            return None
        return await node._read(node._property, node._property)

    def get_default_value(self) -> Any:
        value = self._property.default_value
        return None if value is UNSET else value

    def has_default_value(self) -> bool:
        return self._property.default_value is not UNSET

    def has_value(self) -> bool:
        return self._property.value is not UNSET

    def is_empty(self) -> bool:
        """Check if the node has neither a value nor children."""
        return not self.has_value() and not self.has_children()

    def _target(self, options: MutationOptions) -> PropertyNode:
        self._check_destroyed()
        if options.path is None:
            return self
        target = self.get(options.path)
        if target is None:
            msg = f"No node at path '{format_path(options.path)}' under '{self.path_string() or self.id}'"
            raise KeyError(msg)
        target._check_destroyed()
        return target

    def set_value(self, value: Any, options: MutationOptions | None = None) -> None:
        """Replace the value in place and notify subscribers unless silent."""
        options = options or _NO_OPTIONS
        target = self._target(options)
        prop = target._property
        previous = prop.value

        def undo() -> None:
            prop.value = previous

        target._record_undo((id(prop), "value"), undo)
        prop.value = value
        if not options.silent:
            target.emit_change("")

    def reset(self, options: MutationOptions | None = None) -> None:
        """Restore the default value; no-op when there is none."""
        options = options or _NO_OPTIONS
        target = self._target(options)
        if target.has_default_value():
            target.set_value(clone_value(target._property.default_value), MutationOptions(silent=options.silent))

    def reset_deep(self, options: MutationOptions | None = None) -> None:
        """Reset this node and every descendant with a default, in pre-order.

        Unless silent, the resets are delivered here as one notification.
        """
        options = options or _NO_OPTIONS
        target = self._target(options)
        node_options = MutationOptions(silent=options.silent)

        def reset_node(node: PropertyNode, _path: list[str]) -> None:
            node.reset(node_options)

        if options.silent:
            target.traverse(reset_node)
        else:
            with target.batching():
                target.traverse(reset_node)

    # =========================================================================
    # Metadata, constraints and children (shared member handling)
    # =========================================================================

    def _set_member(self, selector: str, key: str, member: Property | None, options: MutationOptions) -> bool:
        """Insert, replace (`member`) or remove (`None`) an entry of a named map.

        Returns whether the entry existed before.
        """
        target = self._target(options)
        prop = target._property
        collection: dict[str, Property] | None = getattr(prop, selector)
        existed = collection is not None and key in collection
        if member is None and not existed:
            return False

        snapshot = dict(collection) if collection is not None else None

        def undo() -> None:
            setattr(prop, selector, dict(snapshot) if snapshot is not None else None)
            if selector == "children":
                target._prune_child_cache()

        target._record_undo((id(prop), selector), undo)

        if member is None:
            del collection[key]  # type: ignore[index]
            if selector == "children":
                cached = target._child_nodes.pop(key, None)
                if cached is not None:
                    cached._parent = None
                    cached.destroy()
        else:
            if collection is None:
                collection = {}
                setattr(prop, selector, collection)
            collection[key] = member
            if selector == "children":
                target._child_nodes.pop(key, None)

        if not options.silent:
            target.emit_change(key if selector == "children" else f"{selector}.{key}")
        return existed

    def _prune_child_cache(self) -> None:
        children = self._property.children or {}
        for key in list(self._child_nodes):
            if children.get(key) is not self._child_nodes[key]._property:
                del self._child_nodes[key]

    @staticmethod
    def _require_property(member: Property) -> Property:
        if not is_property(member):
            msg = f"Expected a Property, got {type(member).__name__}"
            raise TypeError(msg)
        return member

    # =========================================================================
    # Metadata
    # =========================================================================

    def metadata_keys(self) -> list[str]:
        return list(self._property.metadata) if self._property.metadata else []

    def has_metadata(self, key: str | None = None) -> bool:
        """Check for a metadata entry, or for any metadata when `key` is omitted."""
        metadata = self._property.metadata
        if key is not None:
            return metadata is not None and key in metadata
        return bool(metadata)

    def get_raw_metadata(self, key: str) -> Property | None:
        return self._property.metadata.get(key) if self._property.metadata else None

    async def get_metadata(self, key: str) -> Any:
        """Evaluate a metadata entry with this node as `self`; None when absent."""
        self._check_destroyed()
        meta = self.get_raw_metadata(key)
        if meta is None:
            return None
        return await self._read(meta, self._property)

    def set_metadata(self, key: str, value: Property, options: MutationOptions | None = None) -> None:
        self._set_member("metadata", key, self._require_property(value), options or _NO_OPTIONS)

    def remove_metadata(self, key: str, options: MutationOptions | None = None) -> bool:
        """Remove a metadata entry. Returns whether it existed."""
        return self._set_member("metadata", key, None, options or _NO_OPTIONS)

    # =========================================================================
    # Constraints
    # =========================================================================

    def constraint_keys(self) -> list[str]:
        return list(self._property.constraints) if self._property.constraints else []

    def has_constraints(self, key: str | None = None) -> bool:
        """Check for a constraint, or for any constraint when `key` is omitted."""
        constraints = self._property.constraints
        if key is not None:
            return constraints is not None and key in constraints
        return bool(constraints)

    def get_raw_constraint(self, key: str) -> Property | None:
        return self._property.constraints.get(key) if self._property.constraints else None

    async def get_constraint(self, key: str) -> bool:
        """Evaluate a constraint with this node as `self`.

        A missing constraint, or one without a value, passes. Anything else
        passes when its evaluated result is truthy.
        """
        self._check_destroyed()
        constraint = self.get_raw_constraint(key)
        if constraint is None:
            return True
        if not is_expr(constraint) and constraint.value is UNSET:
            return True
        return bool(await self._read(constraint, self._property))

    def set_constraint(self, key: str, value: Property, options: MutationOptions | None = None) -> None:
        self._set_member("constraints", key, self._require_property(value), options or _NO_OPTIONS)

    def remove_constraint(self, key: str, options: MutationOptions | None = None) -> bool:
        """Remove a constraint. Returns whether it existed."""
        return self._set_member("constraints", key, None, options or _NO_OPTIONS)

    # =========================================================================
    # Children manipulation
    # =========================================================================

    def add_child(self, key: str, prop: Property, options: MutationOptions | None = None) -> PropertyNode:
        """Insert or replace the child under `key` and return its node."""
        options = options or _NO_OPTIONS
        self._set_member("children", key, self._require_property(prop), options)
        target = self._target(options)
        node = target.child(key)
        assert node is not None  # noqa: S101
        return node

    def remove_child(self, key: str, options: MutationOptions | None = None) -> bool:
        """Remove the child under `key`, destroying its cached node. Returns whether it existed."""
        return self._set_member("children", key, None, options or _NO_OPTIONS)

    # =========================================================================
    # Validation
    # =========================================================================

    async def _constraint_message(self, key: str, constraint: Property) -> str:
        message_prop = constraint.metadata.get("message") if constraint.metadata else None
        if message_prop is not None:
            message = await self._read(message_prop, self._property)
            if message is not None:
                return str(message)
        return self.config.default_constraint_message.format(key=key)

    async def validate(self) -> ValidationResult:
        """Evaluate every constraint of this node.

        All constraints are evaluated, even after one fails.
        """
        self._check_destroyed()
        errors: dict[str, str] = {}
        for key, constraint in list((self._property.constraints or {}).items()):
            if not await self.get_constraint(key):
                errors[key] = await self._constraint_message(key, constraint)
        return ValidationResult(valid=not errors, errors=errors)

    async def validate_deep(self) -> DeepValidationResult:
        """Validate every node of the subtree in pre-order.

        Only nodes with at least one failing constraint appear in `errors`.
        """
        self._check_destroyed()
        nodes: list[tuple[PropertyNode, list[str]]] = []
        self.traverse(lambda node, path: nodes.append((node, path)))

        errors: dict[str, dict[str, str]] = {}
        for node, path in nodes:
            result = await node.validate()
            if not result.valid:
                errors[format_path(path) or ROOT_PATH_KEY] = result.errors
        return DeepValidationResult(valid=not errors, errors=errors)

    # =========================================================================
    # Traversal
    # =========================================================================

    def traverse(self, visitor: TraversalVisitor) -> None:
        """Walk the subtree depth-first in pre-order."""
        stack: list[tuple[PropertyNode, list[str]]] = [(self, [])]
        while stack:
            node, path = stack.pop()
            if visitor(node, path):
                return
            for key in reversed(node.child_keys()):
                child = node.child(key)
                if child is not None:
                    stack.append((child, [*path, key]))

    def traverse_post_order(self, visitor: TraversalVisitor) -> None:
        """Walk the subtree depth-first, children before their parent."""
        self._traverse_post_order(visitor, [])

    def _traverse_post_order(self, visitor: TraversalVisitor, path: list[str]) -> bool:
        for key in self.child_keys():
            child = self.child(key)
            if child is not None and child._traverse_post_order(visitor, [*path, key]):
                return True
        return bool(visitor(self, path))

    def traverse_breadth_first(self, visitor: TraversalVisitor) -> None:
        """Walk the subtree level by level."""
        queue: deque[tuple[PropertyNode, list[str]]] = deque([(self, [])])
        while queue:
            node, path = queue.popleft()
            if visitor(node, path):
                return
            for key in node.child_keys():
                child = node.child(key)
                if child is not None:
                    queue.append((child, [*path, key]))

    def find(self, predicate: NodePredicate) -> PropertyNode | None:
        """First node of the subtree (pre-order) matching `predicate`."""
        found: list[PropertyNode] = []

        def visit(node: PropertyNode, _path: list[str]) -> bool:
            if predicate(node):
                found.append(node)
                return True
            return False

        self.traverse(visit)
        return found[0] if found else None

    def find_all(self, predicate: NodePredicate) -> list[PropertyNode]:
        result: list[PropertyNode] = []

        def visit(node: PropertyNode, _path: list[str]) -> None:
            if predicate(node):
                result.append(node)

        self.traverse(visit)
        return result

    def find_by_id(self, id_: str) -> PropertyNode | None:
        return self.find(lambda node: node.id == id_)

    def find_by_type(self, type_: str | Property) -> list[PropertyNode]:
        """All nodes whose type has the given id (or the id of the given type Property)."""
        type_id = type_.id if isinstance(type_, Property) else type_
        return self.find_all(lambda node: node.type.id == type_id)

    def map[T](self, fn: Callable[[PropertyNode, list[str]], T]) -> list[T]:
        results: list[T] = []
        self.traverse(lambda node, path: results.append(fn(node, path)))
        return results

    def filter(self, predicate: NodePredicate) -> list[PropertyNode]:
        return self.find_all(predicate)

    def reduce[T](self, fn: Callable[[T, PropertyNode, list[str]], T], initial: T) -> T:
        result = initial

        def visit(node: PropertyNode, path: list[str]) -> None:
            nonlocal result
            result = fn(result, node, path)

        self.traverse(visit)
        return result

    def some(self, predicate: NodePredicate) -> bool:
        return self.find(predicate) is not None

    def every(self, predicate: NodePredicate) -> bool:
        return self.find(lambda node: not predicate(node)) is None

    def count(self) -> int:
        """Number of nodes in the subtree, this one included."""
        return self.reduce(lambda n, _node, _path: n + 1, 0)

    # =========================================================================
    # Reactivity
    # =========================================================================

    def subscribe(self, callback: ChangeCallback, path_filter: PathFilter | None = None) -> Subscription:
        """Call `callback` with the changed paths whenever a change reaches this node.

        Args:
            callback: Receives the changed paths, relative to this node.
            path_filter: Exact-or-prefix path, several of them, or a predicate.
                Only matching paths are delivered; a delivery with none is skipped.

        """
        self._check_destroyed()
        self._subscription_seq += 1
        subscription_id = f"sub_{self._subscription_seq}"
        self._listeners[subscription_id] = _Listener(callback=callback, path_filter=path_filter)
        return Subscription(subscription_id, self._listeners)

    def watch(self, path: str | Sequence[str], callback: ChangeCallback) -> Subscription:
        """Subscribe to one path (and everything below it)."""
        return self.subscribe(callback, to_path_string(path))

    def unsubscribe_all(self) -> None:
        self._listeners.clear()

    @property
    def subscription_count(self) -> int:
        return len(self._listeners)

    def emit_change(self, path: str | Sequence[str] = "") -> None:
        """Notify this node's and its ancestors' subscribers of a change at `path`.

        No state is mutated. Inside a batch the path is collected instead, and
        callback failures on the way up are held until the batch delivers.

        Raises:
            SubscriberError: If callbacks failed and the config policy is `raise`.
                Every subscriber has run by then.

        """
        self._settle(self._propagate([to_path_string(path)]))

    def _propagate(self, paths: list[str]) -> list[Exception]:
        if self._batched is not None:
            self._batched.extend(paths)
            return []
        errors = self._notify(paths)
        if self._parent is not None and self._key is not None:
            errors.extend(self._parent._propagate([prefix_path(self._key, p) for p in paths]))
        return errors

    def _settle(self, errors: list[Exception]) -> None:
        """Hand callback failures to the nearest batching node, or surface them now."""
        if not errors:
            return
        node: PropertyNode | None = self
        while node is not None:
            if node._batched is not None:
                node._batch_errors.extend(errors)
                return
            node = node._parent
        self._surface(errors)

    def _notify(self, paths: list[str]) -> list[Exception]:
        errors: list[Exception] = []
        # Subscriptions removed during this delivery still receive it.
        for listener in list(self._listeners.values()):
            selected = filter_paths(paths, listener.path_filter)
            if not selected:
                continue
            try:
                listener.callback(selected)
            except Exception as e:  # noqa: BLE001
                errors.append(e)
        return errors

    def _surface(self, errors: list[Exception]) -> None:
        if not errors:
            return
        if self.config.subscriber_errors is SubscriberErrorPolicy.LOG:
            for error in errors:
                logger.error("Subscriber callback failed", exc_info=error)
            return
        msg = f"{len(errors)} subscriber callback(s) failed"
        raise SubscriberError(msg, errors)

    @contextmanager
    def batching(self) -> Iterator[None]:
        """Context manager coalescing the changes reaching this node into one notification.

        Nested batches fold into the outermost one. Subscriber failures raised
        inside the body are held and surfaced together once the batch has been
        delivered. If the body raises, the collected paths and held failures
        are dropped and the error propagates.
        """
        self._check_destroyed()
        if self._batched is not None:
            yield
            return
        self._batched = []
        self._batch_errors = []
        try:
            yield
        except BaseException:
            self._batched = None
            self._batch_errors = []
            raise
        paths = list(dict.fromkeys(self._batched))
        errors = self._batch_errors
        self._batched = None
        self._batch_errors = []
        if paths:
            errors.extend(self._propagate(paths))
        self._settle(errors)

    def batch[T](self, fn: Callable[[], T]) -> T:
        """Run `fn`, delivering every change it causes here as one deduplicated notification."""
        with self.batching():
            return fn()

    def _record_undo(self, slot: Hashable, undo: Callable[[], None]) -> None:
        node: PropertyNode | None = self
        while node is not None:
            if node._journals:
                node._journals[-1].record(slot, undo)
            node = node._parent

    @contextmanager
    def transacting(self) -> Iterator[None]:
        """Context manager rolling back every mutation of the subtree if the body raises.

        Rollback is silent and completes before the original exception is re-raised.
        """
        self._check_destroyed()
        journal = UndoJournal()
        self._journals.append(journal)
        try:
            yield
        except BaseException:
            self._journals.remove(journal)
            journal.rollback()
            raise
        self._journals.remove(journal)
        if self._journals:
            journal.merge_into(self._journals[-1])

    def transaction[T](self, fn: Callable[[], T]) -> T:
        """Run `fn` all-or-nothing.

        On success its mutations persist and its result is returned. If it
        raises, every value, metadata, constraint and child it changed in this
        subtree is restored, then the same exception is re-raised.
        """
        with self.transacting():
            return fn()

    async def atransaction[T](self, fn: Callable[[], Awaitable[T]]) -> T:
        """Async variant of `transaction` for coroutine functions."""
        with self.transacting():
            return await fn()

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_json(self) -> dict[str, Any]:
        """Serialize the full schema and data to a JSON-safe dict.

        Types are referenced by id only; expression values are kept unevaluated.
        """
        return serialize_property(self._property).to_dict()

    async def snapshot(self, *, flat: bool = False) -> Any:
        """Evaluate the data values of the subtree, without schema.

        Nested form: a dict per node with children, keyed by child key (a node
        with both a value and children keeps its own value under `"_value"`);
        a node without children yields its value directly. With `flat=True`, a
        dict of values keyed by dotted path relative to this node.
        """
        self._check_destroyed()
        if flat:
            nodes: list[tuple[PropertyNode, list[str]]] = []
            self.traverse(
                lambda node, path: nodes.append((node, path)) if node.has_value() or not node.has_children() else None,
            )
            return {format_path(path): await node.get_value() for node, path in nodes}
        return await self._build_snapshot()

    async def _build_snapshot(self) -> Any:
        if not self.has_children():
            return await self.get_value()
        result: dict[str, Any] = {}
        if self.has_value():
            result["_value"] = await self.get_value()
        for key in self.child_keys():
            child = self.child(key)
            if child is not None:
                result[key] = await child._build_snapshot()
        return result

    def clone(self) -> PropertyNode:
        """Independent deep copy sharing only the registry and config; no subscriptions."""
        return PropertyNode(
            clone_property(self._property),
            self.get_registry(),
            config=self._explicit_config(),
        )

    def equals(self, other: PropertyNode) -> bool:
        """Deep structural comparison of the wrapped trees, ignoring registry and subscriptions."""
        if not isinstance(other, PropertyNode):
            return False
        return property_equals(self._property, other._property)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    @property
    def is_destroyed(self) -> bool:
        return self._destroyed

    def destroy(self) -> None:
        """Clear this node's subscriptions and make it inert.

        Descendants are left alone; the parent drops this node from its cache
        so navigating there again yields a live node.
        """
        self._listeners.clear()
        self._destroyed = True
        parent = self._parent
        if parent is not None and self._key is not None and parent._child_nodes.get(self._key) is self:
            del parent._child_nodes[self._key]

    def _check_destroyed(self) -> None:
        if self._destroyed:
            msg = f"PropertyNode '{self.id}' has been destroyed"
            raise DestroyedNodeError(msg)

    # =========================================================================
    # Debug
    # =========================================================================

    def __repr__(self) -> str:
        return f"PropertyNode({self.id!r}, type={self.type.id!r}, path={self.path_string() or 'root'!r})"

    def print_tree(self, indent: int = 0) -> str:
        """Render the subtree as indented text."""
        lines: list[str] = []
        prefix = "  " * indent
        value = f" = {self._property.value!r}" if self.has_value() else ""
        lines.append(f"{prefix}{self.id} ({self.type.id}){value}")
        for key in self.child_keys():
            child = self.child(key)
            if child is not None:
                lines.append(f"{prefix}  [{key}]:")
                lines.append(child.print_tree(indent + 2))
        return "\n".join(lines)
