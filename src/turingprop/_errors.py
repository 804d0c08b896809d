"""Exceptions raised by turingprop.

Validation failures are never raised; they are returned as
`ValidationResult` / `DeepValidationResult`. A failing transaction re-raises
the caller's own exception after rollback.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class TuringPropError(Exception):
    """Base class for turingprop errors."""


class UnknownOperatorError(TuringPropError, LookupError):
    """An operator-call names a function absent from the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown operator: {name}")


class ReferenceResolutionError(TuringPropError, LookupError):
    """A reference segment cannot be resolved."""

    def __init__(self, message: str, *, path: Sequence[str] = (), segment: str | None = None) -> None:
        self.path = tuple(path)
        self.segment = segment
        super().__init__(message)


class EvaluationDepthError(TuringPropError, RecursionError):
    """Evaluation nested deeper than the configured maximum."""


class DestroyedNodeError(TuringPropError, RuntimeError):
    """Mutation, subscription or evaluation attempted on a destroyed node."""


class MissingRegistryError(TuringPropError, RuntimeError):
    """An expression needs evaluating but no registry is attached to the tree."""


class SubscriberError(TuringPropError, ExceptionGroup):
    """One or more subscriber callbacks raised during a change delivery.

    Every subscriber still ran; the failures are grouped here.
    """
