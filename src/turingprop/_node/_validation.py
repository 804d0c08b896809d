"""Validation results.

A failing constraint is data, never an exception, so UI code can render it
directly.
"""

from dataclasses import dataclass, field

ROOT_PATH_KEY = "root"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Result of validating the constraints of one node.

    Attributes:
        valid: True when every constraint passed.
        errors: Message per failing constraint key.

    """

    valid: bool
    errors: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class DeepValidationResult:
    """Result of validating a whole subtree.

    Attributes:
        valid: True when every node of the subtree is valid.
        errors: Per failing node path (the walk's starting node is `"root"`),
            the message per failing constraint key.

    """

    valid: bool
    errors: dict[str, dict[str, str]] = field(default_factory=dict)

    def errors_for(self, path: str) -> dict[str, str]:
        """Get the failing constraints of the node at `path` (empty when it passed)."""
        return self.errors.get(path or ROOT_PATH_KEY, {})
