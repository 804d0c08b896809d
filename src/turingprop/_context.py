"""Context variables for turingprop.

Kept separate from `_config` to avoid circular imports with the node module.
"""

from __future__ import annotations

from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextvars import Token

    from ._config import TuringPropConfig

# Config used by trees that were not given one explicitly.
_active_config_var: ContextVar[TuringPropConfig | None] = ContextVar("active_config", default=None)


def get_active_config() -> TuringPropConfig | None:
    """Get the config set for the current context, or None if unset."""
    return _active_config_var.get()


def set_active_config(config: TuringPropConfig | None) -> Token[TuringPropConfig | None]:
    """Set the config for the current context.

    Returns a token that can be used to reset the value.
    """
    return _active_config_var.set(config)


def reset_active_config(token: Token[TuringPropConfig | None]) -> None:
    """Reset the active config using a token from set_active_config."""
    _active_config_var.reset(token)
