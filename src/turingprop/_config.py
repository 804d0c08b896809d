"""Configuration: defaults, the active context config, and `[tool.turingprop]` in pyproject.toml."""

from __future__ import annotations

import tomllib
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING

from ._context import get_active_config, reset_active_config, set_active_config
from ._registry import DEFAULT_MAX_DEPTH

if TYPE_CHECKING:
    from collections.abc import Iterator


class ConfigError(Exception):
    """Error in turingprop configuration."""


class SubscriberErrorPolicy(StrEnum):
    """What to do with exceptions raised by subscriber callbacks."""

    RAISE = "raise"  # deliver to everyone, then raise a SubscriberError
    LOG = "log"  # deliver to everyone, log each failure


@dataclass(slots=True, frozen=True)
class TuringPropConfig:
    """Settings shared by every node of a tree.

    Attributes:
        max_depth: Nesting depth at which evaluation aborts.
        default_constraint_message: Message for failing constraints without a
            `message` metadata entry. `{key}` is replaced by the constraint key.
        subscriber_errors: Policy for failing subscriber callbacks.

    """

    max_depth: int = DEFAULT_MAX_DEPTH
    default_constraint_message: str = "Constraint {key} failed"
    subscriber_errors: SubscriberErrorPolicy = field(default=SubscriberErrorPolicy.RAISE)


DEFAULT_CONFIG = TuringPropConfig()


def current_config() -> TuringPropConfig:
    """Get the config of the current context, falling back to the defaults."""
    config = get_active_config()
    return config if config is not None else DEFAULT_CONFIG


@contextmanager
def use_config(config: TuringPropConfig) -> Iterator[TuringPropConfig]:
    """Context manager making `config` the default for trees without their own.

    Example:
        with use_config(TuringPropConfig(max_depth=50)):
            value = await node.get_value()

    """
    token = set_active_config(config)
    try:
        yield config
    finally:
        reset_active_config(token)


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Return the nearest pyproject.toml in `start_dir` (default: cwd) or one of its parents."""
    start = (start_dir or Path.cwd()).resolve()
    for directory in (start, *start.parents):
        candidate = directory / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


def load_config(pyproject_path: Path) -> TuringPropConfig:
    """Load and validate [tool.turingprop] config from pyproject.toml.

    Args:
        pyproject_path: Path to pyproject.toml

    Returns:
        Parsed TuringPropConfig (defaults when the section is missing)

    Raises:
        ConfigError: If the TOML or the configuration is invalid

    """
    with pyproject_path.open("rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            msg = f"Invalid TOML in {pyproject_path}: {e}"
            raise ConfigError(msg) from e

    section = data.get("tool", {}).get("turingprop", {})
    if not section:
        return TuringPropConfig()

    unknown = set(section) - {"max_depth", "default_constraint_message", "subscriber_errors"}
    if unknown:
        msg = f"Unknown [tool.turingprop] keys: {', '.join(sorted(unknown))}"
        raise ConfigError(msg)

    kwargs: dict[str, object] = {}

    if "max_depth" in section:
        max_depth = section["max_depth"]
        if not isinstance(max_depth, int) or isinstance(max_depth, bool) or max_depth < 1:
            msg = "Invalid [tool.turingprop].max_depth: expected a positive integer"
            raise ConfigError(msg)
        kwargs["max_depth"] = max_depth

    if "default_constraint_message" in section:
        message = section["default_constraint_message"]
        if not isinstance(message, str):
            msg = "Invalid [tool.turingprop].default_constraint_message: expected string"
            raise ConfigError(msg)
        kwargs["default_constraint_message"] = message

    if "subscriber_errors" in section:
        policy = section["subscriber_errors"]
        try:
            kwargs["subscriber_errors"] = SubscriberErrorPolicy(policy)
        except ValueError as e:
            choices = ", ".join(repr(p.value) for p in SubscriberErrorPolicy)
            msg = f"Invalid [tool.turingprop].subscriber_errors: expected one of {choices}, got {policy!r}"
            raise ConfigError(msg) from e

    return TuringPropConfig(**kwargs)  # type: ignore[arg-type]


def discover_config(start_dir: Path | None = None) -> TuringPropConfig:
    """Get config from pyproject.toml in start_dir (or the cwd) or its parents.

    Returns the defaults when there is no pyproject.toml or no [tool.turingprop] section.
    """
    pyproject_path = find_pyproject_toml(start_dir)
    if pyproject_path is None:
        return TuringPropConfig()
    return load_config(pyproject_path)
