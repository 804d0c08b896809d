"""Tests for validate() and validate_deep()."""

import pytest

from turingprop import (
    PROPERTY,
    DeepValidationResult,
    Property,
    PropertyNode,
    Registry,
    TuringPropConfig,
    ValidationResult,
    lit,
    op,
    ref,
    use_config,
)


def _with_message(constraint: Property, message: Property) -> Property:
    constraint.metadata = {"message": message}
    return constraint


@pytest.fixture
def username() -> Property:
    return Property(
        id="username",
        type=PROPERTY,
        value="",
        constraints={
            "required": _with_message(op("isNotBlank", ref("self.value")), lit("Username is required")),
            "minLength": _with_message(
                op("gte", op("strlen", ref("self.value")), lit(3)),
                op("concat", lit("At least 3 characters for "), ref("self.id")),
            ),
            "noMessage": op("eq", ref("self.value"), lit("admin")),
        },
    )


class TestValidate:
    """Tests for single-node validation."""

    async def test_all_constraints_evaluated(self, username: Property, registry: Registry) -> None:
        result = await PropertyNode(username, registry).validate()

        assert result == ValidationResult(
            valid=False,
            errors={
                "required": "Username is required",
                "minLength": "At least 3 characters for username",
                "noMessage": "Constraint noMessage failed",
            },
        )

    async def test_partial_failure(self, username: Property, registry: Registry) -> None:
        node = PropertyNode(username, registry)
        node.set_value("ab")

        result = await node.validate()

        assert not result.valid
        assert set(result.errors) == {"minLength", "noMessage"}

    async def test_valid(self, username: Property, registry: Registry) -> None:
        node = PropertyNode(username, registry)
        node.set_value("admin")

        assert await node.validate() == ValidationResult(valid=True, errors={})

    async def test_no_constraints(self, registry: Registry) -> None:
        result = await PropertyNode(Property(id="x", type=PROPERTY), registry).validate()

        assert result.valid
        assert result.errors == {}

    async def test_default_message_from_config(self, username: Property, registry: Registry) -> None:
        node = PropertyNode(username, registry, config=TuringPropConfig(default_constraint_message="{key} is invalid"))

        result = await node.validate()

        assert result.errors["noMessage"] == "noMessage is invalid"

    async def test_default_message_from_context(self, username: Property, registry: Registry) -> None:
        node = PropertyNode(username, registry)

        with use_config(TuringPropConfig(default_constraint_message="Invalid")):
            result = await node.validate()

        assert result.errors["noMessage"] == "Invalid"


class TestValidateDeep:
    """Tests for subtree validation."""

    async def test_collects_failing_nodes_by_path(self, username: Property, registry: Registry) -> None:
        age = Property(
            id="age",
            type=PROPERTY,
            value=30,
            constraints={"adult": op("gte", ref("self.value"), lit(18))},
        )
        account = Property(id="account", type=PROPERTY, children={"username": username, "age": age})
        root = Property(
            id="root",
            type=PROPERTY,
            children={"account": account},
            constraints={"always": lit(False)},
        )

        result = await PropertyNode(root, registry).validate_deep()

        assert not result.valid
        assert list(result.errors) == ["root", "account.username"]
        assert result.errors["root"] == {"always": "Constraint always failed"}
        assert result.errors_for("account.username")["required"] == "Username is required"
        assert result.errors_for("account.age") == {}
        assert result.errors_for("") == result.errors["root"]

    async def test_all_valid(self, registry: Registry) -> None:
        root = Property(
            id="root",
            type=PROPERTY,
            children={"x": Property(id="x", type=PROPERTY, value=1, constraints={"ok": lit(True)})},
        )

        assert await PropertyNode(root, registry).validate_deep() == DeepValidationResult(valid=True, errors={})

    async def test_paths_relative_to_start(self, username: Property, registry: Registry) -> None:
        account = Property(id="account", type=PROPERTY, children={"username": username})
        root = PropertyNode(Property(id="root", type=PROPERTY, children={"account": account}), registry)

        result = await root.get("account").validate_deep()  # type: ignore[union-attr]

        assert list(result.errors) == ["username"]
