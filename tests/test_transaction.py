"""Tests for transactional rollback."""

import pytest

from turingprop import PROPERTY, MutationOptions, Property, PropertyNode, Registry, lit


class BodyError(Exception):
    pass


@pytest.fixture
def node(registry: Registry) -> PropertyNode:
    return PropertyNode(
        Property(
            id="form",
            type=PROPERTY,
            children={
                "name": Property(id="name", type=PROPERTY, value="Ada"),
                "age": Property(id="age", type=PROPERTY, value=36),
                "nested": Property(
                    id="nested",
                    type=PROPERTY,
                    children={"deep": Property(id="deep", type=PROPERTY, value=[1, 2])},
                ),
            },
        ),
        registry,
    )


def _values(node: PropertyNode) -> dict[str, object]:
    return {n.path_string(): n.get_raw_value() for n in node.find_all(lambda n: not n.has_children())}


class TestTransaction:
    """Tests for transaction(), atransaction() and transacting()."""

    def test_success_persists(self, node: PropertyNode) -> None:
        def body() -> str:
            node.set_value("Grace", MutationOptions.at("name"))
            node.set_value(40, MutationOptions.at("age"))
            return "done"

        assert node.transaction(body) == "done"
        assert node.get("name").get_raw_value() == "Grace"  # type: ignore[union-attr]
        assert node.get("age").get_raw_value() == 40  # type: ignore[union-attr]

    def test_failure_restores_all_values(self, node: PropertyNode) -> None:
        before = _values(node)
        error = BodyError("fail")

        def body() -> None:
            node.set_value("Grace", MutationOptions.at("name"))
            node.set_value(40, MutationOptions.at("age"))
            node.set_value("x", MutationOptions.at("name"))
            node.get("nested.deep").set_value([3])  # type: ignore[union-attr]
            raise error

        with pytest.raises(BodyError) as exc_info:
            node.transaction(body)

        assert exc_info.value is error
        assert _values(node) == before

    def test_rollback_is_silent(self, node: PropertyNode) -> None:
        calls: list[list[str]] = []
        node.subscribe(calls.append)

        def body() -> None:
            node.set_value("Grace", MutationOptions.at("name"))
            raise BodyError

        with pytest.raises(BodyError):
            node.transaction(body)

        assert calls == [["name"]]

    def test_restores_metadata_constraints_and_children(self, node: PropertyNode) -> None:
        name = node.get("name")
        assert name is not None
        name.set_metadata("label", lit("Name"))

        def body() -> None:
            name.set_metadata("label", lit("Changed"))
            name.set_metadata("hint", lit("Hint"))
            name.set_constraint("required", lit(True))
            node.add_child("extra", Property(id="extra", type=PROPERTY, value=1))
            node.remove_child("age")
            raise BodyError

        with pytest.raises(BodyError):
            node.transaction(body)

        assert name.metadata_keys() == ["label"]
        assert name.get_raw_metadata("label").value == "Name"  # type: ignore[union-attr]
        assert not name.has_constraints()
        assert node.child_keys() == ["name", "age", "nested"]
        assert node.get("age").get_raw_value() == 36  # type: ignore[union-attr]
        assert node.get("extra") is None

    def test_descendant_transaction_only_covers_subtree(self, node: PropertyNode) -> None:
        nested = node.get("nested")
        assert nested is not None

        def body() -> None:
            nested.set_value([9], MutationOptions.at("deep"))
            raise BodyError

        node.set_value("Grace", MutationOptions.at("name"))
        with pytest.raises(BodyError):
            nested.transaction(body)

        assert node.get("nested.deep").get_raw_value() == [1, 2]  # type: ignore[union-attr]
        assert node.get("name").get_raw_value() == "Grace"  # type: ignore[union-attr]

    def test_nested_success_then_outer_failure(self, node: PropertyNode) -> None:
        def inner() -> None:
            node.set_value("Grace", MutationOptions.at("name"))

        def outer() -> None:
            node.transaction(inner)
            node.set_value(40, MutationOptions.at("age"))
            raise BodyError

        with pytest.raises(BodyError):
            node.transaction(outer)

        assert node.get("name").get_raw_value() == "Ada"  # type: ignore[union-attr]
        assert node.get("age").get_raw_value() == 36  # type: ignore[union-attr]

    def test_nested_failure_caught_by_outer(self, node: PropertyNode) -> None:
        def inner() -> None:
            node.set_value("Inner", MutationOptions.at("name"))
            raise BodyError

        def outer() -> None:
            node.set_value(40, MutationOptions.at("age"))
            with pytest.raises(BodyError):
                node.transaction(inner)

        node.transaction(outer)

        assert node.get("name").get_raw_value() == "Ada"  # type: ignore[union-attr]
        assert node.get("age").get_raw_value() == 40  # type: ignore[union-attr]

    def test_context_manager(self, node: PropertyNode) -> None:
        with pytest.raises(BodyError), node.transacting():
            node.set_value("Grace", MutationOptions.at("name"))
            raise BodyError

        assert node.get("name").get_raw_value() == "Ada"  # type: ignore[union-attr]

    async def test_async_transaction(self, node: PropertyNode) -> None:
        async def body() -> None:
            node.set_value("Grace", MutationOptions.at("name"))
            assert await node.get_value("name") == "Grace"
            raise BodyError

        with pytest.raises(BodyError):
            await node.atransaction(body)

        assert await node.get_value("name") == "Ada"

    async def test_async_transaction_success(self, node: PropertyNode) -> None:
        async def body() -> int:
            node.set_value(40, MutationOptions.at("age"))
            return await node.get_value("age")

        assert await node.atransaction(body) == 40
        assert node.get("age").get_raw_value() == 40  # type: ignore[union-attr]
