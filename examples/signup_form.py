"""Signup form: schema, derived values and validation as data.

This example builds a two-field form, registers the few operators it needs,
then drives it through a PropertyNode: subscribe, fill in, validate, save.
"""

import asyncio
import json
import logging

import turingprop as tp

registry = tp.Registry()


@registry.operator("isNotBlank")
async def is_not_blank(args, ctx):
    value = await tp.eval_arg(args[0], ctx)
    return value is not None and str(value).strip() != ""


@registry.operator("gte")
async def gte(args, ctx):
    a, b = await tp.eval_args(args, ctx)
    return a is not None and a >= b


@registry.operator("concat")
async def concat(args, ctx):
    return "".join(str(v) for v in await tp.eval_args(args, ctx) if v is not None)


def field(id_, *, message, rule):
    """A data field whose single constraint carries a user-facing message."""
    rule.metadata = {"message": tp.lit(message)}
    return tp.Property(id=id_, type=tp.PROPERTY, value=None, constraints={"rule": rule})


form = tp.Property(
    id="signup",
    type=tp.PROPERTY,
    children={
        "name": field("name", message="Name is required", rule=tp.op("isNotBlank", tp.ref("self.value"))),
        "age": field("age", message="Must be 18 or older", rule=tp.op("gte", tp.ref("self.value"), tp.lit(18))),
        # Derived from the other two
        "greeting": tp.Property(
            id="greeting",
            type=tp.PROPERTY,
            value=tp.op("concat", tp.lit("Welcome, "), tp.ref("parent.name.value")),
        ),
    },
)


async def main() -> None:
    node = tp.PropertyNode.create(form, registry)
    node.subscribe(lambda paths: print(f"changed: {paths}"))

    print((await node.validate_deep()).errors)

    node.batch(
        lambda: (
            node.set_value("Ada", tp.MutationOptions.at("name")),
            node.set_value(36, tp.MutationOptions.at("age")),
        ),
    )

    print(await node.get_value("greeting"))
    print((await node.validate_deep()).valid)
    print(json.dumps(node.to_json())[:80], "...")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(main())
