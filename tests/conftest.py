"""Shared fixtures: an operator registry of the kind a form builder registers."""

import asyncio
import re
from typing import Any

import pytest

from turingprop import (
    PROPERTY,
    EvaluationContext,
    Property,
    Registry,
    eval_arg,
    eval_args,
    lit,
    op,
    ref,
)

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def build_form_registry() -> Registry:
    registry = Registry()

    @registry.operator("isNotBlank")
    async def is_not_blank(args: list[Property], ctx: EvaluationContext) -> bool:
        value = await eval_arg(args[0], ctx)
        return value is not None and str(value).strip() != ""

    @registry.operator("strlen")
    async def strlen(args: list[Property], ctx: EvaluationContext) -> int:
        value = await eval_arg(args[0], ctx)
        return len(value) if value is not None else 0

    @registry.operator("eq")
    async def eq(args: list[Property], ctx: EvaluationContext) -> bool:
        a, b = await eval_args(args, ctx)
        return a == b

    @registry.operator("gte")
    async def gte(args: list[Property], ctx: EvaluationContext) -> bool:
        a, b = await eval_args(args, ctx)
        return a is not None and a >= b

    @registry.operator("lte")
    async def lte(args: list[Property], ctx: EvaluationContext) -> bool:
        a, b = await eval_args(args, ctx)
        return a is not None and a <= b

    @registry.operator("and")
    async def and_(args: list[Property], ctx: EvaluationContext) -> bool:
        for arg in args:
            if not await eval_arg(arg, ctx):
                return False
        return True

    @registry.operator("or")
    async def or_(args: list[Property], ctx: EvaluationContext) -> bool:
        for arg in args:
            if await eval_arg(arg, ctx):
                return True
        return False

    @registry.operator("not")
    async def not_(args: list[Property], ctx: EvaluationContext) -> bool:
        return not await eval_arg(args[0], ctx)

    @registry.operator("if")
    async def if_(args: list[Property], ctx: EvaluationContext) -> Any:
        condition, then, otherwise = args
        return await eval_arg(then if await eval_arg(condition, ctx) else otherwise, ctx)

    @registry.operator("add")
    async def add(args: list[Property], ctx: EvaluationContext) -> Any:
        values = await eval_args(args, ctx)
        return sum(values)

    @registry.operator("concat")
    async def concat(args: list[Property], ctx: EvaluationContext) -> str:
        values = await eval_args(args, ctx)
        return "".join("" if v is None else str(v) for v in values)

    @registry.operator("isEmail")
    async def is_email(args: list[Property], ctx: EvaluationContext) -> bool:
        value = await eval_arg(args[0], ctx)
        return isinstance(value, str) and _EMAIL.match(value) is not None

    @registry.operator("sleepThen")
    async def sleep_then(args: list[Property], ctx: EvaluationContext) -> Any:
        delay, value = await eval_args(args, ctx)
        await asyncio.sleep(delay)
        return value

    return registry


@pytest.fixture
def registry() -> Registry:
    return build_form_registry()


def field(id_: str, value: Any = None, **constraints: Property) -> Property:
    """Build a data Property with optional constraints."""
    prop = Property(id=id_, type=PROPERTY, value=value)
    if constraints:
        prop.constraints = dict(constraints)
    return prop


def required(message: str) -> Property:
    """Constraint checking the owner's value is not blank, with a message."""
    constraint = op("isNotBlank", ref("self.value"))
    constraint.metadata = {"message": lit(message)}
    return constraint


@pytest.fixture
def signup_form() -> Property:
    """Two-step signup form: personal details, then account details."""
    age_constraint = op("gte", ref("self.value"), lit(18))
    age_constraint.metadata = {"message": lit("Must be an adult")}
    email_constraint = op("isEmail", ref("self.value"))
    email_constraint.metadata = {"message": lit("Invalid email")}

    step1 = Property(
        id="step1",
        type=PROPERTY,
        children={
            "firstName": field("firstName", required=required("First name is required")),
            "lastName": field("lastName", required=required("Last name is required")),
            "age": field("age", minimum=age_constraint),
        },
    )
    step2 = Property(
        id="step2",
        type=PROPERTY,
        children={
            "email": field("email", valid=email_constraint),
            "newsletter": Property(id="newsletter", type=PROPERTY, value=False, default_value=False),
        },
    )
    full_name = Property(
        id="fullName",
        type=PROPERTY,
        value=op(
            "concat",
            ref("root.step1.firstName.value"),
            lit(" "),
            ref("root.step1.lastName.value"),
        ),
    )
    return Property(
        id="signup",
        type=PROPERTY,
        children={"step1": step1, "step2": step2, "fullName": full_name},
    )
