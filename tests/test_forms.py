"""End-to-end tests of a multi-step signup form."""

import pytest

from turingprop import Property, PropertyNode, Registry, SubscriberErrorPolicy, TuringPropConfig


class TestSignupForm:
    """Tests for a two-step signup form driven through PropertyNode."""

    async def test_step1_invalid_until_filled(self, signup_form: Property, registry: Registry) -> None:
        form = PropertyNode.create(signup_form, registry)
        step1 = form.get("step1")
        assert step1 is not None

        before = await step1.validate_deep()

        assert before.valid is False
        assert before.errors == {
            "firstName": {"required": "First name is required"},
            "lastName": {"required": "Last name is required"},
            "age": {"minimum": "Must be an adult"},
        }

        step1.get("firstName").set_value("Ada")  # type: ignore[union-attr]
        step1.get("lastName").set_value("Lovelace")  # type: ignore[union-attr]
        step1.get("age").set_value(36)  # type: ignore[union-attr]

        after = await step1.validate_deep()

        assert after.valid is True
        assert after.errors == {}

    async def test_invalid_age(self, signup_form: Property, registry: Registry) -> None:
        form = PropertyNode.create(signup_form, registry)
        form.batch(
            lambda: [
                form.get("step1.firstName").set_value("Ada"),  # type: ignore[union-attr]
                form.get("step1.lastName").set_value("Lovelace"),  # type: ignore[union-attr]
                form.get("step1.age").set_value(12),  # type: ignore[union-attr]
            ],
        )

        result = await form.get("step1").validate_deep()  # type: ignore[union-attr]

        assert result.errors == {"age": {"minimum": "Must be an adult"}}

    async def test_derived_value_follows_inputs(self, signup_form: Property, registry: Registry) -> None:
        form = PropertyNode.create(signup_form, registry)

        assert await form.get_value("fullName") == " "

        form.get("step1.firstName").set_value("Ada")  # type: ignore[union-attr]
        form.get("step1.lastName").set_value("Lovelace")  # type: ignore[union-attr]

        assert await form.get_value("fullName") == "Ada Lovelace"

    async def test_whole_form_validation(self, signup_form: Property, registry: Registry) -> None:
        form = PropertyNode.create(signup_form, registry)

        result = await form.validate_deep()

        assert set(result.errors) == {"step1.firstName", "step1.lastName", "step1.age", "step2.email"}

    async def test_step_change_notifications(self, signup_form: Property, registry: Registry) -> None:
        form = PropertyNode.create(signup_form, registry)
        step_changes: list[list[str]] = []
        email_changes: list[list[str]] = []
        form.subscribe(step_changes.append, "step1")
        form.watch("step2.email", email_changes.append)

        form.get("step1.firstName").set_value("Ada")  # type: ignore[union-attr]
        form.get("step2.email").set_value("ada@example.com")  # type: ignore[union-attr]

        assert step_changes == [["step1.firstName"]]
        assert email_changes == [["step2.email"]]

    async def test_failed_submission_rolls_back(self, signup_form: Property, registry: Registry) -> None:
        form = PropertyNode.create(signup_form, registry)
        form.get("step2.email").set_value("ada@example.com")  # type: ignore[union-attr]

        class SubmissionRejectedError(Exception):
            pass

        async def submit() -> None:
            form.get("step2.email").set_value("not-an-email")  # type: ignore[union-attr]
            form.get("step2.newsletter").set_value(True)  # type: ignore[union-attr]
            result = await form.get("step2").validate_deep()  # type: ignore[union-attr]
            if not result.valid:
                raise SubmissionRejectedError(result.errors)

        with pytest.raises(SubmissionRejectedError) as exc_info:
            await form.atransaction(submit)

        assert exc_info.value.args[0] == {"email": {"valid": "Invalid email"}}

        assert await form.get_value("step2.email") == "ada@example.com"
        assert await form.get_value("step2.newsletter") is False

    async def test_save_and_restore(self, signup_form: Property, registry: Registry) -> None:
        form = PropertyNode.create(signup_form, registry)
        form.get("step1.firstName").set_value("Ada")  # type: ignore[union-attr]
        saved = form.to_json()

        restored = PropertyNode.from_json(saved, registry=registry)

        assert restored.equals(form)
        assert await restored.snapshot() == await form.snapshot()
        assert (await restored.validate_deep()).errors == (await form.validate_deep()).errors

    async def test_reset_step(self, signup_form: Property, registry: Registry) -> None:
        form = PropertyNode.create(
            signup_form,
            registry,
            config=TuringPropConfig(subscriber_errors=SubscriberErrorPolicy.LOG),
        )
        form.get("step2.newsletter").set_value(True)  # type: ignore[union-attr]

        form.reset_deep()

        assert form.get("step2.newsletter").get_raw_value() is False  # type: ignore[union-attr]
