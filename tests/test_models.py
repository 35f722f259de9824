"""Unit tests for entity models and typed variable bags."""

import json
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from graphdata.exceptions import ValidationError
from graphdata.models import (
    BooleanValue,
    MappingValue,
    NewProcessInstance,
    NewUser,
    NumberValue,
    ProcessInstance,
    ProcessInstancePatch,
    ProcessStatus,
    StringValue,
    TaskStatus,
    TimestampValue,
    User,
    coerce_variables,
    dump_variables,
    from_python,
    load_variables,
    variables_to_python,
)

STAMP = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


def make_instance(**overrides) -> ProcessInstance:
    values = dict(
        id="process-1",
        process_id="order-fulfilment",
        business_key="BK-1",
        status=ProcessStatus.RUNNING,
        start_time=STAMP,
        created_at=STAMP,
        updated_at=STAMP,
        variables=coerce_variables({"total": 42}),
    )
    values.update(overrides)
    return ProcessInstance(**values)


class TestVariables:
    """Test cases for tagged variable values."""

    def test_python_values_are_tagged_by_type(self):
        """Test that bool is tagged before int."""
        assert from_python(True) == BooleanValue(value=True)
        assert from_python(3) == NumberValue(value=3)
        assert from_python(2.5) == NumberValue(value=2.5)
        assert from_python("x") == StringValue(value="x")
        assert from_python(STAMP) == TimestampValue(value=STAMP)
        assert isinstance(from_python({"a": 1}), MappingValue)

    @pytest.mark.parametrize("value", [None, [1, 2], object()])
    def test_unsupported_values_raise(self, value):
        with pytest.raises(ValueError, match="Unsupported variable type"):
            from_python(value)

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_numbers_raise(self, value):
        with pytest.raises(ValueError, match="Non-finite"):
            from_python(value)

        with pytest.raises(PydanticValidationError):
            NumberValue(value=value)

    def test_stored_form_values_are_not_wrapped_again(self):
        """Test that a mapping shaped like a tagged value is read as that value."""
        bag = coerce_variables(
            {
                "name": {"kind": "string", "value": "Ada"},
                "customer": {
                    "kind": "mapping",
                    "value": {"tier": {"kind": "number", "value": 2}},
                },
                "plain": {"kind": "vip", "value": "x"},
            }
        )

        assert bag["name"] == StringValue(value="Ada")
        assert variables_to_python(bag) == {
            "name": "Ada",
            "customer": {"tier": 2},
            "plain": {"kind": "vip", "value": "x"},
        }

    def test_malformed_stored_form_is_rejected(self):
        with pytest.raises(ValueError):
            coerce_variables({"n": {"kind": "number", "value": "many"}})

    def test_bag_survives_json_storage(self):
        """Test that nested mappings and timestamps come back unchanged."""
        bag = coerce_variables(
            {
                "approved": True,
                "amount": 12.5,
                "count": 3,
                "due": STAMP,
                "customer": {"name": "Ada", "tier": 2},
            }
        )

        restored = load_variables(dump_variables(bag))

        assert restored == bag
        assert variables_to_python(restored) == {
            "approved": True,
            "amount": 12.5,
            "count": 3,
            "due": STAMP,
            "customer": {"name": "Ada", "tier": 2},
        }

    def test_stored_form_is_tagged_json(self):
        assert json.loads(dump_variables(coerce_variables({"ok": False}))) == {
            "ok": {"kind": "boolean", "value": False}
        }

    def test_unknown_kind_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            load_variables('{"x": {"kind": "list", "value": []}}')


class TestGraphEntity:
    """Test cases for node mapping."""

    def test_to_properties_uses_camel_case_and_drops_nulls(self):
        properties = make_instance().to_properties()

        assert properties["businessKey"] == "BK-1"
        assert properties["processId"] == "order-fulfilment"
        assert properties["status"] == "running"
        assert properties["startTime"] == STAMP
        assert "endTime" not in properties
        assert json.loads(properties["variables"]) == {
            "total": {"kind": "number", "value": 42}
        }

    def test_from_node_reads_stored_properties(self):
        stored = make_instance().to_properties()
        stored["legacyField"] = "ignored"

        instance = ProcessInstance.from_node(stored)

        assert instance == make_instance()

    def test_from_node_reports_malformed_nodes(self):
        with pytest.raises(ValidationError) as exc_info:
            User.from_node({"id": "user-1", "email": "a@b.c"})

        assert exc_info.value.context["entity"] == "User"
        assert any(e.startswith("userId") for e in exc_info.value.validation_errors)

    def test_entities_are_frozen(self):
        instance = make_instance()

        with pytest.raises(PydanticValidationError):
            instance.status = ProcessStatus.SUSPENDED

    def test_fields_accept_python_names(self):
        assert make_instance().business_key == "BK-1"


class TestInputs:
    """Test cases for repository input models."""

    def test_new_instance_defaults_to_running(self):
        spec = NewProcessInstance(process_id="p", business_key="BK-1")

        assert spec.status is ProcessStatus.RUNNING
        assert spec.variables == {}

    def test_new_instance_cannot_start_terminal(self):
        with pytest.raises(PydanticValidationError, match="terminal"):
            NewProcessInstance(process_id="p", business_key="BK-1", status="terminated")

    def test_patch_requires_a_change(self):
        with pytest.raises(PydanticValidationError, match="no changes"):
            ProcessInstancePatch()

    def test_patch_tags_variables(self):
        patch = ProcessInstancePatch(variables={"n": 1})

        assert patch.variables == {"n": NumberValue(value=1)}

    def test_new_user_email_is_normalized(self):
        user = NewUser(user_id="ada", email=" Ada@Example.com", tenant_id="acme")

        assert user.email == "ada@example.com"

    def test_new_user_rejects_invalid_email(self):
        with pytest.raises(PydanticValidationError, match="valid email"):
            NewUser(user_id="ada", email="ada@", tenant_id="acme")

    def test_terminal_statuses(self):
        assert ProcessStatus.COMPLETED.is_terminal
        assert ProcessStatus.TERMINATED.is_terminal
        assert not ProcessStatus.SUSPENDED.is_terminal
        assert TaskStatus.FAILED.is_terminal
        assert not TaskStatus.ASSIGNED.is_terminal
