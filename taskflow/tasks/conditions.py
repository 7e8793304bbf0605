"""Condition task: gates the rest of the workflow on a field comparison."""

from ..core.input_composer import first_previous_data
from ..core.task_registry import TaskRegistry
from ..models.core import (
    ParamConfig, ParamOption, ParamType, TaskCategory, TaskConfig, TaskInput, TaskOutput
)
from .utils import CONDITION_OPERATORS, evaluate_condition, get_nested_value, get_str

IF_CONDITION_CONFIG = TaskConfig(
    id="if-condition",
    name="If Condition",
    category=TaskCategory.CONDITION,
    description="Continue only when the condition holds",
    params=[
        ParamConfig(
            name="field",
            type=ParamType.STRING,
            label="Field",
            required=True,
            description="Field path to test, nested paths allowed (e.g. data.value)",
        ),
        ParamConfig(
            name="operator",
            type=ParamType.SELECT,
            label="Operator",
            required=True,
            default="equals",
            options=[ParamOption(label=label, value=value) for value, label in CONDITION_OPERATORS],
        ),
        ParamConfig(
            name="value",
            type=ParamType.STRING,
            label="Value",
            required=False,
            description="Value to compare against",
        ),
        ParamConfig(
            name="sourceData",
            type=ParamType.JSON,
            label="Source data",
            required=False,
            description="Data to test; defaults to the previous step's output",
        ),
    ],
)


def execute_if_condition(task_input: TaskInput) -> TaskOutput:
    """Evaluate the condition; an unmet condition is a failure so the run stops."""
    field = get_str(task_input, "field").strip()
    if not field:
        return TaskOutput.failure("Condition field cannot be empty")

    operator = get_str(task_input, "operator") or "equals"
    compare_value = task_input.get("value")

    source_data = task_input.get("sourceData")
    if source_data is None:
        source_data = first_previous_data(task_input)
    if source_data is None:
        source_data = task_input

    field_value = get_nested_value(source_data, field)
    result = evaluate_condition(field_value, operator, compare_value)

    data = {
        "condition": result,
        "field": field,
        "operator": operator,
        "value": compare_value,
        "fieldValue": field_value,
    }

    if not result:
        return TaskOutput.failure(f"Condition not met: {field} {operator} {compare_value}", data=data)

    data["message"] = "Condition met, continuing"
    return TaskOutput.success(data)


def register_conditions(registry: TaskRegistry) -> None:
    registry.register(IF_CONDITION_CONFIG, execute_if_condition)
