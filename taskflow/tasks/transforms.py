"""Data transformation tasks: field transforms, JSON parsing, filtering and aggregation."""

import json
from typing import Any, Dict, List

from ..core.input_composer import first_previous_data
from ..core.task_registry import TaskRegistry
from ..models.core import (
    ParamConfig, ParamOption, ParamType, TaskCategory, TaskConfig, TaskInput, TaskOutput
)
from .utils import (
    CONDITION_OPERATORS, evaluate_condition, get_str, stringify, to_float, to_string_list
)

DATA_TRANSFORM_CONFIG = TaskConfig(
    id="data-transform",
    name="Data Transform",
    category=TaskCategory.TRANSFORM,
    description="Reshape object fields",
    params=[
        ParamConfig(
            name="operation",
            type=ParamType.SELECT,
            label="Operation",
            required=True,
            default="extract",
            options=[
                ParamOption(label="Extract fields", value="extract"),
                ParamOption(label="Rename fields", value="rename"),
                ParamOption(label="Add fields", value="add"),
                ParamOption(label="Remove fields", value="remove"),
                ParamOption(label="Merge objects", value="merge"),
            ],
        ),
        ParamConfig(
            name="sourceData",
            type=ParamType.JSON,
            label="Source data",
            required=False,
            description="Data to transform; defaults to the previous step's output",
        ),
        ParamConfig(
            name="fields",
            type=ParamType.JSON,
            label="Fields",
            required=False,
            description="Field list or field mapping, depending on the operation",
        ),
    ],
)

JSON_PARSE_CONFIG = TaskConfig(
    id="json-parse",
    name="JSON Parse",
    category=TaskCategory.TRANSFORM,
    description="Parse a JSON string or serialize data to JSON",
    params=[
        ParamConfig(
            name="operation",
            type=ParamType.SELECT,
            label="Operation",
            required=True,
            default="parse",
            options=[
                ParamOption(label="Parse JSON", value="parse"),
                ParamOption(label="Serialize to JSON", value="stringify"),
            ],
        ),
        ParamConfig(
            name="data",
            type=ParamType.JSON,
            label="Data",
            required=False,
            description="Data to process; defaults to the previous step's output",
        ),
    ],
)

FILTER_CONFIG = TaskConfig(
    id="filter",
    name="Filter",
    category=TaskCategory.TRANSFORM,
    description="Keep the array items matching a condition",
    params=[
        ParamConfig(
            name="data",
            type=ParamType.JSON,
            label="Items",
            required=False,
            description="Array to filter; defaults to the previous step's output",
        ),
        ParamConfig(
            name="field",
            type=ParamType.STRING,
            label="Field",
            required=True,
            description="Item field to test",
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
    ],
)

AGGREGATE_OPERATIONS = ("count", "sum", "avg", "max", "min", "distinct")

AGGREGATE_CONFIG = TaskConfig(
    id="aggregate",
    name="Aggregate",
    category=TaskCategory.TRANSFORM,
    description="Compute an aggregate over array items",
    params=[
        ParamConfig(
            name="data",
            type=ParamType.JSON,
            label="Items",
            required=False,
            description="Array to aggregate; defaults to the previous step's output",
        ),
        ParamConfig(
            name="operation",
            type=ParamType.SELECT,
            label="Operation",
            required=True,
            default="count",
            options=[
                ParamOption(label="Count", value="count"),
                ParamOption(label="Sum", value="sum"),
                ParamOption(label="Average", value="avg"),
                ParamOption(label="Maximum", value="max"),
                ParamOption(label="Minimum", value="min"),
                ParamOption(label="Distinct", value="distinct"),
            ],
        ),
        ParamConfig(
            name="field",
            type=ParamType.STRING,
            label="Field",
            required=False,
            description="Item field to aggregate",
        ),
    ],
)


def _input_or_previous(task_input: TaskInput, key: str) -> Any:
    value = task_input.get(key)
    if value is None:
        value = first_previous_data(task_input)
    return value


def extract_fields(source: Any, fields: Any) -> TaskOutput:
    field_list = to_string_list(fields)
    if not field_list:
        return TaskOutput.failure("A list of fields to extract is required")
    if not isinstance(source, dict):
        return TaskOutput.failure("Source data must be an object")
    return TaskOutput.success({field: source[field] for field in field_list if field in source})


def rename_fields(source: Any, fields: Any) -> TaskOutput:
    if not isinstance(fields, dict) or not fields:
        return TaskOutput.failure("A field rename mapping is required")
    if not isinstance(source, dict):
        return TaskOutput.failure("Source data must be an object")

    result: Dict[str, Any] = {}
    for key, value in source.items():
        new_name = fields.get(key)
        result[new_name if isinstance(new_name, str) else key] = value
    return TaskOutput.success(result)


def add_fields(source: Any, fields: Any) -> TaskOutput:
    if not isinstance(fields, dict) or not fields:
        return TaskOutput.failure("Fields to add are required")
    base = dict(source) if isinstance(source, dict) else {}
    base.update(fields)
    return TaskOutput.success(base)


def remove_fields(source: Any, fields: Any) -> TaskOutput:
    field_list = to_string_list(fields)
    if not field_list:
        return TaskOutput.failure("A list of fields to remove is required")
    if not isinstance(source, dict):
        return TaskOutput.failure("Source data must be an object")
    removed = set(field_list)
    return TaskOutput.success({key: value for key, value in source.items() if key not in removed})


def merge_data(source: Any, fields: Any) -> TaskOutput:
    if not isinstance(fields, dict):
        return TaskOutput.failure("An object to merge is required")
    base = dict(source) if isinstance(source, dict) else {}
    base.update(fields)
    return TaskOutput.success(base)


TRANSFORM_OPERATIONS = {
    "extract": extract_fields,
    "rename": rename_fields,
    "add": add_fields,
    "remove": remove_fields,
    "merge": merge_data,
}


def execute_data_transform(task_input: TaskInput) -> TaskOutput:
    operation = get_str(task_input, "operation") or "extract"

    source = _input_or_previous(task_input, "sourceData")
    if source is None:
        return TaskOutput.failure("No data to transform")

    handler = TRANSFORM_OPERATIONS.get(operation)
    if handler is None:
        return TaskOutput.failure(f"Unknown transform operation: {operation}")
    return handler(source, task_input.get("fields"))


def execute_json_parse(task_input: TaskInput) -> TaskOutput:
    operation = get_str(task_input, "operation") or "parse"
    data = _input_or_previous(task_input, "data")

    if operation == "parse":
        if not isinstance(data, str):
            return TaskOutput.success(data)
        try:
            return TaskOutput.success(json.loads(data))
        except ValueError as e:
            return TaskOutput.failure(f"JSON parse failed: {e}")

    if operation == "stringify":
        try:
            return TaskOutput.success({"json": json.dumps(data, indent=2, ensure_ascii=False)})
        except (TypeError, ValueError) as e:
            return TaskOutput.failure(f"JSON serialization failed: {e}")

    return TaskOutput.failure(f"Unknown JSON operation: {operation}")


def execute_filter(task_input: TaskInput) -> TaskOutput:
    items = _input_or_previous(task_input, "data")
    if not isinstance(items, list):
        return TaskOutput.failure("Data must be an array")

    field = get_str(task_input, "field")
    operator = get_str(task_input, "operator") or "equals"
    value = task_input.get("value")

    filtered = [
        item for item in items
        if isinstance(item, dict) and evaluate_condition(item.get(field), operator, value)
    ]

    return TaskOutput.success({
        "filtered": filtered,
        "count": len(filtered),
        "original": len(items),
    })


def _field_values(items: List[Any], field: str) -> List[Any]:
    return [item[field] for item in items if isinstance(item, dict) and field in item]


def execute_aggregate(task_input: TaskInput) -> TaskOutput:
    items = _input_or_previous(task_input, "data")
    if not isinstance(items, list):
        return TaskOutput.failure("Data must be an array")

    operation = get_str(task_input, "operation") or "count"
    field = get_str(task_input, "field")

    if operation == "count":
        return TaskOutput.success({"count": len(items)})

    if operation not in AGGREGATE_OPERATIONS:
        return TaskOutput.failure(f"Unknown aggregate operation: {operation}")

    if not field:
        return TaskOutput.failure(f"Aggregate operation '{operation}' requires a field")

    if operation == "distinct":
        seen = set()
        distinct = []
        for value in _field_values(items, field):
            key = stringify(value)
            if key not in seen:
                seen.add(key)
                distinct.append(value)
        return TaskOutput.success({"distinct": distinct, "count": len(distinct)})

    values = [to_float(value) for value in _field_values(items, field)]
    if not values:
        return TaskOutput.failure("No numeric values to aggregate")

    if operation == "sum":
        result = sum(values)
    elif operation == "avg":
        result = sum(values) / len(values)
    elif operation == "max":
        result = max(values)
    else:
        result = min(values)

    return TaskOutput.success({operation: result, "count": len(values)})


def register_transforms(registry: TaskRegistry) -> None:
    registry.register(DATA_TRANSFORM_CONFIG, execute_data_transform)
    registry.register(JSON_PARSE_CONFIG, execute_json_parse)
    registry.register(FILTER_CONFIG, execute_filter)
    registry.register(AGGREGATE_CONFIG, execute_aggregate)
