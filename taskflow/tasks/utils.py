"""Value helpers shared by the built-in tasks.

Task inputs are loosely typed JSON values. These helpers read them without
ever raising, so a task can reject a mismatched field with an error output.
"""

import json
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional


def now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def get_str(task_input: Mapping[str, Any], key: str, default: str = "") -> str:
    """Return ``task_input[key]`` if it is a string, else ``default``."""
    value = task_input.get(key)
    return value if isinstance(value, str) else default


def get_number(task_input: Mapping[str, Any], key: str) -> Optional[float]:
    """Return ``task_input[key]`` as a float if it is a JSON number."""
    value = task_input.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def get_bool(task_input: Mapping[str, Any], key: str, default: bool = False) -> bool:
    value = task_input.get(key)
    return value if isinstance(value, bool) else default


def to_float(value: Any) -> float:
    """Coerce a number or numeric string to float; anything else is 0."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return 0.0
    return 0.0


def to_string_list(value: Any) -> List[str]:
    """Return the string items of a list, or an empty list."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def stringify(value: Any) -> str:
    """Render a value the way it reads in a form field."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    return str(value)


def get_nested_value(data: Any, path: str) -> Any:
    """Resolve a dotted path (``data.value``) through nested mappings."""
    if data is None:
        return None

    current = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0
    return False


def evaluate_condition(field_value: Any, operator: str, compare_value: Any) -> bool:
    """Evaluate ``field_value <operator> compare_value``.

    Equality holds when the values are equal or render to the same string,
    so ``5`` equals ``"5"``. Ordering operators compare numerically.
    Unknown operators evaluate to False.
    """
    if operator == "equals":
        return field_value == compare_value or stringify(field_value) == stringify(compare_value)

    if operator == "notEquals":
        return not evaluate_condition(field_value, "equals", compare_value)

    if operator == "contains":
        if isinstance(field_value, list):
            return compare_value in field_value or stringify(compare_value) in [stringify(v) for v in field_value]
        return stringify(compare_value) in stringify(field_value)

    if operator == "isEmpty":
        return is_empty(field_value)

    if operator == "isNotEmpty":
        return not is_empty(field_value)

    if operator in ("gt", "gte", "lt", "lte"):
        a, b = to_float(field_value), to_float(compare_value)
        if operator == "gt":
            return a > b
        if operator == "gte":
            return a >= b
        if operator == "lt":
            return a < b
        return a <= b

    return False


CONDITION_OPERATORS = (
    ("equals", "Equals"),
    ("notEquals", "Not equals"),
    ("gt", "Greater than"),
    ("gte", "Greater than or equal"),
    ("lt", "Less than"),
    ("lte", "Less than or equal"),
    ("contains", "Contains"),
    ("isEmpty", "Is empty"),
    ("isNotEmpty", "Is not empty"),
)
