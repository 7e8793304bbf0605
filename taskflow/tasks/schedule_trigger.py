"""Schedule trigger task.

The engine never schedules anything itself; this task only validates the
schedule and reports when the workflow would fire.
"""

from datetime import datetime

from ..core.task_registry import TaskRegistry
from ..models.core import (
    ParamConfig, ParamOption, ParamType, TaskCategory, TaskConfig, TaskInput, TaskOutput
)
from .utils import get_number, get_str, now_iso

SCHEDULE_TRIGGER_CONFIG = TaskConfig(
    id="schedule-trigger",
    name="Schedule Trigger",
    category=TaskCategory.TRIGGER,
    description="Trigger the workflow on a time schedule",
    params=[
        ParamConfig(
            name="scheduleType",
            type=ParamType.SELECT,
            label="Schedule type",
            required=True,
            default="once",
            description="How the workflow is triggered",
            options=[
                ParamOption(label="Cron expression", value="cron"),
                ParamOption(label="Fixed interval", value="interval"),
                ParamOption(label="Run once", value="once"),
            ],
        ),
        ParamConfig(
            name="cronExpression",
            type=ParamType.STRING,
            label="Cron expression",
            required=False,
            description="Format: minute hour day month weekday",
        ),
        ParamConfig(
            name="intervalSeconds",
            type=ParamType.NUMBER,
            label="Interval seconds",
            required=False,
            default=60,
            description="Seconds between runs",
        ),
        ParamConfig(
            name="executeAt",
            type=ParamType.STRING,
            label="Execute at",
            required=False,
            description="ISO 8601 timestamp",
        ),
    ],
)


def parse_execute_at(value: str) -> datetime:
    """Parse an ISO 8601 timestamp or a ``YYYY-MM-DDTHH:MM`` form value.

    Raises:
        ValueError: If the value matches neither format
    """
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return datetime.strptime(value, "%Y-%m-%dT%H:%M")


def execute_schedule_trigger(task_input: TaskInput) -> TaskOutput:
    schedule_type = get_str(task_input, "scheduleType") or "once"
    triggered_at = now_iso()

    if schedule_type == "cron":
        cron_expression = get_str(task_input, "cronExpression").strip()
        if not cron_expression:
            return TaskOutput.failure("Cron expression cannot be empty")
        return TaskOutput.success({
            "triggered": True,
            "scheduleType": "cron",
            "cronExpression": cron_expression,
            "triggeredAt": triggered_at,
            "message": f"Cron schedule configured: {cron_expression}",
        })

    if schedule_type == "interval":
        interval = get_number(task_input, "intervalSeconds")
        if interval is None or interval <= 0:
            interval = 60.0
        return TaskOutput.success({
            "triggered": True,
            "scheduleType": "interval",
            "intervalSeconds": interval,
            "triggeredAt": triggered_at,
            "message": f"Interval schedule configured: every {interval:.0f} seconds",
        })

    if schedule_type == "once":
        execute_at = get_str(task_input, "executeAt").strip()
        if not execute_at:
            return TaskOutput.success({
                "triggered": True,
                "scheduleType": "once",
                "triggeredAt": triggered_at,
                "message": "Executing immediately",
            })
        try:
            execute_time = parse_execute_at(execute_at)
        except ValueError:
            return TaskOutput.failure(f"Invalid execution time: {execute_at}")
        return TaskOutput.success({
            "triggered": True,
            "scheduleType": "once",
            "executeAt": execute_time.isoformat(),
            "triggeredAt": triggered_at,
            "message": f"One-off run configured: {execute_time.strftime('%Y-%m-%d %H:%M:%S')}",
        })

    return TaskOutput.failure(f"Unknown schedule type: {schedule_type}")


def register_schedule_trigger(registry: TaskRegistry) -> None:
    registry.register(SCHEDULE_TRIGGER_CONFIG, execute_schedule_trigger)
