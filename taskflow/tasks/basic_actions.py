"""Basic action tasks: delay and log."""

import logging
import time

from ..core.logging import get_logger
from ..core.task_registry import TaskRegistry
from ..models.core import (
    ParamConfig, ParamOption, ParamType, TaskCategory, TaskConfig, TaskInput, TaskOutput
)
from .utils import get_number, get_str, now_iso

logger = get_logger(__name__)

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

DELAY_CONFIG = TaskConfig(
    id="delay",
    name="Delay",
    category=TaskCategory.ACTION,
    description="Pause execution for the given number of seconds",
    params=[
        ParamConfig(
            name="seconds",
            type=ParamType.NUMBER,
            label="Seconds",
            required=True,
            default=1,
            description="Number of seconds to pause",
        ),
    ],
)

LOG_CONFIG = TaskConfig(
    id="log",
    name="Log",
    category=TaskCategory.ACTION,
    description="Write a message to the engine log",
    params=[
        ParamConfig(
            name="level",
            type=ParamType.SELECT,
            label="Level",
            required=True,
            default="info",
            options=[
                ParamOption(label="Debug", value="debug"),
                ParamOption(label="Info", value="info"),
                ParamOption(label="Warning", value="warn"),
                ParamOption(label="Error", value="error"),
            ],
        ),
        ParamConfig(
            name="message",
            type=ParamType.STRING,
            label="Message",
            required=True,
            description="Text to log",
        ),
        ParamConfig(
            name="data",
            type=ParamType.JSON,
            label="Extra data",
            required=False,
            description="Additional JSON data attached to the entry",
        ),
    ],
)


def execute_delay(task_input: TaskInput) -> TaskOutput:
    """Sleep for ``seconds``. Missing or non-numeric means 1 second, zero or less means no sleep."""
    seconds = get_number(task_input, "seconds")
    if seconds is None:
        seconds = 1.0
    seconds = max(seconds, 0.0)

    started_at = now_iso()
    if seconds:
        time.sleep(seconds)
    finished_at = now_iso()

    return TaskOutput.success({
        "delayed": True,
        "seconds": seconds,
        "startTime": started_at,
        "endTime": finished_at,
        "message": f"Delayed {seconds:.1f} seconds",
    })


def execute_log(task_input: TaskInput) -> TaskOutput:
    level = get_str(task_input, "level") or "info"
    message = get_str(task_input, "message") or "(empty message)"
    data = task_input.get("data")

    logger.log(LOG_LEVELS.get(level, logging.INFO), f"[workflow] {message}")

    return TaskOutput.success({
        "logged": True,
        "level": level,
        "message": message,
        "data": data,
        "timestamp": now_iso(),
    })


def register_basic_actions(registry: TaskRegistry) -> None:
    registry.register(DELAY_CONFIG, execute_delay)
    registry.register(LOG_CONFIG, execute_log)
