"""Core workflow engine components."""

from .exceptions import (
    WorkflowEngineError,
    TaskRegistryError,
    ConfigurationError,
)
from .logging import setup_logging, get_logger
from .task_registry import TaskRegistry
from .graph_manager import GraphManager
from .input_composer import PREVIOUS_KEY, compose_input
from .execution_engine import ExecutionEngine

__all__ = [
    "WorkflowEngineError",
    "TaskRegistryError",
    "ConfigurationError",
    "setup_logging",
    "get_logger",
    "TaskRegistry",
    "GraphManager",
    "PREVIOUS_KEY",
    "compose_input",
    "ExecutionEngine",
]
