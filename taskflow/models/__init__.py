"""Data models for the task workflow engine."""

from .core import (
    TaskInput,
    NodeStatus,
    ExecutionStatusEnum,
    TaskCategory,
    ParamType,
    ValidationResult,
    TaskOutput,
    Position,
    WorkflowNode,
    WorkflowEdge,
    Workflow,
    NodeExecutionLog,
    WorkflowExecutionResult,
    ParamOption,
    ParamConfig,
    TaskConfig,
    ExecuteTaskRequest,
    ExecuteWorkflowRequest,
)

__all__ = [
    "TaskInput",
    "NodeStatus",
    "ExecutionStatusEnum",
    "TaskCategory",
    "ParamType",
    "ValidationResult",
    "TaskOutput",
    "Position",
    "WorkflowNode",
    "WorkflowEdge",
    "Workflow",
    "NodeExecutionLog",
    "WorkflowExecutionResult",
    "ParamOption",
    "ParamConfig",
    "TaskConfig",
    "ExecuteTaskRequest",
    "ExecuteWorkflowRequest",
]
