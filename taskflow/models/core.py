"""Core Pydantic models for the task workflow engine."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator
from pydantic.alias_generators import to_camel


# Arbitrary key/value payload handed to a task execution.
TaskInput = Dict[str, Any]


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class NodeStatus(str, Enum):
    """Enumeration of per-node execution statuses."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    ERROR = "error"


class ExecutionStatusEnum(str, Enum):
    """Enumeration of whole-run execution statuses."""
    SUCCESS = "success"
    ERROR = "error"


class TaskCategory(str, Enum):
    """Categories used to group task types in the UI."""
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"
    TRANSFORM = "transform"


class ParamType(str, Enum):
    """Type tags for task parameters, used for form generation."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    SELECT = "select"
    JSON = "json"
    TEXTAREA = "textarea"
    PASSWORD = "password"


class ValidationResult(BaseModel):
    """Result of workflow validation."""
    is_valid: bool = Field(..., description="Whether the workflow is valid")
    errors: List[str] = Field(default_factory=list, description="List of validation errors")
    warnings: List[str] = Field(default_factory=list, description="List of validation warnings")


class TaskOutput(CamelModel):
    """Result of a single task execution.

    Success is defined purely by an empty ``error`` string; ``data`` is only
    meaningful on success, although failing tasks may attach diagnostic data.
    """
    error: str = Field(default="", description="Failure reason, empty on success")
    data: Optional[JsonValue] = Field(None, description="Task result payload")

    @property
    def is_success(self) -> bool:
        return self.error == ""

    @classmethod
    def success(cls, data: Any = None) -> "TaskOutput":
        return cls(error="", data=data)

    @classmethod
    def failure(cls, error: str, data: Any = None) -> "TaskOutput":
        return cls(error=error, data=data)


class Position(BaseModel):
    """Canvas position of a node. Ignored by the engine."""
    x: float = 0.0
    y: float = 0.0


class WorkflowNode(CamelModel):
    """A single task instance within a workflow."""
    id: str = Field(..., description="Unique identifier for the node")
    type: str = Field(..., description="Task type resolved against the registry")
    label: str = Field(default="", description="Display name used in messages")
    config: Dict[str, Any] = Field(default_factory=dict, description="Static task parameters")
    position: Optional[Position] = Field(None, description="Canvas position")

    @field_validator('id')
    @classmethod
    def validate_id(cls, id_value):
        """Ensure node ID is not empty."""
        if not id_value or not id_value.strip():
            raise ValueError("Node ID cannot be empty")
        return id_value.strip()

    @field_validator('config', mode='before')
    @classmethod
    def validate_config(cls, config):
        """Treat a missing config as empty."""
        return {} if config is None else config

    @property
    def display_name(self) -> str:
        return self.label or self.id


class WorkflowEdge(CamelModel):
    """Directed dependency: ``target`` consumes ``source``'s output."""
    source: str = Field(..., description="Source node ID")
    target: str = Field(..., description="Target node ID")

    @field_validator('source', 'target')
    @classmethod
    def validate_node_ids(cls, node_id):
        """Ensure node IDs are valid."""
        if not node_id or not node_id.strip():
            raise ValueError("Node ID cannot be empty")
        return node_id.strip()


class Workflow(CamelModel):
    """Complete definition of a workflow graph."""
    nodes: List[WorkflowNode] = Field(default_factory=list, description="Nodes in declaration order")
    edges: List[WorkflowEdge] = Field(default_factory=list, description="Dependency edges")

    def node_map(self) -> Dict[str, WorkflowNode]:
        return {node.id: node for node in self.nodes}


class NodeExecutionLog(CamelModel):
    """One entry of the execution trace."""
    node_id: str = Field(..., description="ID of the node")
    node_name: str = Field(..., description="Label of the node")
    status: NodeStatus = Field(..., description="Node status at the time of the entry")
    message: str = Field(..., description="Human-readable message")
    input: Optional[TaskInput] = Field(None, description="Composed task input")
    output: Optional[TaskOutput] = Field(None, description="Task output")
    duration: Optional[int] = Field(None, description="Execution time in milliseconds")
    timestamp: datetime = Field(..., description="Timestamp of the entry")


class WorkflowExecutionResult(CamelModel):
    """Outcome of a workflow run."""
    status: ExecutionStatusEnum = Field(..., description="Overall run status")
    start_time: datetime = Field(..., description="Run start timestamp")
    end_time: datetime = Field(..., description="Run end timestamp")
    logs: List[NodeExecutionLog] = Field(default_factory=list, description="Ordered execution trace")
    final_output: Optional[TaskOutput] = Field(None, description="Output of the last executed node")
    error: Optional[str] = Field(None, description="Error message if the run failed")


class ParamOption(CamelModel):
    """Selectable option of an enumerated parameter."""
    label: str
    value: Any


class ParamConfig(CamelModel):
    """Declared parameter of a task type."""
    name: str = Field(..., description="Input key")
    type: ParamType = Field(..., description="Type tag")
    label: str = Field(..., description="Display label")
    required: bool = Field(default=False, description="Whether the parameter is mandatory")
    default: Optional[Any] = Field(None, description="Default value")
    description: Optional[str] = Field(None, description="Help text")
    options: Optional[List[ParamOption]] = Field(None, description="Allowed values for select parameters")


class TaskConfig(CamelModel):
    """Declared schema of a task type."""
    id: str = Field(..., description="Task type identifier")
    name: str = Field(..., description="Display name")
    category: TaskCategory = Field(..., description="Task category")
    description: str = Field(default="", description="Task description")
    params: List[ParamConfig] = Field(default_factory=list, description="Declared parameters")


class ExecuteTaskRequest(CamelModel):
    """Request body for a single task execution."""
    input: TaskInput = Field(default_factory=dict, description="Task input")

    @field_validator('input', mode='before')
    @classmethod
    def validate_input(cls, task_input):
        return {} if task_input is None else task_input


class ExecuteWorkflowRequest(CamelModel):
    """Request body for a workflow execution."""
    workflow: Workflow = Field(..., description="Workflow to execute")
