"""FastAPI REST endpoints for the task workflow engine."""

from datetime import datetime, timezone
from typing import Dict, List, Optional
from fastapi import APIRouter, HTTPException, Depends, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..core.execution_engine import ExecutionEngine
from ..core.task_registry import TaskRegistry
from ..models.core import (
    ExecuteTaskRequest,
    ExecuteWorkflowRequest,
    TaskConfig,
    TaskOutput,
    ValidationResult,
    WorkflowExecutionResult,
)
from ..core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["taskflow"])

# Global instances (initialized by the application factory)
_task_registry: Optional[TaskRegistry] = None
_execution_engine: Optional[ExecutionEngine] = None


def init_dependencies(task_registry: TaskRegistry, execution_engine: ExecutionEngine):
    """Initialize the global dependencies."""
    global _task_registry, _execution_engine
    _task_registry = task_registry
    _execution_engine = execution_engine


def get_task_registry() -> TaskRegistry:
    """Dependency to get the task registry."""
    if _task_registry is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Task registry not initialized"
        )
    return _task_registry


def get_execution_engine() -> ExecutionEngine:
    """Dependency to get the execution engine."""
    if _execution_engine is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Execution engine not initialized"
        )
    return _execution_engine


class HealthResponse(BaseModel):
    """Response model for the health probe."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Server time")


class TaskListResponse(BaseModel):
    """Task types grouped by category."""
    tasks: Dict[str, List[TaskConfig]] = Field(..., description="Task configs keyed by category")


class ErrorResponse(BaseModel):
    """Standard error response model."""
    error: str = Field(..., description="Error message")


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies as 400 with a flat error message."""
    problems = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))

    logger.info(f"Rejected malformed request {request.method} {request.url.path}: {problems}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": f"Invalid request parameters: {'; '.join(problems)}"}
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check"
)
def health_check():
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))


@router.get(
    "/tasks",
    response_model=TaskListResponse,
    summary="List task types",
    description="List every registered task type grouped by category."
)
def list_tasks(task_registry: TaskRegistry = Depends(get_task_registry)):
    return TaskListResponse(tasks=task_registry.list_by_category())


@router.get(
    "/tasks/{task_type}/config",
    response_model=TaskConfig,
    responses={404: {"model": ErrorResponse}},
    summary="Get task type configuration",
    description="Return the parameter schema of a single task type."
)
def get_task_config(task_type: str, task_registry: TaskRegistry = Depends(get_task_registry)):
    """
    Get the declared configuration of a task type.

    Args:
        task_type: Task type identifier
        task_registry: Task registry dependency

    Returns:
        TaskConfig, or a 404 error body when the type is unknown
    """
    config = task_registry.get_config(task_type)
    if config is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": f"Task type not found: {task_type}"}
        )
    return config


@router.post(
    "/tasks/{task_type}/execute",
    response_model=TaskOutput,
    summary="Execute a single task",
    description="Run one task type against the given input. Task failures are "
                "reported in the response body, not as HTTP errors."
)
def execute_task(
    task_type: str,
    request: ExecuteTaskRequest,
    execution_engine: ExecutionEngine = Depends(get_execution_engine)
):
    output = execution_engine.execute_task(task_type, request.input)
    if not output.is_success:
        logger.info(f"Task '{task_type}' failed: {output.error}")
    return output


@router.post(
    "/workflow/execute",
    response_model=WorkflowExecutionResult,
    summary="Execute a workflow",
    description="Run every node of the workflow in dependency order and return the "
                "execution trace. Cycles and failing nodes are reported in the body."
)
def execute_workflow(
    request: ExecuteWorkflowRequest,
    execution_engine: ExecutionEngine = Depends(get_execution_engine)
):
    """
    Execute a workflow synchronously.

    Args:
        request: Workflow execution request
        execution_engine: Execution engine dependency

    Returns:
        WorkflowExecutionResult: Status, execution log and final output
    """
    result = execution_engine.run(request.workflow)
    logger.info(
        f"Workflow run finished with status {result.status.value} "
        f"after {len(result.logs)} log entries"
    )
    return result


@router.post(
    "/workflow/validate",
    response_model=ValidationResult,
    summary="Validate a workflow",
    description="Check node references, duplicates and cycles without executing anything."
)
def validate_workflow(
    request: ExecuteWorkflowRequest,
    execution_engine: ExecutionEngine = Depends(get_execution_engine)
):
    graph_manager = execution_engine.graph_manager
    result = graph_manager.validate_workflow(request.workflow)
    if result.is_valid and graph_manager.has_cycle(request.workflow):
        result.is_valid = False
        result.errors.append("Workflow contains a cyclic dependency")
    return result
