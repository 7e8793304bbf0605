"""Execution Engine driving workflow runs node by node."""

import copy
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from ..models.core import (
    ExecutionStatusEnum, NodeExecutionLog, NodeStatus, TaskInput, TaskOutput,
    Workflow, WorkflowExecutionResult, WorkflowNode
)
from .graph_manager import GraphManager
from .input_composer import compose_input
from .logging import get_logger, log_with_context, logging_context
from .task_registry import TaskRegistry

logger = get_logger(__name__)

CYCLE_ERROR_MESSAGE = "Workflow contains a cyclic dependency and cannot be executed"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionEngine:
    """Runs workflows sequentially in dependency order with all-or-nothing semantics.

    A run sorts the graph once, then for each node composes its input,
    executes it through the task registry and appends a ``running`` and a
    terminal log entry. The first failing node aborts the run; nodes after
    it are never attempted and leave no trace. Every failure, structural
    or task-level, is reported on the returned result rather than raised.

    Runs share nothing but the registry, so one engine may serve
    concurrent runs from several threads.
    """

    def __init__(self, task_registry: TaskRegistry, graph_manager: Optional[GraphManager] = None):
        """Initialize the execution engine.

        Args:
            task_registry: Registry resolving node types to executors
            graph_manager: Validator and dependency sorter, created if not provided
        """
        self.task_registry = task_registry
        self.graph_manager = graph_manager or GraphManager()

    def execute_task(self, task_type: str, task_input: Optional[TaskInput]) -> TaskOutput:
        """Execute a single task outside of any workflow."""
        logger.info(f"Executing single task '{task_type}'")
        return self.task_registry.execute(task_type, dict(task_input or {}))

    def run(self, workflow: Workflow) -> WorkflowExecutionResult:
        """
        Execute a workflow and return its full trace.

        Args:
            workflow: Workflow definition, treated as immutable

        Returns:
            WorkflowExecutionResult: Overall status, log and final output
        """
        with logging_context(run_id=uuid.uuid4().hex[:12]):
            return self._run(workflow)

    def _run(self, workflow: Workflow) -> WorkflowExecutionResult:
        start_time = _now()
        logger.info(f"Starting workflow run with {len(workflow.nodes)} nodes and {len(workflow.edges)} edges")

        validation = self.graph_manager.validate_workflow(workflow)
        for warning in validation.warnings:
            logger.debug(f"Workflow warning: {warning}")
        if not validation.is_valid:
            message = f"Invalid workflow: {'; '.join(validation.errors)}"
            logger.warning(message)
            return self._aborted(start_time, message)

        execution_order = self.graph_manager.sort(workflow.nodes, workflow.edges)
        if len(execution_order) != len(workflow.nodes):
            logger.warning(CYCLE_ERROR_MESSAGE)
            return self._aborted(start_time, CYCLE_ERROR_MESSAGE)

        node_map = workflow.node_map()
        prior_outputs: Dict[str, TaskOutput] = {}
        logs: List[NodeExecutionLog] = []
        final_output: Optional[TaskOutput] = None

        for node_id in execution_order:
            node = node_map[node_id]
            output = self._execute_node(node, workflow, prior_outputs, logs)
            prior_outputs[node_id] = output

            if not output.is_success:
                message = f'Task "{node.display_name}" failed: {output.error}'
                logger.warning(f"Workflow run aborted. {message}")
                return WorkflowExecutionResult(
                    status=ExecutionStatusEnum.ERROR,
                    start_time=start_time,
                    end_time=logs[-1].timestamp,
                    logs=logs,
                    final_output=output,
                    error=message
                )
            final_output = output

        logger.info(f"Workflow run completed, {len(execution_order)} nodes executed")
        return WorkflowExecutionResult(
            status=ExecutionStatusEnum.SUCCESS,
            start_time=start_time,
            end_time=_now(),
            logs=logs,
            final_output=final_output
        )

    def _execute_node(
        self,
        node: WorkflowNode,
        workflow: Workflow,
        prior_outputs: Dict[str, TaskOutput],
        logs: List[NodeExecutionLog]
    ) -> TaskOutput:
        """Run one node, appending its running and terminal log entries."""
        label = node.display_name
        logs.append(NodeExecutionLog(
            node_id=node.id,
            node_name=label,
            status=NodeStatus.RUNNING,
            message=f"Starting task: {label}",
            timestamp=_now()
        ))
        log_with_context(logger, logging.DEBUG, f"Executing node ({node.type})", node_id=node.id)

        started = time.perf_counter()
        task_input = compose_input(node.id, node.config, workflow.edges, prior_outputs)
        output = self.task_registry.execute(node.type, copy.deepcopy(task_input))
        duration = int((time.perf_counter() - started) * 1000)

        if output.is_success:
            status, message = NodeStatus.SUCCESS, f"Task succeeded: {label}"
        else:
            status, message = NodeStatus.ERROR, f"Task failed: {output.error}"

        logs.append(NodeExecutionLog(
            node_id=node.id,
            node_name=label,
            status=status,
            message=message,
            input=task_input,
            output=output,
            duration=duration,
            timestamp=_now()
        ))
        log_with_context(
            logger, logging.DEBUG, f"Node finished with status {status.value} in {duration}ms",
            node_id=node.id, duration_ms=duration
        )
        return output

    @staticmethod
    def _aborted(start_time: datetime, message: str) -> WorkflowExecutionResult:
        """Result for a workflow rejected before any node ran."""
        return WorkflowExecutionResult(
            status=ExecutionStatusEnum.ERROR,
            start_time=start_time,
            end_time=_now(),
            logs=[],
            error=message
        )
