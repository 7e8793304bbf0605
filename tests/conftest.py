"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient

from taskflow.config import get_testing_config
from taskflow.core.execution_engine import ExecutionEngine
from taskflow.core.graph_manager import GraphManager
from taskflow.core.task_registry import TaskRegistry
from taskflow.factory import create_app
from taskflow.models.core import TaskCategory, TaskConfig, Workflow
from taskflow.tasks import register_builtin_tasks


def make_config(task_id: str, category: TaskCategory = TaskCategory.ACTION) -> TaskConfig:
    """Minimal task config for ad-hoc test executors."""
    return TaskConfig(id=task_id, name=task_id.title(), category=category)


def make_workflow(nodes, edges=()) -> Workflow:
    """Build a workflow from ``(id, type, config)`` tuples and ``(source, target)`` pairs."""
    return Workflow(
        nodes=[{"id": node_id, "type": task_type, "config": config} for node_id, task_type, config in nodes],
        edges=[{"source": source, "target": target} for source, target in edges],
    )


@pytest.fixture
def task_registry():
    """TaskRegistry with all built-in task types."""
    registry = TaskRegistry()
    register_builtin_tasks(registry, get_testing_config())
    return registry


@pytest.fixture
def graph_manager():
    return GraphManager()


@pytest.fixture
def execution_engine(task_registry, graph_manager):
    return ExecutionEngine(task_registry=task_registry, graph_manager=graph_manager)


@pytest.fixture
def app():
    """FastAPI application built with the testing configuration."""
    return create_app(get_testing_config())


@pytest.fixture
def client(app):
    """Test client; entering it runs the application lifespan."""
    with TestClient(app) as test_client:
        yield test_client
