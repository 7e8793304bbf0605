"""Task Registry component mapping task types to executors and parameter schemas."""

import threading
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, NamedTuple, Optional

from ..models.core import TaskConfig, TaskInput, TaskOutput
from .exceptions import TaskRegistryError
from .logging import get_logger

logger = get_logger(__name__)

TaskExecutor = Callable[[TaskInput], TaskOutput]


class RegisteredTask(NamedTuple):
    """A task type's schema together with its executor."""
    config: TaskConfig
    executor: TaskExecutor


class TaskRegistry:
    """Registry of task types that workflow nodes can reference.

    The registry is built once at startup and shared by every workflow run.
    Writers serialize on a lock and publish a fresh read-only snapshot, so
    lookups never block and always observe a consistent table. Executors
    are invoked outside the lock and may overlap freely across runs.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._tasks: Mapping[str, RegisteredTask] = MappingProxyType({})

    def register(self, config: TaskConfig, executor: TaskExecutor) -> None:
        """Register an executor under ``config.id``.

        Args:
            config: Declared schema of the task type
            executor: Callable taking a task input and returning a TaskOutput

        Raises:
            TaskRegistryError: If the task id is empty or the executor is not callable
        """
        task_type = config.id.strip() if config.id else ""
        if not task_type:
            raise TaskRegistryError("Task type cannot be empty", operation="register")

        if not callable(executor):
            raise TaskRegistryError(
                f"Executor for task type '{task_type}' must be callable",
                task_type=task_type,
                operation="register"
            )

        with self._lock:
            tasks = dict(self._tasks)
            if task_type in tasks:
                logger.warning(f"Task type '{task_type}' is already registered, replacing it")
            tasks[task_type] = RegisteredTask(config=config, executor=executor)
            self._tasks = MappingProxyType(tasks)

        logger.debug(f"Registered task type '{task_type}' ({config.category.value})")

    def unregister(self, task_type: str) -> bool:
        """Remove a task type from the registry.

        Returns:
            True if the task type was removed, False if it was not registered
        """
        with self._lock:
            if task_type not in self._tasks:
                return False
            tasks = dict(self._tasks)
            del tasks[task_type]
            self._tasks = MappingProxyType(tasks)

        logger.info(f"Unregistered task type '{task_type}'")
        return True

    def get(self, task_type: str) -> Optional[TaskExecutor]:
        """Return the executor for a task type, or None."""
        registered = self._tasks.get(task_type)
        return registered.executor if registered else None

    def get_config(self, task_type: str) -> Optional[TaskConfig]:
        """Return the declared schema for a task type, or None."""
        registered = self._tasks.get(task_type)
        return registered.config if registered else None

    def list_configs(self) -> List[TaskConfig]:
        """List the schemas of all registered task types, sorted by id."""
        tasks = self._tasks
        return [tasks[task_type].config for task_type in sorted(tasks)]

    def list_by_category(self) -> Dict[str, List[TaskConfig]]:
        """Group registered task schemas by category, each group sorted by id."""
        grouped: Dict[str, List[TaskConfig]] = {}
        for config in self.list_configs():
            grouped.setdefault(config.category.value, []).append(config)
        return grouped

    def exists(self, task_type: str) -> bool:
        return task_type in self._tasks

    def __contains__(self, task_type: object) -> bool:
        return task_type in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    def execute(self, task_type: str, task_input: TaskInput) -> TaskOutput:
        """Execute a task type against an input.

        Never raises: an unknown task type, an executor exception, or a
        malformed executor return value all come back as a failure output.
        """
        executor = self.get(task_type)
        if executor is None:
            logger.warning(f"Requested unknown task type '{task_type}'")
            return TaskOutput.failure(f"Unknown task type: {task_type}")

        try:
            output = executor(task_input)
        except Exception as e:
            logger.error(f"Task '{task_type}' raised an exception: {e}", exc_info=True)
            return TaskOutput.failure(f"Task '{task_type}' raised {type(e).__name__}: {e}")

        if not isinstance(output, TaskOutput):
            logger.error(f"Task '{task_type}' returned {type(output).__name__} instead of TaskOutput")
            return TaskOutput.failure(f"Task '{task_type}' returned an invalid output")

        return output
