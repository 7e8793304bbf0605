"""Tests for core workflow engine components."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from taskflow.core.exceptions import TaskRegistryError
from taskflow.core.execution_engine import CYCLE_ERROR_MESSAGE, ExecutionEngine
from taskflow.core.input_composer import PREVIOUS_KEY, compose_input, first_previous_data
from taskflow.core.task_registry import TaskRegistry
from taskflow.models.core import (
    ExecutionStatusEnum, NodeStatus, TaskOutput, WorkflowEdge, WorkflowNode
)

from conftest import make_config, make_workflow


def edges_of(*pairs):
    return [WorkflowEdge(source=source, target=target) for source, target in pairs]


def nodes_of(*ids):
    return [WorkflowNode(id=node_id, type="noop") for node_id in ids]


class TestTaskRegistry:
    """Test TaskRegistry functionality."""

    def test_register_and_get_task(self):
        """Test registering and retrieving a task type."""
        registry = TaskRegistry()

        def echo(task_input):
            return TaskOutput.success(task_input)

        registry.register(make_config("echo"), echo)

        assert registry.exists("echo")
        assert "echo" in registry
        assert len(registry) == 1
        assert registry.get("echo") is echo
        assert registry.get_config("echo").id == "echo"
        assert registry.get("missing") is None
        assert registry.get_config("missing") is None

    def test_register_replaces_existing(self):
        """Test that re-registering a type replaces the executor."""
        registry = TaskRegistry()
        registry.register(make_config("task"), lambda task_input: TaskOutput.success(1))
        registry.register(make_config("task"), lambda task_input: TaskOutput.success(2))

        assert len(registry) == 1
        assert registry.execute("task", {}).data == 2

    def test_register_rejects_invalid_entries(self):
        """Test that empty ids and non-callable executors are rejected."""
        registry = TaskRegistry()

        with pytest.raises(TaskRegistryError):
            registry.register(make_config(""), lambda task_input: TaskOutput.success())

        with pytest.raises(TaskRegistryError):
            registry.register(make_config("bad"), "not callable")

        assert len(registry) == 0

    def test_unregister(self):
        registry = TaskRegistry()
        registry.register(make_config("task"), lambda task_input: TaskOutput.success())

        assert registry.unregister("task") is True
        assert registry.unregister("task") is False
        assert "task" not in registry

    def test_execute_unknown_type(self):
        """Test that an unknown task type yields a failure output."""
        output = TaskRegistry().execute("nope", {})

        assert not output.is_success
        assert output.error == "Unknown task type: nope"

    def test_execute_contains_executor_exceptions(self):
        """Test that executor exceptions become failure outputs."""
        registry = TaskRegistry()

        def boom(task_input):
            raise RuntimeError("kaput")

        registry.register(make_config("boom"), boom)
        output = registry.execute("boom", {})

        assert output.error == "Task 'boom' raised RuntimeError: kaput"

    def test_execute_rejects_invalid_return_value(self):
        registry = TaskRegistry()
        registry.register(make_config("bad"), lambda task_input: {"error": ""})

        output = registry.execute("bad", {})

        assert output.error == "Task 'bad' returned an invalid output"

    def test_builtin_tasks_grouped_by_category(self, task_registry):
        """Test listing the built-in task types by category."""
        grouped = task_registry.list_by_category()

        assert set(grouped) == {"trigger", "action", "condition", "transform"}
        assert [config.id for config in grouped["trigger"]] == ["schedule-trigger"]
        assert [config.id for config in grouped["action"]] == [
            "aliyun-sms", "delay", "http-request", "log", "send-email"
        ]
        assert [config.id for config in grouped["condition"]] == ["if-condition"]
        assert [config.id for config in grouped["transform"]] == [
            "aggregate", "data-transform", "filter", "json-parse"
        ]

    def test_concurrent_registration_and_lookup(self):
        """Test that readers always see a consistent table during writes."""
        registry = TaskRegistry()
        errors = []

        def writer(index):
            registry.register(make_config(f"task-{index}"), lambda task_input: TaskOutput.success(index))

        def reader():
            for _ in range(200):
                configs = registry.list_configs()
                if len(configs) != len({config.id for config in configs}):
                    errors.append("inconsistent snapshot")

        threads = [threading.Thread(target=writer, args=(i,)) for i in range(50)]
        threads += [threading.Thread(target=reader) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert len(registry) == 50


class TestGraphManager:
    """Test GraphManager ordering and validation."""

    def test_sort_linear_chain(self, graph_manager):
        """Test that dependencies run first regardless of declaration order."""
        order = graph_manager.sort(nodes_of("C", "B", "A"), edges_of(("A", "B"), ("B", "C")))

        assert order == ["A", "B", "C"]

    def test_sort_independent_nodes_keep_declaration_order(self, graph_manager):
        assert graph_manager.sort(nodes_of("x", "a", "m"), []) == ["x", "a", "m"]

    def test_sort_breaks_ties_by_declaration_order(self, graph_manager):
        """Test that nodes becoming ready together follow declaration order."""
        nodes = nodes_of("A", "C", "B", "D")
        edges = edges_of(("A", "B"), ("A", "C"), ("B", "D"), ("C", "D"))

        assert graph_manager.sort(nodes, edges) == ["A", "C", "B", "D"]

    def test_sort_respects_every_edge(self, graph_manager):
        """Test that each edge's source precedes its target."""
        nodes = nodes_of("n5", "n3", "n1", "n4", "n2", "n0")
        edges = edges_of(
            ("n0", "n1"), ("n0", "n2"), ("n1", "n3"), ("n2", "n3"),
            ("n3", "n4"), ("n1", "n5"), ("n4", "n5"),
        )

        order = graph_manager.sort(nodes, edges)

        assert sorted(order) == sorted(node.id for node in nodes)
        for edge in edges:
            assert order.index(edge.source) < order.index(edge.target)

    def test_sort_is_deterministic(self, graph_manager):
        nodes = nodes_of("A", "B", "C", "D")
        edges = edges_of(("A", "D"), ("B", "D"), ("C", "D"))

        first = graph_manager.sort(nodes, edges)
        assert all(graph_manager.sort(nodes, edges) == first for _ in range(10))

    def test_sort_detects_cycle(self, graph_manager):
        """Test that a cycle leaves its nodes out of the order."""
        nodes = nodes_of("A", "B", "C")
        edges = edges_of(("A", "B"), ("B", "A"))

        assert graph_manager.sort(nodes, edges) == ["C"]
        assert graph_manager.has_cycle(make_workflow(
            [("A", "noop", {}), ("B", "noop", {}), ("C", "noop", {})],
            [("A", "B"), ("B", "A")]
        ))

    def test_self_loop_is_a_cycle(self, graph_manager):
        workflow = make_workflow([("A", "noop", {})], [("A", "A")])

        assert graph_manager.has_cycle(workflow)

    def test_get_predecessors_deduplicates_in_edge_order(self, graph_manager):
        edges = edges_of(("B", "C"), ("A", "C"), ("B", "C"), ("C", "D"))

        assert graph_manager.get_predecessors("C", edges) == ["B", "A"]
        assert graph_manager.get_predecessors("B", edges) == []

    def test_validate_valid_workflow(self, graph_manager):
        workflow = make_workflow([("A", "log", {}), ("B", "log", {})], [("A", "B")])

        result = graph_manager.validate_workflow(workflow)

        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_validate_reports_structural_errors(self, graph_manager):
        """Test duplicate node ids and dangling edges."""
        workflow = make_workflow(
            [("A", "log", {}), ("A", "log", {}), ("B", "log", {})],
            [("A", "B"), ("B", "ghost"), ("phantom", "A")]
        )

        result = graph_manager.validate_workflow(workflow)

        assert not result.is_valid
        assert "Duplicate node IDs: A" in result.errors
        assert "Edge references non-existent target node: ghost" in result.errors
        assert "Edge references non-existent source node: phantom" in result.errors

    def test_validate_reports_warnings(self, graph_manager):
        workflow = make_workflow(
            [("A", "log", {}), ("B", "log", {}), ("C", "log", {})],
            [("A", "B"), ("A", "B")]
        )

        result = graph_manager.validate_workflow(workflow)

        assert result.is_valid
        assert "Duplicate edge: A -> B" in result.warnings
        assert "Isolated nodes detected: C" in result.warnings


class TestInputComposer:
    """Test input composition from config and predecessor outputs."""

    def test_no_predecessors_returns_config_copy(self):
        config = {"message": "hi", "nested": {"a": 1}}

        task_input = compose_input("A", config, [], {})

        assert task_input == config
        assert PREVIOUS_KEY not in task_input
        task_input["nested"]["a"] = 2
        assert config["nested"]["a"] == 1

    def test_single_predecessor_is_flattened_without_overriding_config(self):
        """Test that predecessor fields fill in keys the config does not set."""
        prior = {"A": TaskOutput.success({"message": "from A", "count": 2})}

        task_input = compose_input("B", {"message": "hi"}, edges_of(("A", "B")), prior)

        assert task_input["message"] == "hi"
        assert task_input["count"] == 2
        assert task_input[PREVIOUS_KEY] == {
            "A": {"error": "", "data": {"message": "from A", "count": 2}}
        }

    def test_multiple_predecessors_are_not_flattened(self):
        prior = {
            "A": TaskOutput.success({"x": 1}),
            "B": TaskOutput.success({"y": 2}),
        }

        task_input = compose_input("C", {}, edges_of(("A", "C"), ("B", "C")), prior)

        assert "x" not in task_input
        assert "y" not in task_input
        assert list(task_input[PREVIOUS_KEY]) == ["A", "B"]
        assert task_input[PREVIOUS_KEY]["B"]["data"] == {"y": 2}

    def test_non_mapping_data_is_not_flattened(self):
        prior = {"A": TaskOutput.success([1, 2, 3])}

        task_input = compose_input("B", {"k": "v"}, edges_of(("A", "B")), prior)

        assert task_input == {"k": "v", PREVIOUS_KEY: {"A": {"error": "", "data": [1, 2, 3]}}}

    def test_previous_key_overrides_config(self):
        prior = {"A": TaskOutput.success(None)}

        task_input = compose_input("B", {PREVIOUS_KEY: "user value"}, edges_of(("A", "B")), prior)

        assert task_input[PREVIOUS_KEY] == {"A": {"error": "", "data": None}}

    def test_unrecorded_predecessor_is_omitted(self):
        task_input = compose_input("B", {}, edges_of(("A", "B")), {})

        assert task_input == {PREVIOUS_KEY: {}}

    def test_recorded_outputs_are_not_shared(self):
        """Test that mutating the composed input leaves recorded outputs intact."""
        prior = {"A": TaskOutput.success({"items": [1, 2]})}

        task_input = compose_input("B", {}, edges_of(("A", "B")), prior)
        task_input["items"].append(3)
        task_input[PREVIOUS_KEY]["A"]["data"]["items"].append(4)

        assert prior["A"].data == {"items": [1, 2]}

    def test_first_previous_data(self):
        assert first_previous_data({}) is None
        assert first_previous_data({PREVIOUS_KEY: "junk"}) is None
        assert first_previous_data({
            PREVIOUS_KEY: {"A": {"error": "", "data": {"v": 1}}, "B": {"error": "", "data": 2}}
        }) == {"v": 1}


class TestExecutionEngine:
    """Test ExecutionEngine workflow runs."""

    def test_delay_then_log_succeeds(self, execution_engine):
        """Test a two-node run with the built-in tasks."""
        workflow = make_workflow(
            [("A", "delay", {"seconds": 0}), ("B", "log", {"message": "done"})],
            [("A", "B")]
        )

        result = execution_engine.run(workflow)

        assert result.status == ExecutionStatusEnum.SUCCESS
        assert result.error is None
        assert [(entry.node_id, entry.status) for entry in result.logs] == [
            ("A", NodeStatus.RUNNING), ("A", NodeStatus.SUCCESS),
            ("B", NodeStatus.RUNNING), ("B", NodeStatus.SUCCESS),
        ]
        assert result.final_output.data["message"] == "done"
        assert result.start_time <= result.end_time

        log_input = result.logs[3].input
        assert log_input["delayed"] is True
        assert log_input[PREVIOUS_KEY]["A"]["data"]["seconds"] == 0

    def test_log_entries_carry_details(self, execution_engine):
        workflow = make_workflow([("A", "log", {"message": "hello"})])
        workflow.nodes[0].label = "Say hello"

        result = execution_engine.run(workflow)

        running, finished = result.logs
        assert running.message == "Starting task: Say hello"
        assert running.input is None and running.output is None
        assert finished.message == "Task succeeded: Say hello"
        assert finished.node_name == "Say hello"
        assert finished.input == {"message": "hello"}
        assert finished.output.is_success
        assert finished.duration >= 0

    def test_failure_aborts_run(self, execution_engine):
        """Test that the first failing node stops the run."""
        workflow = make_workflow(
            [("A", "http-request", {"url": ""}), ("B", "log", {"message": "never"})],
            [("A", "B")]
        )

        result = execution_engine.run(workflow)

        assert result.status == ExecutionStatusEnum.ERROR
        assert result.error == 'Task "A" failed: URL cannot be empty'
        assert [entry.node_id for entry in result.logs] == ["A", "A"]
        assert result.logs[-1].status == NodeStatus.ERROR
        assert result.logs[-1].message == "Task failed: URL cannot be empty"
        assert result.final_output.error == "URL cannot be empty"

    def test_cycle_is_rejected_before_execution(self, execution_engine):
        workflow = make_workflow(
            [("A", "log", {}), ("B", "log", {})],
            [("A", "B"), ("B", "A")]
        )

        result = execution_engine.run(workflow)

        assert result.status == ExecutionStatusEnum.ERROR
        assert result.error == CYCLE_ERROR_MESSAGE
        assert result.logs == []
        assert result.final_output is None

    def test_invalid_workflow_is_rejected(self, execution_engine):
        workflow = make_workflow([("A", "log", {})], [("A", "ghost")])

        result = execution_engine.run(workflow)

        assert result.status == ExecutionStatusEnum.ERROR
        assert result.error.startswith("Invalid workflow: ")
        assert "ghost" in result.error
        assert result.logs == []

    def test_unknown_task_type_fails_node(self, execution_engine):
        result = execution_engine.run(make_workflow([("A", "teleport", {})]))

        assert result.status == ExecutionStatusEnum.ERROR
        assert result.error == 'Task "A" failed: Unknown task type: teleport'

    def test_empty_workflow_succeeds(self, execution_engine):
        result = execution_engine.run(make_workflow([]))

        assert result.status == ExecutionStatusEnum.SUCCESS
        assert result.logs == []
        assert result.final_output is None

    def test_nodes_run_in_dependency_order(self):
        """Test execution order and predecessor data flow with recording tasks."""
        registry = TaskRegistry()
        executed = []

        def record(task_input):
            executed.append(task_input["name"])
            seen = sorted(task_input.get(PREVIOUS_KEY, {}))
            return TaskOutput.success({"seen": seen})

        registry.register(make_config("record"), record)
        engine = ExecutionEngine(registry)
        workflow = make_workflow(
            [("D", "record", {"name": "D"}), ("B", "record", {"name": "B"}),
             ("A", "record", {"name": "A"}), ("C", "record", {"name": "C"})],
            [("A", "B"), ("A", "C"), ("B", "D"), ("C", "D")]
        )

        result = engine.run(workflow)

        assert result.status == ExecutionStatusEnum.SUCCESS
        assert executed == ["A", "B", "C", "D"]
        assert result.final_output.data == {"seen": ["B", "C"]}

    def test_task_cannot_mutate_workflow(self):
        registry = TaskRegistry()

        def mutate(task_input):
            task_input["items"].append("extra")
            task_input["injected"] = True
            return TaskOutput.success(task_input["items"])

        registry.register(make_config("mutate"), mutate)
        workflow = make_workflow([("A", "mutate", {"items": ["a"]})])

        result = ExecutionEngine(registry).run(workflow)

        assert result.final_output.data == ["a", "extra"]
        assert workflow.nodes[0].config == {"items": ["a"]}
        assert result.logs[-1].input == {"items": ["a"]}

    def test_runs_are_idempotent(self, execution_engine):
        """Test that running the same workflow twice yields the same trace shape."""
        workflow = make_workflow(
            [("A", "json-parse", {"data": "{\"v\": 1}"}), ("B", "log", {"level": "debug"})],
            [("A", "B")]
        )

        first = execution_engine.run(workflow)
        second = execution_engine.run(workflow)

        assert first.status == second.status == ExecutionStatusEnum.SUCCESS
        assert [(e.node_id, e.status, e.message) for e in first.logs] == \
            [(e.node_id, e.status, e.message) for e in second.logs]
        assert first.final_output.data["level"] == second.final_output.data["level"] == "debug"

    def test_concurrent_runs_are_isolated(self, execution_engine):
        """Test that parallel runs on one engine do not see each other's outputs."""
        def run(index):
            workflow = make_workflow(
                [("src", "json-parse", {"data": {"run": index}}), ("sink", "data-transform", {"fields": ["run"]})],
                [("src", "sink")]
            )
            return index, execution_engine.run(workflow)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(run, range(16)))

        for index, result in results:
            assert result.status == ExecutionStatusEnum.SUCCESS
            assert result.final_output.data == {"run": index}

    def test_execute_task_passthrough(self, execution_engine):
        output = execution_engine.execute_task("log", {"message": "direct"})

        assert output.is_success
        assert output.data["message"] == "direct"
        assert execution_engine.execute_task("nope", None).error == "Unknown task type: nope"
