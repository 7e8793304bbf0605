"""Graph Manager for workflow validation and dependency ordering."""

from collections import deque
from typing import Dict, List, Sequence, Set

from ..models.core import ValidationResult, Workflow, WorkflowEdge, WorkflowNode
from .logging import get_logger

logger = get_logger(__name__)


class GraphManager:
    """Validates workflow graphs and turns them into a linear execution order."""

    def sort(self, nodes: Sequence[WorkflowNode], edges: Sequence[WorkflowEdge]) -> List[str]:
        """
        Topologically sort nodes using Kahn's algorithm.

        Ties are broken by declaration order: the initial queue holds the
        in-degree-0 nodes in the order they were declared, and nodes that
        become ready while processing one node are enqueued in declaration
        order as well. Edges touching unknown node ids are ignored.

        Args:
            nodes: Workflow nodes in declaration order
            edges: Dependency edges

        Returns:
            List[str]: Node ids in execution order. Shorter than ``nodes``
            when the graph contains a cycle.
        """
        position: Dict[str, int] = {}
        for index, node in enumerate(nodes):
            position.setdefault(node.id, index)

        successors: Dict[str, List[str]] = {node_id: [] for node_id in position}
        in_degree: Dict[str, int] = {node_id: 0 for node_id in position}

        for edge in edges:
            if edge.source not in position or edge.target not in position:
                continue
            successors[edge.source].append(edge.target)
            in_degree[edge.target] += 1

        queue = deque(node_id for node_id in position if in_degree[node_id] == 0)
        order: List[str] = []

        while queue:
            current = queue.popleft()
            order.append(current)

            ready = []
            for neighbor in successors[current]:
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    ready.append(neighbor)
            queue.extend(sorted(ready, key=position.__getitem__))

        if len(order) < len(position):
            blocked = sorted(set(position) - set(order), key=position.__getitem__)
            logger.debug(f"Cycle detected, unorderable nodes: {', '.join(blocked)}")

        return order

    def has_cycle(self, workflow: Workflow) -> bool:
        """Check whether the workflow's dependency graph contains a cycle."""
        return len(self.sort(workflow.nodes, workflow.edges)) != len({node.id for node in workflow.nodes})

    @staticmethod
    def get_predecessors(node_id: str, edges: Sequence[WorkflowEdge]) -> List[str]:
        """Return the sources of edges targeting ``node_id``, in edge order, without duplicates."""
        predecessors: List[str] = []
        for edge in edges:
            if edge.target == node_id and edge.source not in predecessors:
                predecessors.append(edge.source)
        return predecessors

    def validate_workflow(self, workflow: Workflow) -> ValidationResult:
        """
        Validate a workflow for structural correctness.

        Duplicate node ids and edges referencing unknown nodes are errors.
        Isolated nodes and duplicate edges are reported as warnings. Cycles
        are left to :meth:`sort`.

        Args:
            workflow: The workflow to validate

        Returns:
            ValidationResult: Validation results with errors and warnings
        """
        errors: List[str] = []
        warnings: List[str] = []

        self._validate_unique_ids(workflow, errors)
        self._validate_edge_references(workflow, errors)
        self._validate_duplicate_edges(workflow, warnings)
        self._validate_isolated_nodes(workflow, warnings)

        result = ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)
        logger.debug(f"Workflow validation completed. Valid: {result.is_valid}, "
                     f"Errors: {len(errors)}, Warnings: {len(warnings)}")
        return result

    def _validate_unique_ids(self, workflow: Workflow, errors: List[str]):
        seen: Set[str] = set()
        duplicates: List[str] = []
        for node in workflow.nodes:
            if node.id in seen and node.id not in duplicates:
                duplicates.append(node.id)
            seen.add(node.id)
        if duplicates:
            errors.append(f"Duplicate node IDs: {', '.join(duplicates)}")

    def _validate_edge_references(self, workflow: Workflow, errors: List[str]):
        node_ids = {node.id for node in workflow.nodes}
        for edge in workflow.edges:
            if edge.source not in node_ids:
                errors.append(f"Edge references non-existent source node: {edge.source}")
            if edge.target not in node_ids:
                errors.append(f"Edge references non-existent target node: {edge.target}")

    def _validate_duplicate_edges(self, workflow: Workflow, warnings: List[str]):
        seen = set()
        for edge in workflow.edges:
            key = (edge.source, edge.target)
            if key in seen:
                warnings.append(f"Duplicate edge: {edge.source} -> {edge.target}")
            seen.add(key)

    def _validate_isolated_nodes(self, workflow: Workflow, warnings: List[str]):
        if len(workflow.nodes) < 2:
            return
        connected = set()
        for edge in workflow.edges:
            connected.add(edge.source)
            connected.add(edge.target)
        isolated = [node.id for node in workflow.nodes if node.id not in connected]
        if isolated:
            warnings.append(f"Isolated nodes detected: {', '.join(isolated)}")
