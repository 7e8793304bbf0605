"""Input composition: merges a node's static config with upstream outputs."""

import copy
from typing import Any, Dict, Mapping, Optional, Sequence

from ..models.core import TaskInput, TaskOutput, WorkflowEdge
from .graph_manager import GraphManager

# Reserved input key holding predecessor outputs, keyed by predecessor id.
PREVIOUS_KEY = "$previous"


def compose_input(
    node_id: str,
    node_config: Optional[Mapping[str, Any]],
    edges: Sequence[WorkflowEdge],
    prior_outputs: Mapping[str, TaskOutput],
) -> TaskInput:
    """
    Build the concrete input for a node.

    Precedence, lowest first: the node's static config, then the
    ``$previous`` entry, which always overwrites a config value at that key.
    With exactly one predecessor whose data is a mapping, that mapping's
    entries are also lifted to the top level for keys the config does not
    already define. With several predecessors only ``$previous`` is filled.

    The returned mapping is always fresh; neither ``node_config`` nor the
    recorded outputs are mutated, and the task cannot reach them through it.

    Args:
        node_id: ID of the node being executed
        node_config: The node's static parameters
        edges: All workflow edges
        prior_outputs: Outputs recorded so far, keyed by node id

    Returns:
        TaskInput: The composed input
    """
    task_input: Dict[str, Any] = copy.deepcopy(dict(node_config or {}))

    predecessors = GraphManager.get_predecessors(node_id, edges)
    if not predecessors:
        return task_input

    previous: Dict[str, Any] = {}
    for predecessor_id in predecessors:
        output = prior_outputs.get(predecessor_id)
        if output is not None:
            previous[predecessor_id] = {
                "error": output.error,
                "data": copy.deepcopy(output.data),
            }
    task_input[PREVIOUS_KEY] = previous

    if len(predecessors) == 1:
        output = prior_outputs.get(predecessors[0])
        if output is not None and isinstance(output.data, dict):
            for key, value in output.data.items():
                if key not in task_input:
                    task_input[key] = copy.deepcopy(value)

    return task_input


def first_previous_data(task_input: Mapping[str, Any]) -> Any:
    """Return the ``data`` of the first recorded predecessor, or None.

    Tasks that operate on "the previous step's output" fall back to this
    when no explicit source is configured.
    """
    previous = task_input.get(PREVIOUS_KEY)
    if not isinstance(previous, dict):
        return None
    for entry in previous.values():
        if isinstance(entry, dict) and "data" in entry:
            return entry["data"]
    return None
