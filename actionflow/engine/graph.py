"""
Successor maps and graph inspection.

A workflow graph is not stored in one place: every node owns a
``SuccessorMap`` from action labels to the next node, and a flow only
knows its start node. The helpers in this module walk those maps to
describe or draw the graph.
"""

from typing import Any, Dict, Iterator, List, Optional, Tuple


# Reserved label for "no particular action"
DEFAULT_ACTION = "default"


def normalize_action(action: Optional[str]) -> str:
    """Map an absent or empty action to the default label."""
    return action or DEFAULT_ACTION


class SuccessorMap:
    """
    Action label -> next node, owned by a single node.

    Registering an action twice replaces the earlier target; the caller
    decides how to report that.
    """

    def __init__(self):
        self._successors: Dict[str, Any] = {}

    def register(self, action: str, node: Any) -> Optional[Any]:
        """
        Register ``node`` for ``action``.

        Returns:
            The node previously registered for ``action``, if any
        """
        previous = self._successors.get(action)
        self._successors[action] = node
        return previous

    def resolve(self, action: Optional[str]) -> Optional[Any]:
        """Return the successor for ``action``, or None when there is none."""
        return self._successors.get(normalize_action(action))

    def actions(self) -> List[str]:
        return list(self._successors.keys())

    def items(self) -> List[Tuple[str, Any]]:
        return list(self._successors.items())

    def __contains__(self, action: str) -> bool:
        return action in self._successors

    def __len__(self) -> int:
        return len(self._successors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._successors)

    def __repr__(self) -> str:
        targets = {a: getattr(n, "name", type(n).__name__) for a, n in self._successors.items()}
        return f"SuccessorMap({targets})"


# ============================================================
# Inspection
# ============================================================

def _flow_start(node: Any) -> Optional[Any]:
    """The start node if ``node`` is a flow, else None."""
    start = getattr(node, "start", None)
    return start if isinstance(getattr(start, "successors", None), SuccessorMap) else None


def _children(node: Any) -> List[Tuple[str, Any]]:
    """Outgoing edges of ``node``; a flow also points at its start node."""
    edges = []
    start = _flow_start(node)
    if start is not None:
        edges.append(("__start__", start))
    edges.extend(node.successors.items())
    return edges


def reachable_nodes(start: Any) -> List[Any]:
    """
    All nodes reachable from ``start``, in discovery order.

    Nested flows are entered through their start node. Cycles are
    visited once.
    """
    seen: Dict[int, Any] = {}
    to_visit = [start]
    while to_visit:
        node = to_visit.pop()
        if id(node) in seen:
            continue
        seen[id(node)] = node
        # reversed so the first registered action is explored first
        for _, child in reversed(_children(node)):
            if id(child) not in seen:
                to_visit.append(child)
    return list(seen.values())


def _labels(nodes: List[Any]) -> Dict[int, str]:
    """Give every node a unique label based on its name."""
    labels: Dict[int, str] = {}
    used: Dict[str, int] = {}
    for node in nodes:
        base = getattr(node, "name", type(node).__name__)
        count = used.get(base, 0)
        used[base] = count + 1
        labels[id(node)] = base if count == 0 else f"{base}_{count + 1}"
    return labels


def describe_graph(start: Any) -> Dict[str, Any]:
    """
    Describe the graph reachable from ``start`` as a plain dictionary.

    Returns:
        ``{"start": label, "nodes": {label: {...}}}`` where each node entry
        lists its type, strategy, default params and successors by label,
        plus retry settings for plain nodes or the start label for flows.
    """
    nodes = reachable_nodes(start)
    labels = _labels(nodes)
    description: Dict[str, Any] = {}
    for node in nodes:
        entry: Dict[str, Any] = {
            "type": type(node).__name__,
            "strategy": type(getattr(node, "traversal", None) or node.strategy).__name__,
            "params": dict(node.params),
            "successors": {action: labels[id(target)] for action, target in node.successors.items()},
        }
        if _flow_start(node) is not None:
            # flows never execute, so they have no retry settings
            entry["start"] = labels[id(node.start)]
        else:
            entry["max_retries"] = node.retry.max_retries
            entry["wait_seconds"] = node.retry.wait_seconds
        description[labels[id(node)]] = entry
    return {"start": labels[id(start)], "nodes": description}


def to_mermaid(start: Any) -> str:
    """Generate a Mermaid diagram of the graph reachable from ``start``."""
    nodes = reachable_nodes(start)
    labels = _labels(nodes)
    ids = {id(node): f"n{index}" for index, node in enumerate(nodes)}
    lines = ["graph TD"]

    for node in nodes:
        label = labels[id(node)]
        if _flow_start(node) is not None:
            lines.append(f'    {ids[id(node)]}[["{label}"]]')
        else:
            lines.append(f'    {ids[id(node)]}["{label}"]')

    for node in nodes:
        if _flow_start(node) is not None:
            lines.append(f"    {ids[id(node)]} -.->|start| {ids[id(node.start)]}")
        for action, target in node.successors.items():
            lines.append(f"    {ids[id(node)]} -->|{action}| {ids[id(target)]}")

    return "\n".join(lines)
