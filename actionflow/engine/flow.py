"""
Flow orchestration.

A flow is itself a node: it has the same ``prepare``/``settle`` extension
points and the same ``run`` signature, so it can be wired into another
flow's graph. Instead of executing anything directly it walks the graph
from its start node, running each node with the flow's parameters and
following the action each node returns, until no successor matches.
"""

from typing import Any, Mapping, Optional, Union

from actionflow.engine.context import ContextSchema, Params, SharedContext, merge_params
from actionflow.engine.errors import FlowConfigurationError
from actionflow.engine.events import (
    ActionUnmatched,
    BranchStarted,
    EventSink,
    FlowFinished,
    FlowStarted,
    Transition,
)
from actionflow.engine.graph import describe_graph, normalize_action, to_mermaid
from actionflow.engine.node import Node
from actionflow.engine.strategies import (
    TraversalMode,
    TraversalStrategy,
    call_handler,
    resolve_traversal,
)


class Flow(Node):
    """
    Composite node that traverses a graph of nodes.

    Every node visited in one traversal receives the flow's merged
    parameters as its runtime parameters; each node still merges its own
    defaults beneath them.

    Args:
        start: First node of the graph
        traversal: Traversal mode or strategy instance (defaults to single)
        name: Display name (defaults to the class name)
        params: Default parameters
        events: Event sink for this flow
        context_schema: Optional keys checked when ``run`` starts

    Usage:
        fetch >> parse
        parse - "retry" >> fetch
        flow = Flow(fetch)
        action = await flow.run(shared, {"url": "..."})
    """

    default_traversal: Union[str, TraversalMode] = TraversalMode.SINGLE

    def __init__(
        self,
        start: Optional[Node] = None,
        traversal: Union[str, TraversalMode, TraversalStrategy, None] = None,
        name: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        events: Optional[EventSink] = None,
        context_schema: Optional[ContextSchema] = None,
    ):
        if start is None:
            raise FlowConfigurationError(f"{name or type(self).__name__} must have a start node")
        super().__init__(name=name, params=params, events=events)
        self.start = start
        self.traversal = resolve_traversal(traversal if traversal is not None else self.default_traversal)
        self.context_schema = context_schema

    async def execute(self, prepared: Any, params: Params, attempt: int) -> Any:
        raise FlowConfigurationError(f"Flow ({self.name}) cannot execute")

    def next_node(self, current: Node, action: Optional[str]) -> Optional[Node]:
        """
        Resolve the successor of ``current`` for ``action``.

        A miss ends the traversal. It is reported only when ``current`` has
        successors for other actions; a node with none is a normal end.
        """
        action = normalize_action(action)
        successor = current.successors.resolve(action)
        if successor is None and len(current.successors) > 0:
            self.emit(ActionUnmatched(
                flow=self.name,
                node=current.name,
                action=action,
                available=tuple(current.successors.actions()),
            ))
        return successor

    async def orchestrate(self, shared: SharedContext, params: Params, branch: Optional[int] = None) -> None:
        """Walk the graph once from the start node with ``params``."""
        if branch is not None:
            self.emit(BranchStarted(flow=self.name, branch=branch, params=dict(params)))
        current: Optional[Node] = self.start
        while current is not None:
            action = await current.run(shared, params)
            successor = self.next_node(current, action)
            if successor is not None:
                self.emit(Transition(
                    flow=self.name,
                    source=current.name,
                    action=action,
                    target=successor.name,
                ))
            current = successor

    async def run(self, shared: SharedContext, params: Optional[Mapping[str, Any]] = None) -> str:
        """
        Prepare, traverse, settle.

        ``settle`` receives None as the execution result: a flow never
        produces one of its own.
        """
        merged = merge_params(self.params, params)
        if self.context_schema is not None:
            self.context_schema.validate_context(shared, self.name)
        self.emit(FlowStarted(flow=self.name))
        prepared = await call_handler(self.prepare, shared, merged)
        await self.traversal.traverse(self, shared, prepared, merged)
        action = normalize_action(await call_handler(self.settle, shared, prepared, None, merged))
        self.emit(FlowFinished(flow=self.name, action=action))
        return action

    def describe(self) -> dict:
        """Plain-dict description of the graph reachable from this flow."""
        return describe_graph(self)

    def to_mermaid(self) -> str:
        return to_mermaid(self)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name='{self.name}', start='{self.start.name}', "
            f"traversal={type(self.traversal).__name__})"
        )


class BatchFlow(Flow):
    """
    Flow whose ``prepare`` returns parameter sets; the graph is walked
    once per set, in order.
    """

    default_traversal = TraversalMode.SEQUENTIAL_BATCH


class ParallelBatchFlow(Flow):
    """
    Flow whose ``prepare`` returns parameter sets; all walks run
    concurrently against the same shared context.
    """

    default_traversal = TraversalMode.PARALLEL_BATCH
