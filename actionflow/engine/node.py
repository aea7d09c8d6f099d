"""
Node Definition for the ActionFlow engine.

A node is an atomic unit of work with a fixed lifecycle:

    prepare -> execute (retried, then fallback) -> settle

``prepare`` reads the shared context, ``execute`` does the fallible work,
``fallback`` recovers once retries run out, and ``settle`` writes results
back to the context and returns the action that picks the next node.
Batch nodes use ``execute_item``/``fallback_item`` instead of
``execute``/``fallback``.

Every extension point may be written as a plain function or a coroutine.
"""

from typing import Any, Mapping, Optional, Union
import logging

from actionflow.engine.context import Params, SharedContext, merge_params
from actionflow.engine.events import EventSink, NodeFinished, NodeStarted, SuccessorOverwritten, current_sink
from actionflow.engine.graph import DEFAULT_ACTION, SuccessorMap, normalize_action
from actionflow.engine.retry import RetryPolicy
from actionflow.engine.strategies import (
    ExecutionMode,
    ExecutionStrategy,
    call_handler,
    resolve_execution,
)


logger = logging.getLogger(__name__)


class Node:
    """
    A unit of work in a workflow graph.

    Subclasses override any of the extension points; the defaults do
    nothing and return None, except ``fallback``/``fallback_item`` which
    re-raise the error and ``settle`` which returns the default action.

    Args:
        max_retries: Total execution attempts (minimum 1)
        wait_seconds: Fixed delay between attempts (minimum 0)
        strategy: Execution mode or strategy instance (defaults to single)
        name: Display name (defaults to the class name)
        params: Default parameters
        events: Event sink for this node (defaults to the run's sink)
    """

    default_strategy: Union[str, ExecutionMode] = ExecutionMode.SINGLE

    def __init__(
        self,
        max_retries: int = 1,
        wait_seconds: float = 0,
        strategy: Union[str, ExecutionMode, ExecutionStrategy, None] = None,
        name: Optional[str] = None,
        params: Optional[Mapping[str, Any]] = None,
        events: Optional[EventSink] = None,
    ):
        self.retry = RetryPolicy(max_retries, wait_seconds)
        self.strategy = resolve_execution(strategy if strategy is not None else self.default_strategy)
        self.name = name or type(self).__name__
        self.params: Params = dict(params or {})
        self.successors = SuccessorMap()
        self.events = events

    @property
    def max_retries(self) -> int:
        return self.retry.max_retries

    @property
    def wait_seconds(self) -> float:
        return self.retry.wait_seconds

    def emit(self, event: Any) -> None:
        """Send an event to this node's sink. A broken sink only logs."""
        try:
            (self.events or current_sink()).emit(event)
        except Exception as e:
            logger.warning(f"Event sink failed on {type(event).__name__}: {e}")

    # ------------------------------------------------------------
    # Graph building
    # ------------------------------------------------------------

    def set_params(self, params: Mapping[str, Any]) -> "Node":
        """Replace the default parameters. Returns self for chaining."""
        self.params = dict(params or {})
        return self

    def connect(self, node: "Node", action: str = DEFAULT_ACTION) -> "Node":
        """
        Make ``node`` the successor for ``action``.

        Re-registering an action replaces the previous successor and emits
        a warning event.

        Returns:
            ``node``, so chains read left to right
        """
        if not isinstance(action, str) or not action:
            raise TypeError("Action must be a non-empty string")
        previous = self.successors.register(action, node)
        if previous is not None:
            self.emit(SuccessorOverwritten(
                node=self.name,
                action=action,
                previous=previous.name,
                replacement=node.name,
            ))
        return node

    def connect_action(self, action: str, node: "Node") -> "Node":
        """Make ``node`` the successor for a named action."""
        return self.connect(node, action)

    def __rshift__(self, other: "Node") -> "Node":
        return self.connect(other)

    def __sub__(self, action: str) -> "_ActionTransition":
        if isinstance(action, str):
            return _ActionTransition(self, action)
        raise TypeError("Action must be a string")

    # ------------------------------------------------------------
    # Extension points
    # ------------------------------------------------------------

    async def prepare(self, shared: SharedContext, params: Params) -> Any:
        return None

    async def execute(self, prepared: Any, params: Params, attempt: int) -> Any:
        return None

    async def fallback(self, prepared: Any, error: Exception, params: Params, attempt: int) -> Any:
        raise error

    async def execute_item(self, item: Any, params: Params, attempt: int) -> Any:
        return None

    async def fallback_item(self, item: Any, error: Exception, params: Params, attempt: int) -> Any:
        raise error

    async def settle(self, shared: SharedContext, prepared: Any, result: Any, params: Params) -> Optional[str]:
        return DEFAULT_ACTION

    # ------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------

    async def run(self, shared: SharedContext, params: Optional[Mapping[str, Any]] = None) -> str:
        """
        Run the full lifecycle once.

        Args:
            shared: The shared context
            params: Runtime parameters, merged over this node's defaults

        Returns:
            The action chosen by ``settle``; None or "" become "default"
        """
        merged = merge_params(self.params, params)
        self.emit(NodeStarted(node=self.name))
        prepared = await call_handler(self.prepare, shared, merged)
        result = await self.strategy.execute(self, prepared, merged)
        action = normalize_action(await call_handler(self.settle, shared, prepared, result, merged))
        self.emit(NodeFinished(node=self.name, action=action))
        return action

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name='{self.name}', "
            f"strategy={type(self.strategy).__name__}, "
            f"successors={self.successors.actions()})"
        )


class _ActionTransition:
    """Intermediate for ``node - "action" >> other``."""

    def __init__(self, source: Node, action: str):
        self.source = source
        self.action = action

    def __rshift__(self, target: Node) -> Node:
        return self.source.connect(target, self.action)


class BatchNode(Node):
    """Node whose ``prepare`` returns items processed one by one."""

    default_strategy = ExecutionMode.SEQUENTIAL_BATCH


class ParallelBatchNode(Node):
    """Node whose ``prepare`` returns items processed concurrently."""

    default_strategy = ExecutionMode.PARALLEL_BATCH
