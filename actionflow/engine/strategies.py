"""
Execution strategies.

A node describes *what* to do through its extension points; a strategy
decides *how* the execute step is driven:

- ``SingleExecution``: one retry-wrapped ``execute`` call
- ``SequentialBatchExecution``: one retry loop per item, in order
- ``ParallelBatchExecution``: one retry loop per item, all at once

Flows pick a traversal strategy the same way:

- ``SingleTraversal``: walk the graph once
- ``SequentialBatchTraversal``: walk it once per parameter set, in order
- ``ParallelBatchTraversal``: walk it once per parameter set, all at once
"""

from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Protocol, Union
import asyncio
import functools
import inspect

from actionflow.engine.errors import FlowConfigurationError


class ExecutionMode(str, Enum):
    """How a node drives its execute step."""
    SINGLE = "single"
    SEQUENTIAL_BATCH = "sequential_batch"
    PARALLEL_BATCH = "parallel_batch"


class TraversalMode(str, Enum):
    """How a flow walks its graph."""
    SINGLE = "single"
    SEQUENTIAL_BATCH = "sequential_batch"
    PARALLEL_BATCH = "parallel_batch"


# ============================================================
# Helpers
# ============================================================

async def call_handler(func, *args):
    """
    Call an extension point, sync or async.

    Async callables are awaited directly. Sync ones run on a thread of their
    own so they do not block the event loop, and so parallel batches of sync
    handlers are not capped by the size of a shared pool.
    """
    if inspect.iscoroutinefunction(func):
        return await func(*args)
    loop = asyncio.get_running_loop()
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="actionflow-handler")
    try:
        result = await loop.run_in_executor(executor, functools.partial(func, *args))
    finally:
        executor.shutdown(wait=False)
    if inspect.isawaitable(result):
        return await result
    return result


async def iterate_items(source: Any) -> AsyncIterator[Any]:
    """Yield items from either an async or a sync iterable."""
    if hasattr(source, "__aiter__"):
        async for item in source:
            yield item
    else:
        for item in source:
            yield item


async def collect_items(source: Any) -> List[Any]:
    """Drain an async or sync iterable into a list."""
    return [item async for item in iterate_items(source)]


# ============================================================
# Node Execution Strategies
# ============================================================

class ExecutionStrategy(Protocol):
    async def execute(self, node: Any, prepared: Any, params: Dict[str, Any]) -> Any:
        ...


class SingleExecution:
    """Retry-wrapped ``execute`` with ``fallback`` on exhaustion."""

    async def execute(self, node, prepared, params):
        return await node.retry.call(
            lambda attempt: call_handler(node.execute, prepared, params, attempt),
            lambda error, attempt: call_handler(node.fallback, prepared, error, params, attempt),
            node.name,
            node,
        )


class SequentialBatchExecution:
    """
    Run ``execute_item`` for each prepared item, one after another.

    Each item gets its own retry loop starting at attempt 0. The result list
    follows input order. If iterating the source raises, nothing is returned.
    """

    async def _run_item(self, node, index, item, params):
        return await node.retry.call(
            lambda attempt: call_handler(node.execute_item, item, params, attempt),
            lambda error, attempt: call_handler(node.fallback_item, item, error, params, attempt),
            node.name,
            node,
            item_index=index,
        )

    async def execute(self, node, prepared, params):
        results = []
        index = 0
        async for item in iterate_items(prepared):
            results.append(await self._run_item(node, index, item, params))
            index += 1
        return results


class ParallelBatchExecution(SequentialBatchExecution):
    """
    Drain the prepared items, then run every item's retry loop concurrently.

    There is no cap on fan-out, sync handlers included. The first fallback
    failure observed is raised; the other items keep running and their
    results are dropped.
    """

    async def execute(self, node, prepared, params):
        items = await collect_items(prepared)
        if not items:
            return []
        return list(await asyncio.gather(
            *(self._run_item(node, index, item, params) for index, item in enumerate(items))
        ))


# ============================================================
# Flow Traversal Strategies
# ============================================================

class TraversalStrategy(Protocol):
    async def traverse(self, flow: Any, shared: Any, prepared: Any, params: Dict[str, Any]) -> None:
        ...


class SingleTraversal:
    """One walk of the graph with the flow's merged parameters."""

    async def traverse(self, flow, shared, prepared, params):
        await flow.orchestrate(shared, params)


class SequentialBatchTraversal:
    """
    One walk per parameter set produced by ``prepare``, in order.

    Branch parameters are merged over the flow's parameters. Each walk
    finishes before the next starts, and all walks share the same context.
    """

    async def traverse(self, flow, shared, prepared, params):
        branch = 0
        async for branch_params in iterate_items(prepared):
            await flow.orchestrate(shared, {**params, **branch_params}, branch=branch)
            branch += 1


class ParallelBatchTraversal:
    """
    Collect every parameter set from ``prepare``, then walk them all at once
    with no cap on fan-out.

    The shared context is not locked. Branches that write the same keys race.
    """

    async def traverse(self, flow, shared, prepared, params):
        branches = await collect_items(prepared)
        if not branches:
            return
        await asyncio.gather(*(
            flow.orchestrate(shared, {**params, **branch_params}, branch=index)
            for index, branch_params in enumerate(branches)
        ))


# ============================================================
# Resolution
# ============================================================

_EXECUTION = {
    ExecutionMode.SINGLE: SingleExecution,
    ExecutionMode.SEQUENTIAL_BATCH: SequentialBatchExecution,
    ExecutionMode.PARALLEL_BATCH: ParallelBatchExecution,
}

_TRAVERSAL = {
    TraversalMode.SINGLE: SingleTraversal,
    TraversalMode.SEQUENTIAL_BATCH: SequentialBatchTraversal,
    TraversalMode.PARALLEL_BATCH: ParallelBatchTraversal,
}


def resolve_execution(strategy: Union[str, ExecutionMode, ExecutionStrategy, None]) -> ExecutionStrategy:
    """Turn a mode name, a mode, or a strategy instance into a strategy."""
    if strategy is None:
        return SingleExecution()
    if isinstance(strategy, str):
        try:
            return _EXECUTION[ExecutionMode(strategy)]()
        except ValueError:
            raise FlowConfigurationError(
                f"Unknown execution mode '{strategy}'. "
                f"Available: {[m.value for m in ExecutionMode]}"
            ) from None
    if callable(getattr(strategy, "execute", None)):
        return strategy
    raise FlowConfigurationError(f"Not an execution strategy: {strategy!r}")


def resolve_traversal(strategy: Union[str, TraversalMode, TraversalStrategy, None]) -> TraversalStrategy:
    """Turn a mode name, a mode, or a strategy instance into a traversal strategy."""
    if strategy is None:
        return SingleTraversal()
    if isinstance(strategy, str):
        try:
            return _TRAVERSAL[TraversalMode(strategy)]()
        except ValueError:
            raise FlowConfigurationError(
                f"Unknown traversal mode '{strategy}'. "
                f"Available: {[m.value for m in TraversalMode]}"
            ) from None
    if callable(getattr(strategy, "traverse", None)):
        return strategy
    raise FlowConfigurationError(f"Not a traversal strategy: {strategy!r}")
