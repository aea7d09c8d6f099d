"""
Item Pipeline Workflow.

Sample workflow exercising every part of the engine:
1. Fetch several items concurrently (parallel batch flow), retrying a
   flaky simulated API and falling back per item
2. Process the fetched items one by one (batch node), with an item-level
   fallback for items that cannot be processed
3. Write a report, or handle the empty case

```
master ──> fetch_flow ──process_results──> process ──finalize──> finalize
               │                              │
               └──empty_batch──> empty <──empty┘
```
"""

from typing import Any, Dict, List, Optional
import asyncio
import logging
import random

from actionflow.config import settings
from actionflow.engine.context import ContextSchema
from actionflow.engine.flow import Flow, ParallelBatchFlow
from actionflow.engine.graph import DEFAULT_ACTION
from actionflow.engine.node import BatchNode, Node
from actionflow.registry import flow_registry


logger = logging.getLogger(__name__)


DEFAULT_ITEM_IDS = ["A-101", "B-202", "C-303", "D-404", "E-FAIL-505"]


async def simulate_api_call(data: Dict[str, Any], fail_rate: float = 0.0) -> Dict[str, Any]:
    """Stand-in for a remote call: short random latency, random failures."""
    await asyncio.sleep(random.uniform(0.001, 0.01))
    if random.random() < fail_rate or "FAIL" in str(data.get("id", "")):
        raise ConnectionError("Simulated API failure")
    return {"success": True, "received": data}


# ============================================================
# Nodes
# ============================================================

class FetchItemNode(Node):
    """Fetch one item; the item ID comes from the branch parameters."""

    async def execute(self, prepared, params, attempt):
        item_id = params.get("item_id", "unknown")
        logger.debug(f"Fetching item {item_id} (attempt {attempt + 1})")
        result = await simulate_api_call({"id": item_id}, params.get("fail_rate", 0.0))
        return f"ItemData[{item_id}] received={result['success']}"

    async def fallback(self, prepared, error, params, attempt):
        item_id = params.get("item_id", "unknown")
        logger.warning(f"Fetch fallback for item {item_id} after attempt {attempt + 1}: {error}")
        return f"FallbackData[{item_id}]"

    async def settle(self, shared, prepared, result, params):
        shared.setdefault("items", []).append(result)
        return DEFAULT_ACTION


class ConcurrentFetchFlow(ParallelBatchFlow):
    """Runs the fetch graph once per item ID, all at the same time."""

    async def prepare(self, shared, params) -> List[Dict[str, Any]]:
        item_ids = params.get("item_ids") or shared.get("item_ids") or DEFAULT_ITEM_IDS
        logger.info(f"Preparing parallel fetch for IDs: {', '.join(item_ids)}")
        return [{"item_id": item_id} for item_id in item_ids]

    async def settle(self, shared, prepared, result, params):
        items = shared.setdefault("items", [])
        items.sort()
        logger.info(f"Parallel fetches completed, collected {len(items)} results")
        return "process_results" if items else "empty_batch"


class ProcessItemsNode(BatchNode):
    """Process fetched items in order; fallback items are marked failed."""

    async def prepare(self, shared, params) -> List[str]:
        items = shared.get("items", [])
        logger.info(f"Processing {len(items)} items (mode: {params.get('process_mode')})")
        return items

    async def execute_item(self, item, params, attempt):
        await asyncio.sleep(0.005 if params.get("process_mode") == "slow" else 0)
        if "FAIL" in item or "Fallback" in item:
            raise ValueError(f"Cannot process {item}")
        return f"PROCESSED[{item[:20]}]"

    async def fallback_item(self, item, error, params, attempt):
        return f"FAILED_PROCESSING[{item[:20]}]"

    async def settle(self, shared, prepared, result, params):
        shared["processed_items"] = result
        return "finalize" if result else "empty"


class FinalizeNode(Node):
    """Summarize processed items into a report."""

    def prepare(self, shared, params):
        return shared.get("processed_items", [])

    def execute(self, processed, params, attempt):
        succeeded = sum(1 for p in processed if p.startswith("PROCESSED"))
        return (
            f"Final Report: {len(processed)} items attempted. "
            f"Success: {succeeded}, Failed: {len(processed) - succeeded}."
        )

    def settle(self, shared, prepared, result, params):
        shared["report"] = result
        return DEFAULT_ACTION


class HandleEmptyNode(Node):
    """Record that there was nothing to process."""

    async def settle(self, shared, prepared, result, params):
        shared["report"] = "Final Report: no items to process."
        return DEFAULT_ACTION


# ============================================================
# Workflow Construction
# ============================================================

def create_item_pipeline_workflow(
    fetch_retries: int = 3,
    fetch_wait_seconds: float = 0.01,
    process_retries: Optional[int] = None,
) -> Flow:
    """
    Create the item pipeline.

    Args:
        fetch_retries: Attempts per item fetch
        fetch_wait_seconds: Delay between fetch attempts
        process_retries: Attempts per item processing (settings default)

    Returns:
        The master flow
    """
    fetcher = FetchItemNode(max_retries=fetch_retries, wait_seconds=fetch_wait_seconds)
    processor = ProcessItemsNode(
        max_retries=process_retries or settings.DEFAULT_MAX_RETRIES,
        wait_seconds=settings.DEFAULT_WAIT_SECONDS,
        params={"process_mode": "fast"},
    )
    finalizer = FinalizeNode()
    empty_handler = HandleEmptyNode()

    fetch_flow = ConcurrentFetchFlow(fetcher, name="ConcurrentFetch")
    fetch_flow - "process_results" >> processor
    fetch_flow - "empty_batch" >> empty_handler
    processor - "finalize" >> finalizer
    processor - "empty" >> empty_handler

    return Flow(
        fetch_flow,
        name="ItemPipeline",
        params={"global_setting": "xyz"},
        context_schema=ContextSchema(optional=["item_ids", "items", "processed_items", "report"], strict=True),
    )


def register_item_pipeline_workflow() -> None:
    """Make the item pipeline available through the API."""
    flow_registry.add(
        create_item_pipeline_workflow,
        name="item-pipeline",
        description=(
            "Fetches items concurrently with retries and fallbacks, processes "
            "them in a batch and writes a report."
        ),
        example_shared={"item_ids": DEFAULT_ITEM_IDS},
        example_params={"process_mode": "slow", "fail_rate": 0.2},
    )
    logger.info("Registered item pipeline workflow as: item-pipeline")


# ============================================================
# Example Usage
# ============================================================

async def run_item_pipeline_demo():
    """
    Demo function showing how to run the item pipeline.

    Usage:
        import asyncio
        from actionflow.workflows.item_pipeline import run_item_pipeline_demo
        asyncio.run(run_item_pipeline_demo())
    """
    from actionflow.engine.runner import run_flow

    shared: Dict[str, Any] = {"items": [], "processed_items": [], "report": None}
    result = await run_flow(create_item_pipeline_workflow(), shared, {"process_mode": "slow", "fail_rate": 0.4})

    print(f"\nRun Status: {result.status.value}")
    print(f"Total Duration: {result.duration_ms:.2f}ms")
    print(f"Report: {result.shared.get('report')}")
    for item in result.shared.get("processed_items", []):
        print(f"  - {item}")
    return result


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_item_pipeline_demo())
