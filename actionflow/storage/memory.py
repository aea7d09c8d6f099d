"""
In-Memory Run History.

Keeps the most recent run results so the API can report on them. Nothing
is written to disk; the history is lost when the process exits.
"""

from collections import OrderedDict
from typing import List, Optional
import asyncio

from actionflow.config import settings
from actionflow.engine.runner import RunResult


class RunStorage:
    """
    Bounded, lock-guarded store of run results.

    When ``limit`` is reached the oldest run is dropped.
    """

    def __init__(self, limit: int = 100):
        self.limit = max(1, limit)
        self._runs: "OrderedDict[str, RunResult]" = OrderedDict()
        self._lock = asyncio.Lock()

    async def save(self, result: RunResult) -> RunResult:
        """Store a run result, evicting the oldest one if full."""
        async with self._lock:
            self._runs[result.run_id] = result
            self._runs.move_to_end(result.run_id)
            while len(self._runs) > self.limit:
                self._runs.popitem(last=False)
            return result

    async def get(self, run_id: str) -> Optional[RunResult]:
        """Get a run by ID."""
        async with self._lock:
            return self._runs.get(run_id)

    async def list_all(self) -> List[RunResult]:
        """List stored runs, oldest first."""
        async with self._lock:
            return list(self._runs.values())

    async def list_by_flow(self, flow_name: str) -> List[RunResult]:
        """List stored runs of one registered flow."""
        async with self._lock:
            return [r for r in self._runs.values() if r.flow_name == flow_name]

    async def delete(self, run_id: str) -> bool:
        """Delete a run."""
        async with self._lock:
            if run_id in self._runs:
                del self._runs[run_id]
                return True
            return False

    def __len__(self) -> int:
        return len(self._runs)


# Global storage instance
run_storage = RunStorage(limit=settings.RUN_HISTORY_LIMIT)
