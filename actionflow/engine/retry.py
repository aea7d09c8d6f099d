"""
Retry policy: bounded attempts, fixed delay, fallback on exhaustion.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional
import asyncio

from actionflow.engine.events import AttemptFailed, EventSink, FallbackInvoked, RetryScheduled


Attempt = Callable[[int], Awaitable[Any]]
Fallback = Callable[[Exception, int], Awaitable[Any]]


@dataclass
class RetryPolicy:
    """
    How many times to attempt an execution and how long to wait in between.

    ``max_retries`` counts total attempts, so 1 means a single attempt
    followed directly by the fallback. Values below 1 are raised to 1 and a
    negative ``wait_seconds`` becomes 0. The delay is the same before every
    retry.
    """

    max_retries: int = 1
    wait_seconds: float = 0

    def __post_init__(self):
        self.max_retries = max(1, int(self.max_retries))
        self.wait_seconds = max(0.0, float(self.wait_seconds))

    async def call(
        self,
        attempt: Attempt,
        fallback: Fallback,
        node_name: str,
        sink: EventSink,
        item_index: Optional[int] = None,
    ) -> Any:
        """
        Run ``attempt`` until it succeeds or attempts run out.

        Args:
            attempt: Coroutine factory receiving the zero-based attempt index
            fallback: Coroutine factory receiving the last error and attempt index
            node_name: Name used in emitted events
            sink: Where retry events go
            item_index: Position of the batch item, if any

        Returns:
            The first successful result, or whatever the fallback returns.
            An exception raised by the fallback propagates.
        """
        last = self.max_retries - 1
        for index in range(self.max_retries):
            try:
                return await attempt(index)
            except Exception as e:
                sink.emit(AttemptFailed(
                    node=node_name,
                    attempt=index,
                    max_retries=self.max_retries,
                    error=f"{type(e).__name__}: {e}",
                    item_index=item_index,
                ))
                if index == last:
                    sink.emit(FallbackInvoked(
                        node=node_name,
                        attempt=index,
                        error=f"{type(e).__name__}: {e}",
                        item_index=item_index,
                    ))
                    return await fallback(e, index)
                if self.wait_seconds > 0:
                    sink.emit(RetryScheduled(
                        node=node_name,
                        attempt=index + 1,
                        delay=self.wait_seconds,
                        item_index=item_index,
                    ))
                    await asyncio.sleep(self.wait_seconds)
