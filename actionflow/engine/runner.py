"""
Flow Runner.

The engine propagates fatal errors out of ``run``. The runner is the
top-level caller that turns one run into a ``RunResult``: the action or
the error, the final shared context, timing, and every event emitted
along the way.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import logging
import time
import uuid

from actionflow.engine.events import EventBus, LoggingEventSink, RecordingEventSink, event_to_dict, use_event_sink
from actionflow.engine.node import Node


logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    """Status of a flow run."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RunResult:
    """Result of a flow run."""
    run_id: str
    flow_name: str
    status: RunStatus
    action: Optional[str] = None
    shared: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    events: List[Any] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "flow_name": self.flow_name,
            "status": self.status.value,
            "action": self.action,
            "shared": self.shared,
            "params": self.params,
            "events": [event_to_dict(e) for e in self.events],
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "error": self.error,
        }


class FlowRunner:
    """
    Runs a node or flow once and records what happened.

    Usage:
        runner = FlowRunner(flow)
        result = await runner.run({"items": []}, {"mode": "fast"})
    """

    def __init__(
        self,
        flow: Node,
        run_id: Optional[str] = None,
        on_event: Optional[Callable[[Any], None]] = None,
    ):
        """
        Args:
            flow: The node or flow to run
            run_id: Optional run ID (generated if not provided)
            on_event: Optional callback for each event (for streaming)
        """
        self.flow = flow
        self.run_id = run_id or str(uuid.uuid4())
        self.on_event = on_event
        self.recorder = RecordingEventSink()
        self._status = RunStatus.PENDING

    @property
    def status(self) -> RunStatus:
        return self._status

    def _build_sink(self) -> EventBus:
        bus = EventBus(LoggingEventSink(), self.recorder)
        if self.on_event:
            bus.on_all(self.on_event)
        return bus

    async def run(self, shared: Optional[Dict[str, Any]] = None, params: Optional[Mapping[str, Any]] = None) -> RunResult:
        """
        Run the flow with the given shared context and parameters.

        Fatal errors do not escape: they become a FAILED result carrying
        the context as it was when the error happened.
        """
        shared = shared if shared is not None else {}
        start_time = time.time()
        started_at = datetime.now()
        self._status = RunStatus.RUNNING
        action = None
        error = None

        logger.info(f"Starting run {self.run_id} of {self.flow.name}")
        with use_event_sink(self._build_sink()):
            try:
                action = await self.flow.run(shared, params)
                self._status = RunStatus.COMPLETED
            except Exception as e:
                logger.exception(f"Run {self.run_id} failed: {e}")
                self._status = RunStatus.FAILED
                error = f"{type(e).__name__}: {e}"

        return RunResult(
            run_id=self.run_id,
            flow_name=self.flow.name,
            status=self._status,
            action=action,
            shared=dict(shared),
            params=dict(params or {}),
            events=list(self.recorder.events),
            started_at=started_at,
            completed_at=datetime.now(),
            duration_ms=(time.time() - start_time) * 1000,
            error=error,
        )


async def run_flow(
    flow: Node,
    shared: Optional[Dict[str, Any]] = None,
    params: Optional[Mapping[str, Any]] = None,
    run_id: Optional[str] = None,
    on_event: Optional[Callable[[Any], None]] = None,
) -> RunResult:
    """
    Convenience function to run a flow.

    Args:
        flow: The node or flow to run
        shared: Shared context (a new dict if omitted)
        params: Runtime parameters
        run_id: Optional run ID
        on_event: Optional event callback

    Returns:
        RunResult
    """
    runner = FlowRunner(flow, run_id, on_event)
    return await runner.run(shared, params)
