"""
Structured events emitted while nodes and flows run.

The engine never writes log records from its control flow. Instead it
emits small immutable events to an event sink. The default sink turns them
into log records; a run can bind a different sink (for example one that
records every event) with :func:`use_event_sink`.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Tuple
import contextvars
import logging
import time


logger = logging.getLogger(__name__)


# ============================================================
# Event Types
# ============================================================

@dataclass(frozen=True)
class NodeStarted:
    node: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class NodeFinished:
    node: str
    action: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class AttemptFailed:
    """An execute attempt raised. ``attempt`` is zero-based."""
    node: str
    attempt: int
    max_retries: int
    error: str
    item_index: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class RetryScheduled:
    node: str
    attempt: int
    delay: float
    item_index: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class FallbackInvoked:
    node: str
    attempt: int
    error: str
    item_index: Optional[int] = None
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class SuccessorOverwritten:
    node: str
    action: str
    previous: str
    replacement: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class ActionUnmatched:
    flow: str
    node: str
    action: str
    available: Tuple[str, ...]
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class Transition:
    flow: str
    source: str
    action: str
    target: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class FlowStarted:
    flow: str
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class BranchStarted:
    flow: str
    branch: int
    params: Dict[str, Any]
    timestamp: float = field(default_factory=time.time)


@dataclass(frozen=True)
class FlowFinished:
    flow: str
    action: str
    timestamp: float = field(default_factory=time.time)


def event_to_dict(event: Any) -> Dict[str, Any]:
    """Serialize an event into a JSON-friendly dictionary."""
    data = {"type": type(event).__name__}
    for name in event.__dataclass_fields__:
        value = getattr(event, name)
        if isinstance(value, tuple):
            value = list(value)
        elif isinstance(value, dict):
            value = {k: v if isinstance(v, (str, int, float, bool, type(None))) else repr(v)
                     for k, v in value.items()}
        data[name] = value
    return data


# ============================================================
# Sinks
# ============================================================

class EventSink(Protocol):
    def emit(self, event: Any) -> None:
        ...


class LoggingEventSink:
    """Writes events as log records. Problems are warnings; lifecycle is debug."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def emit(self, event: Any) -> None:
        if isinstance(event, AttemptFailed):
            where = f" item {event.item_index}" if event.item_index is not None else ""
            self.log.warning(
                f"Node {event.node}{where} execution failed "
                f"(attempt {event.attempt + 1}/{event.max_retries}): {event.error}"
            )
        elif isinstance(event, FallbackInvoked):
            where = f" item {event.item_index}" if event.item_index is not None else ""
            self.log.warning(f"Node {event.node}{where} max retries reached, using fallback")
        elif isinstance(event, SuccessorOverwritten):
            self.log.warning(
                f"Overwriting successor for action '{event.action}' in node {event.node} "
                f"({event.previous} -> {event.replacement})"
            )
        elif isinstance(event, ActionUnmatched):
            self.log.warning(
                f"Flow {event.flow} halting: action '{event.action}' not found in successors "
                f"of {event.node}. Available: {list(event.available)}"
            )
        elif isinstance(event, RetryScheduled):
            self.log.debug(f"Node {event.node} retrying in {event.delay}s")
        elif isinstance(event, Transition):
            self.log.debug(f"Flow {event.flow}: {event.source} --{event.action}--> {event.target}")
        else:
            self.log.debug(f"{type(event).__name__}: {event}")


class RecordingEventSink:
    """Keeps every emitted event in memory, in emission order."""

    def __init__(self):
        self.events: List[Any] = []

    def emit(self, event: Any) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> List[Any]:
        return [e for e in self.events if isinstance(e, event_type)]

    def clear(self) -> None:
        self.events.clear()


class EventBus:
    """
    Fan-out sink.

    Listeners can subscribe to specific event types or receive all events.
    Events are dispatched synchronously in registration order. A listener
    that raises is logged and skipped so observability never breaks a run.
    """

    def __init__(self, *sinks: EventSink):
        self._listeners: Dict[type, List[Callable[[Any], None]]] = {}
        self._global_listeners: List[Callable[[Any], None]] = [s.emit for s in sinks]

    def subscribe(self, event_type: type, callback: Callable[[Any], None]) -> None:
        """Register a callback for a specific event type."""
        self._listeners.setdefault(event_type, []).append(callback)

    def on_all(self, callback: Callable[[Any], None]) -> None:
        """Register a callback that receives every event."""
        self._global_listeners.append(callback)

    def emit(self, event: Any) -> None:
        for cb in self._global_listeners + self._listeners.get(type(event), []):
            try:
                cb(event)
            except Exception as e:
                logger.warning(f"Event listener failed on {type(event).__name__}: {e}")


# ============================================================
# Sink Resolution
# ============================================================

default_sink: EventSink = LoggingEventSink()

_current_sink: contextvars.ContextVar[Optional[EventSink]] = contextvars.ContextVar(
    "actionflow_event_sink", default=None
)


def current_sink() -> EventSink:
    """Return the sink bound to the running context, or the logging default."""
    return _current_sink.get() or default_sink


@contextmanager
def use_event_sink(sink: EventSink) -> Iterator[EventSink]:
    """
    Bind ``sink`` for everything run inside the ``with`` block.

    Tasks started by the parallel strategies copy the context, so the
    binding follows every branch of a run.
    """
    token = _current_sink.set(sink)
    try:
        yield sink
    finally:
        _current_sink.reset(token)
