"""
Engine package - nodes, retry, strategies and flow orchestration.
"""

from actionflow.engine.context import ContextSchema, merge_params
from actionflow.engine.errors import ActionFlowError, ContextValidationError, FlowConfigurationError
from actionflow.engine.events import (
    EventBus,
    LoggingEventSink,
    RecordingEventSink,
    use_event_sink,
)
from actionflow.engine.graph import DEFAULT_ACTION, SuccessorMap, describe_graph, to_mermaid
from actionflow.engine.retry import RetryPolicy
from actionflow.engine.strategies import ExecutionMode, TraversalMode
from actionflow.engine.node import Node, BatchNode, ParallelBatchNode
from actionflow.engine.flow import Flow, BatchFlow, ParallelBatchFlow
from actionflow.engine.runner import FlowRunner, RunResult, RunStatus, run_flow

__all__ = [
    "DEFAULT_ACTION",
    "Node",
    "BatchNode",
    "ParallelBatchNode",
    "Flow",
    "BatchFlow",
    "ParallelBatchFlow",
    "RetryPolicy",
    "ExecutionMode",
    "TraversalMode",
    "SuccessorMap",
    "ContextSchema",
    "merge_params",
    "EventBus",
    "LoggingEventSink",
    "RecordingEventSink",
    "use_event_sink",
    "describe_graph",
    "to_mermaid",
    "FlowRunner",
    "RunResult",
    "RunStatus",
    "run_flow",
    "ActionFlowError",
    "ContextValidationError",
    "FlowConfigurationError",
]
