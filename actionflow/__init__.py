"""
ActionFlow - A small, async-first engine for action-routed workflows.

Compose fallible nodes into graphs whose edges are action labels, with
retry and fallback per node, parameter propagation, and sequential or
concurrent batch execution.
"""

__version__ = "1.0.0"
