"""
Exceptions raised by the engine itself.

Errors raised inside user extension points (prepare, execute, fallback,
settle) are never wrapped; they propagate out of ``run`` unchanged.
"""

from typing import Iterable


class ActionFlowError(Exception):
    """Base class for engine errors."""


class FlowConfigurationError(ActionFlowError, ValueError):
    """A node or flow was wired or used incorrectly."""


class ContextValidationError(ActionFlowError, KeyError):
    """The shared context does not satisfy a declared schema."""

    def __init__(self, flow_name: str, missing: Iterable[str] = (), unexpected: Iterable[str] = ()):
        self.flow_name = flow_name
        self.missing = sorted(missing)
        self.unexpected = sorted(unexpected)
        parts = []
        if self.missing:
            parts.append(f"missing required keys {self.missing}")
        if self.unexpected:
            parts.append(f"undeclared keys {self.unexpected}")
        super().__init__(f"Shared context for '{flow_name}' is invalid: " + "; ".join(parts))

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable
        return self.args[0]
