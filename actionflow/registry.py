"""
Flow Registry.

Flows hold per-run wiring (successor maps, default params), so the
registry stores factories rather than flow instances: every run gets a
freshly built graph.
"""

from typing import Any, Callable, Dict, List, Optional
from dataclasses import dataclass, field
import functools
import logging

from actionflow.engine.node import Node


logger = logging.getLogger(__name__)


@dataclass
class RegisteredFlow:
    """
    A registered flow factory.

    Attributes:
        name: Unique identifier for the flow
        factory: Zero-argument callable returning a node or flow
        description: Human-readable description
        example_shared: A shared context the flow can run with
        example_params: Runtime parameters the flow can run with
    """
    name: str
    factory: Callable[[], Node]
    description: str = ""
    example_shared: Dict[str, Any] = field(default_factory=dict)
    example_params: Dict[str, Any] = field(default_factory=dict)

    def build(self) -> Node:
        return self.factory()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "example_shared": self.example_shared,
            "example_params": self.example_params,
        }


class FlowRegistry:
    """
    Registry of named flow factories.

    Usage:
        registry = FlowRegistry()

        @registry.register("summarize")
        def build_summarize_flow() -> Flow:
            return Flow(LoadNode())

        flow = registry.build("summarize")
    """

    def __init__(self):
        self._flows: Dict[str, RegisteredFlow] = {}

    def register(
        self,
        name: Optional[str] = None,
        description: str = "",
        example_shared: Optional[Dict[str, Any]] = None,
        example_params: Optional[Dict[str, Any]] = None,
    ) -> Callable:
        """
        Decorator to register a flow factory.

        Args:
            name: Flow name (defaults to function name)
            description: Flow description (defaults to docstring)
            example_shared: Example shared context
            example_params: Example runtime parameters

        Returns:
            Decorator function
        """
        def decorator(factory: Callable[[], Node]) -> Callable[[], Node]:
            self.add(factory, name, description, example_shared, example_params)

            @functools.wraps(factory)
            def wrapper(*args, **kwargs):
                return factory(*args, **kwargs)

            return wrapper

        return decorator

    def add(
        self,
        factory: Callable[[], Node],
        name: Optional[str] = None,
        description: str = "",
        example_shared: Optional[Dict[str, Any]] = None,
        example_params: Optional[Dict[str, Any]] = None,
    ) -> RegisteredFlow:
        """Register a flow factory directly (non-decorator version)."""
        flow_name = name or factory.__name__
        if flow_name in self._flows:
            logger.warning(f"Replacing registered flow: {flow_name}")
        entry = RegisteredFlow(
            name=flow_name,
            factory=factory,
            description=(description or factory.__doc__ or "").strip(),
            example_shared=dict(example_shared or {}),
            example_params=dict(example_params or {}),
        )
        self._flows[flow_name] = entry
        logger.debug(f"Registered flow: {flow_name}")
        return entry

    def get(self, name: str) -> Optional[RegisteredFlow]:
        """Get a registered flow by name."""
        return self._flows.get(name)

    def build(self, name: str) -> Node:
        """
        Build a fresh instance of a registered flow.

        Raises:
            KeyError: If the flow is not registered
        """
        entry = self.get(name)
        if entry is None:
            raise KeyError(f"Flow '{name}' not found in registry")
        return entry.build()

    def remove(self, name: str) -> bool:
        """Remove a flow from the registry."""
        if name in self._flows:
            del self._flows[name]
            return True
        return False

    def list_flows(self) -> List[Dict[str, Any]]:
        """List all registered flows with their metadata."""
        return [entry.to_dict() for entry in self._flows.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._flows

    def __len__(self) -> int:
        return len(self._flows)

    def __iter__(self):
        return iter(self._flows.values())


# Global flow registry instance
flow_registry = FlowRegistry()
