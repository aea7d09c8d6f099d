"""
Shared context and parameter handling.

The shared context is a plain mutable mapping that every node in a run
reads and writes. Parameters are merged shallowly: runtime values win
over defaults key by key.

A flow may declare a ``ContextSchema`` to have the context checked once,
when its ``run`` starts. Without a schema nothing is validated.
"""

from typing import Any, Dict, List, Mapping, MutableMapping, Optional
from pydantic import BaseModel, Field

from actionflow.engine.errors import ContextValidationError


SharedContext = MutableMapping[str, Any]
Params = Dict[str, Any]


def merge_params(defaults: Optional[Mapping[str, Any]], runtime: Optional[Mapping[str, Any]] = None) -> Params:
    """
    Shallow-merge runtime parameters over defaults.

    >>> merge_params({"a": 1, "b": 2}, {"b": 3, "c": 4})
    {'a': 1, 'b': 3, 'c': 4}
    """
    return {**(defaults or {}), **(runtime or {})}


class ContextSchema(BaseModel):
    """
    Keys a flow expects in the shared context.

    Attributes:
        required: Keys that must be present when the flow starts
        optional: Keys the flow may read or write
        strict: Reject keys that are neither required nor optional
    """

    required: List[str] = Field(default_factory=list)
    optional: List[str] = Field(default_factory=list)
    strict: bool = False

    def validate_context(self, shared: Mapping[str, Any], flow_name: str = "flow") -> None:
        """Raise ContextValidationError if ``shared`` does not fit the schema."""
        missing = [key for key in self.required if key not in shared]
        unexpected = []
        if self.strict:
            declared = set(self.required) | set(self.optional)
            unexpected = [key for key in shared if key not in declared]
        if missing or unexpected:
            raise ContextValidationError(flow_name, missing=missing, unexpected=unexpected)

    def describe(self) -> Dict[str, Any]:
        return self.model_dump()
