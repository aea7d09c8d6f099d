"""
Pydantic Schemas for API Request/Response Models.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from actionflow.engine.runner import RunResult, RunStatus


# ============================================================
# Flow Schemas
# ============================================================

class FlowInfo(BaseModel):
    """A registered flow."""
    name: str
    description: str
    example_shared: Dict[str, Any] = Field(default_factory=dict)
    example_params: Dict[str, Any] = Field(default_factory=dict)


class FlowListResponse(BaseModel):
    """Response listing all registered flows."""
    flows: List[FlowInfo]
    total: int


class FlowDetailResponse(FlowInfo):
    """A registered flow with its graph."""
    graph: Dict[str, Any] = Field(..., description="Nodes reachable from the flow, by label")
    mermaid_diagram: str = Field(..., description="Mermaid diagram of the graph")


# ============================================================
# Run Schemas
# ============================================================

class FlowRunRequest(BaseModel):
    """Request to run a registered flow."""
    shared: Dict[str, Any] = Field(default_factory=dict, description="Initial shared context")
    params: Dict[str, Any] = Field(default_factory=dict, description="Runtime parameters")

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "shared": {"item_ids": ["A-101", "B-202", "E-FAIL-505"]},
            "params": {"process_mode": "slow", "fail_rate": 0.2},
        }
    })


class EventEntry(BaseModel):
    """One engine event, flattened."""
    model_config = ConfigDict(extra="allow")

    type: str
    timestamp: float


class FlowRunResponse(BaseModel):
    """Outcome of a flow run."""
    run_id: str
    flow_name: str
    status: RunStatus
    action: Optional[str]
    shared: Dict[str, Any]
    params: Dict[str, Any]
    events: List[EventEntry]
    started_at: Optional[str]
    completed_at: Optional[str]
    duration_ms: Optional[float]
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: RunResult, include_events: bool = True) -> "FlowRunResponse":
        data = result.to_dict()
        if not include_events:
            data["events"] = []
        return cls(**data)


class RunListResponse(BaseModel):
    """Response listing runs."""
    runs: List[FlowRunResponse]
    total: int


# ============================================================
# Error Schemas
# ============================================================

class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None
    status_code: int
