"""
Flow API Routes.

Endpoints for inspecting and running registered flows.
"""

from typing import Optional
from fastapi import APIRouter, HTTPException
import logging

from actionflow.api.schemas import (
    ErrorResponse,
    FlowDetailResponse,
    FlowInfo,
    FlowListResponse,
    FlowRunRequest,
    FlowRunResponse,
    RunListResponse,
)
from actionflow.engine.graph import describe_graph, to_mermaid
from actionflow.engine.runner import FlowRunner
from actionflow.registry import flow_registry
from actionflow.storage.memory import run_storage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/flows", tags=["Flows"])


# ============================================================
# Run History Endpoints
# ============================================================

@router.get(
    "/runs",
    response_model=RunListResponse,
)
async def list_runs(flow_name: Optional[str] = None) -> RunListResponse:
    """List recent runs, optionally filtered by flow name. Events are omitted."""
    if flow_name:
        runs = await run_storage.list_by_flow(flow_name)
    else:
        runs = await run_storage.list_all()

    responses = [FlowRunResponse.from_result(r, include_events=False) for r in runs]
    return RunListResponse(runs=responses, total=len(responses))


@router.get(
    "/runs/{run_id}",
    response_model=FlowRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_run(run_id: str) -> FlowRunResponse:
    """Get a stored run with its full event trace."""
    result = await run_storage.get(run_id)
    if not result:
        raise HTTPException(status_code=404, detail=f"Run '{run_id}' not found")
    return FlowRunResponse.from_result(result)


# ============================================================
# Flow Endpoints
# ============================================================

@router.get(
    "/",
    response_model=FlowListResponse,
)
async def list_flows() -> FlowListResponse:
    """List all registered flows."""
    flows = [FlowInfo(**f) for f in flow_registry.list_flows()]
    return FlowListResponse(flows=flows, total=len(flows))


@router.get(
    "/{flow_name}",
    response_model=FlowDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_flow(flow_name: str) -> FlowDetailResponse:
    """Describe a registered flow's graph."""
    entry = flow_registry.get(flow_name)
    if not entry:
        raise HTTPException(status_code=404, detail=f"Flow '{flow_name}' not found")

    flow = entry.build()
    return FlowDetailResponse(
        **entry.to_dict(),
        graph=describe_graph(flow),
        mermaid_diagram=to_mermaid(flow),
    )


@router.post(
    "/{flow_name}/run",
    response_model=FlowRunResponse,
    responses={404: {"model": ErrorResponse}},
)
async def run_flow(flow_name: str, request: FlowRunRequest) -> FlowRunResponse:
    """
    Run a registered flow with the given shared context and parameters.

    A run that fails inside the flow still returns 200 with status
    ``failed`` and the error; the context is returned as it was when the
    error happened.
    """
    entry = flow_registry.get(flow_name)
    if not entry:
        raise HTTPException(status_code=404, detail=f"Flow '{flow_name}' not found")

    runner = FlowRunner(entry.build())
    result = await runner.run(dict(request.shared), request.params)
    result.flow_name = flow_name
    await run_storage.save(result)

    logger.info(f"Run {result.run_id} of {flow_name} finished: {result.status.value}")
    return FlowRunResponse.from_result(result)
