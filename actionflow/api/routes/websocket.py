"""
WebSocket Routes for Real-time Run Streaming.

Streams engine events to the client while a registered flow runs.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import asyncio
import logging

from actionflow.engine.events import event_to_dict
from actionflow.engine.runner import FlowRunner, RunResult
from actionflow.registry import flow_registry
from actionflow.storage.memory import run_storage


logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


async def _save_run(run_task: "asyncio.Task[RunResult]", flow_name: str) -> RunResult:
    """Wait for a streamed run and store its result under the registered name."""
    result = await run_task
    result.flow_name = flow_name
    await run_storage.save(result)
    return result


@router.websocket("/ws/run/{flow_name}")
async def websocket_run(websocket: WebSocket, flow_name: str):
    """
    WebSocket endpoint for streaming a flow run.

    Message format (client -> server):
    ```json
    {"action": "start", "shared": {...}, "params": {...}}
    ```

    Messages (server -> client): one ``started`` message, one ``event``
    message per engine event, then a final ``completed`` or ``failed``
    message carrying the run result without its event list.
    """
    entry = flow_registry.get(flow_name)
    if not entry:
        await websocket.close(code=4004, reason=f"Flow '{flow_name}' not found")
        return

    await websocket.accept()
    run_task: Optional["asyncio.Task[RunResult]"] = None
    try:
        data = await websocket.receive_json()
        if data.get("action") != "start":
            await websocket.send_json({"type": "error", "error": "Expected 'start' action"})
            return

        queue: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue()
        runner = FlowRunner(entry.build(), on_event=lambda e: queue.put_nowait(event_to_dict(e)))
        await websocket.send_json({"type": "started", "run_id": runner.run_id, "flow_name": flow_name})

        run_task = asyncio.create_task(runner.run(dict(data.get("shared") or {}), data.get("params") or {}))
        while not (run_task.done() and queue.empty()):
            try:
                event = await asyncio.wait_for(queue.get(), timeout=0.05)
            except asyncio.TimeoutError:
                continue
            await websocket.send_json({"type": "event", "event": event})

        result = await _save_run(run_task, flow_name)

        summary = result.to_dict()
        summary.pop("events")
        await websocket.send_json({"type": result.status.value, "result": summary})

    except WebSocketDisconnect:
        logger.info(f"WebSocket client disconnected during run of {flow_name}")
        if run_task is not None:
            # the run still finishes and is kept in the history
            await _save_run(run_task, flow_name)
    finally:
        try:
            await websocket.close()
        except RuntimeError:
            # already closed by the client
            pass
