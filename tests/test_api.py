"""
Tests for the FastAPI endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport
from starlette.websockets import WebSocketDisconnect

from actionflow.api.routes.websocket import websocket_run
from actionflow.engine.flow import Flow
from actionflow.engine.node import Node
from actionflow.engine.runner import RunResult, RunStatus
from actionflow.main import app
from actionflow.registry import FlowRegistry
from actionflow.storage.memory import RunStorage, run_storage


# ============================================================
# Sync Test Client (for simple tests)
# ============================================================

client = TestClient(app)

QUIET_PARAMS = {"process_mode": "fast", "fail_rate": 0.0}


class TestRootEndpoints:
    """Tests for root endpoints."""

    def test_root(self):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert "name" in data
        assert "version" in data
        assert "endpoints" in data
        assert data["demo_workflow"] == "item-pipeline"

    def test_health(self):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["flows_count"] >= 1


class TestFlowEndpoints:
    """Tests for flow endpoints."""

    def test_list_flows(self):
        """Test listing flows."""
        response = client.get("/flows/")
        assert response.status_code == 200

        data = response.json()
        assert data["total"] >= 1
        names = [f["name"] for f in data["flows"]]
        assert "item-pipeline" in names

    def test_get_demo_workflow(self):
        """Test describing the demo workflow."""
        response = client.get("/flows/item-pipeline")
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == "item-pipeline"
        assert data["graph"]["start"] == "ItemPipeline"
        nodes = data["graph"]["nodes"]
        assert nodes["ConcurrentFetch"]["strategy"] == "ParallelBatchTraversal"
        assert nodes["ProcessItemsNode"]["strategy"] == "SequentialBatchExecution"
        assert nodes["FetchItemNode"]["max_retries"] == 3
        assert "max_retries" not in nodes["ConcurrentFetch"]
        assert data["mermaid_diagram"].startswith("graph TD")

    def test_get_nonexistent_flow(self):
        """Test describing a flow that doesn't exist."""
        response = client.get("/flows/nonexistent-flow")
        assert response.status_code == 404

    def test_run_demo_workflow(self):
        """Test running the demo workflow and looking the run up."""
        response = client.post("/flows/item-pipeline/run", json={"params": QUIET_PARAMS})
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert data["action"] == "default"
        assert data["shared"]["report"] == "Final Report: 5 items attempted. Success: 4, Failed: 1."
        event_types = {e["type"] for e in data["events"]}
        assert {"FlowStarted", "AttemptFailed", "FallbackInvoked", "Transition"} <= event_types

        lookup = client.get(f"/flows/runs/{data['run_id']}")
        assert lookup.status_code == 200
        assert lookup.json()["shared"]["report"] == data["shared"]["report"]

    def test_run_with_custom_items(self):
        """Test running the demo workflow on caller-provided items."""
        response = client.post(
            "/flows/item-pipeline/run",
            json={"shared": {"item_ids": ["X-1", "Y-2"]}, "params": QUIET_PARAMS},
        )
        data = response.json()
        assert data["status"] == "completed"
        assert data["shared"]["report"] == "Final Report: 2 items attempted. Success: 2, Failed: 0."

    def test_run_with_invalid_context(self):
        """An undeclared context key fails the run, not the request."""
        response = client.post("/flows/item-pipeline/run", json={"shared": {"surprise": True}})
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "failed"
        assert "ContextValidationError" in data["error"]
        assert data["action"] is None

    def test_list_runs(self):
        """Test listing runs without their events."""
        client.post("/flows/item-pipeline/run", json={"params": QUIET_PARAMS})
        response = client.get("/flows/runs", params={"flow_name": "item-pipeline"})
        assert response.status_code == 200

        data = response.json()
        assert data["total"] >= 1
        assert all(r["flow_name"] == "item-pipeline" for r in data["runs"])
        assert all(r["events"] == [] for r in data["runs"])

    def test_get_nonexistent_run(self):
        response = client.get("/flows/runs/does-not-exist")
        assert response.status_code == 404

    def test_run_nonexistent_flow(self):
        response = client.post("/flows/nonexistent-flow/run", json={})
        assert response.status_code == 404


class TestWebSocket:
    """Tests for run streaming."""

    def test_stream_run(self):
        with client.websocket_connect("/ws/run/item-pipeline") as websocket:
            websocket.send_json({"action": "start", "params": QUIET_PARAMS})

            started = websocket.receive_json()
            assert started["type"] == "started"

            events = []
            message = websocket.receive_json()
            while message["type"] == "event":
                events.append(message["event"])
                message = websocket.receive_json()

        assert message["type"] == "completed"
        assert message["result"]["run_id"] == started["run_id"]
        assert "events" not in message["result"]
        assert events[0]["type"] == "FlowStarted"
        assert events[-1]["type"] == "FlowFinished"

    def test_stream_requires_start(self):
        with client.websocket_connect("/ws/run/item-pipeline") as websocket:
            websocket.send_json({"action": "stop"})
            assert websocket.receive_json()["type"] == "error"

    def test_stream_unknown_flow(self):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws/run/nonexistent-flow") as websocket:
                websocket.receive_json()

    @pytest.mark.asyncio
    async def test_run_kept_after_client_disconnects(self):
        """A client leaving mid-stream does not lose the run."""

        class LeavingClient:
            """Accepts the start message, then disconnects on the first event."""

            def __init__(self):
                self.sent = []

            async def accept(self):
                pass

            async def receive_json(self):
                return {"action": "start", "shared": {"item_ids": ["A-1"]}, "params": QUIET_PARAMS}

            async def send_json(self, message):
                if message["type"] == "event":
                    raise WebSocketDisconnect(code=1001)
                self.sent.append(message)

            async def close(self, code=1000, reason=None):
                pass

        leaving = LeavingClient()
        await websocket_run(leaving, "item-pipeline")

        assert [m["type"] for m in leaving.sent] == ["started"]
        stored = await run_storage.get(leaving.sent[0]["run_id"])
        assert stored is not None
        assert stored.flow_name == "item-pipeline"
        assert stored.status == RunStatus.COMPLETED
        assert stored.shared["report"] == "Final Report: 1 items attempted. Success: 1, Failed: 0."


# ============================================================
# Registry and Storage
# ============================================================

class TestFlowRegistry:
    """Tests for the flow registry."""

    def test_register_decorator(self):
        registry = FlowRegistry()

        @registry.register("single", example_params={"x": 1})
        def build_single():
            """One node."""
            return Flow(Node(), name="single")

        assert "single" in registry
        assert len(registry) == 1
        entry = registry.get("single")
        assert entry.description == "One node."
        assert entry.to_dict()["example_params"] == {"x": 1}

    def test_build_returns_fresh_graph(self):
        registry = FlowRegistry()
        registry.add(lambda: Flow(Node()), name="fresh")
        assert registry.build("fresh") is not registry.build("fresh")

    def test_build_missing(self):
        with pytest.raises(KeyError):
            FlowRegistry().build("missing")

    def test_remove(self):
        registry = FlowRegistry()
        registry.add(lambda: Node(), name="gone")
        assert registry.remove("gone") is True
        assert registry.remove("gone") is False


def _result(run_id: str, flow_name: str = "f") -> RunResult:
    return RunResult(run_id=run_id, flow_name=flow_name, status=RunStatus.COMPLETED)


class TestRunStorage:
    """Tests for in-memory run history."""

    @pytest.mark.asyncio
    async def test_evicts_oldest(self):
        storage = RunStorage(limit=2)
        for run_id in ("a", "b", "c"):
            await storage.save(_result(run_id))

        assert len(storage) == 2
        assert await storage.get("a") is None
        assert [r.run_id for r in await storage.list_all()] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_filter_and_delete(self):
        storage = RunStorage()
        await storage.save(_result("1", "alpha"))
        await storage.save(_result("2", "beta"))

        assert [r.run_id for r in await storage.list_by_flow("beta")] == ["2"]
        assert await storage.delete("1") is True
        assert await storage.delete("1") is False


# ============================================================
# Async Tests (for async endpoints)
# ============================================================

@pytest.mark.asyncio
async def test_run_demo_workflow_async():
    """Test running the demo workflow through the ASGI transport."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            "/flows/item-pipeline/run",
            json={"shared": {"item_ids": ["A-1"]}, "params": QUIET_PARAMS},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "completed"
        assert data["shared"]["items"] == ["ItemData[A-1] received=True"]
        assert data["shared"]["processed_items"] == ["PROCESSED[ItemData[A-1] receiv]"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
