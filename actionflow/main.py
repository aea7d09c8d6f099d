"""
ActionFlow - FastAPI Application Entry Point.

Exposes the registered flows over HTTP: inspect their graphs, run them,
and stream their events.
"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging

from actionflow.config import settings
from actionflow.api.routes import flows, websocket
from actionflow.registry import flow_registry
from actionflow.storage.memory import run_storage
from actionflow.workflows.item_pipeline import register_item_pipeline_workflow

# Register bundled workflows so every app instance can run them
register_item_pipeline_workflow()


# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Registered flows: {[f['name'] for f in flow_registry.list_flows()]}")

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="""
## ActionFlow API

Run workflows built from retrying nodes wired by action labels.

### Features
- **Nodes**: prepare → execute (with retry and fallback) → settle
- **Actions**: each node's settle step picks the next node by label
- **Batches**: run a node per item, or a whole graph per parameter set, sequentially or concurrently
- **Events**: every retry, fallback and transition is recorded and can be streamed

### Quick Start
1. List flows: `GET /flows`
2. Inspect a flow's graph: `GET /flows/{name}`
3. Run it: `POST /flows/{name}/run`
4. Look up a run: `GET /flows/runs/{run_id}`

### Demo Workflow
A pre-registered item pipeline is available as: `item-pipeline`
    """,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(flows.router)
app.include_router(websocket.router)


# ============================================================
# Root Endpoints
# ============================================================

@app.get("/", tags=["Root"])
async def root():
    """API root - returns basic info and links."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "description": "An engine for action-routed workflows with retries and batches",
        "docs": "/docs",
        "redoc": "/redoc",
        "endpoints": {
            "flows": "/flows",
            "runs": "/flows/runs",
            "websocket_run": "/ws/run/{flow_name}",
        },
        "demo_workflow": "item-pipeline",
    }


@app.get("/health", tags=["Root"])
async def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "flows_count": len(flow_registry),
        "runs_count": len(run_storage),
    }


# ============================================================
# Error Handlers
# ============================================================

@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Global exception handler for unhandled errors."""
    logger.exception(f"Unhandled error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": str(exc) if settings.DEBUG else "An unexpected error occurred",
        },
    )
