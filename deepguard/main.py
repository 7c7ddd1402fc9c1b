"""
DeepGuard FastAPI application.

API Structure (v1):
- /v1/health - Service health
- /v1/stages - Registered stage types
- /v1/analyze - Upload a video and start analysis
- /v1/runs/{run_id} - Run status and result
- /v1/runs/{run_id}/cancel - Cooperative cancellation
- /v1/runs/{run_id}/events - SSE progress stream
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from deepguard.api.routes import router
from deepguard.core.config import settings
from deepguard.core.logging import get_logger
from deepguard.pipeline.stages.registry import get_stage_registry

logger = get_logger("main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown hooks."""
    logger.info(f"Starting {settings.app_name} v{settings.version}")
    stages = get_stage_registry().list_stages()
    logger.info(f"Available stages: {', '.join(stages)}")
    yield
    logger.info("Shutting down")


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.version,
        "status": "running",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("deepguard.main:app", host="0.0.0.0", port=8000)
