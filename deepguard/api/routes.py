"""
FastAPI routes for DeepGuard service.
"""
import shutil
import uuid
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from fastapi.responses import StreamingResponse

from deepguard.api.schemas import (
    AnalyzeResponse,
    CancelResponse,
    HealthResponse,
    RunStatusResponse,
    StageInfo,
)
from deepguard.api.sse import event_generator
from deepguard.core.config import settings
from deepguard.core.logging import get_logger
from deepguard.pipeline.runner import Run
from deepguard.pipeline.stages.registry import get_stage_registry
from deepguard.services.detector import DeepfakeDetector
from deepguard.services.run_store import RunStore
from deepguard.utils.media import InvalidMediaError, MediaType, detect_media_type

logger = get_logger("api.routes")

router = APIRouter()

_detector: Optional[DeepfakeDetector] = None
_run_store: Optional[RunStore] = None


def get_detector() -> DeepfakeDetector:
    """Shared detector built from settings on first use."""
    global _detector
    if _detector is None:
        _detector = DeepfakeDetector()
    return _detector


def get_run_store() -> RunStore:
    global _run_store
    if _run_store is None:
        _run_store = RunStore(max_runs=settings.max_tracked_runs)
    return _run_store


def get_upload_dir() -> Path:
    upload_dir = Path(settings.upload_dir)
    upload_dir.mkdir(parents=True, exist_ok=True)
    return upload_dir


def _get_run_or_404(run_id: str, store: RunStore) -> Run:
    run = store.get(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run not found: {run_id}")
    return run


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=settings.version)


@router.get("/stages", response_model=List[StageInfo])
async def list_stages():
    """List registered stage types."""
    return [StageInfo(**info) for info in get_stage_registry().list_stage_info()]


@router.post("/analyze", response_model=AnalyzeResponse, status_code=202)
async def analyze_video(
    video: UploadFile = File(...),
    detector: DeepfakeDetector = Depends(get_detector),
    store: RunStore = Depends(get_run_store),
    upload_dir: Path = Depends(get_upload_dir),
):
    """
    Upload a video and start analysis.

    Returns immediately with the run id; follow progress via
    GET /runs/{run_id} or the SSE stream at /runs/{run_id}/events.
    """
    filename = video.filename or "upload"
    if detect_media_type(filename, video.content_type) != MediaType.VIDEO:
        raise HTTPException(status_code=400, detail="Invalid file type. Please select a video file.")

    suffix = Path(filename).suffix.lower()
    stored_path = upload_dir / f"{uuid.uuid4().hex}{suffix}"
    with stored_path.open("wb") as out:
        shutil.copyfileobj(video.file, out)

    max_bytes = settings.max_upload_mb * 1024 * 1024
    if stored_path.stat().st_size > max_bytes:
        stored_path.unlink(missing_ok=True)
        raise HTTPException(status_code=413, detail=f"File exceeds {settings.max_upload_mb}MB limit")

    try:
        run = detector.start_analysis(
            stored_path,
            content_type=video.content_type,
            on_release=lambda: stored_path.unlink(missing_ok=True),
        )
    except InvalidMediaError as e:
        raise HTTPException(status_code=400, detail=str(e))

    store.add(run)
    logger.info(f"Accepted {filename} as run {run.run_id}")
    return AnalyzeResponse(run_id=run.run_id, state=run.state().value, filename=filename)


@router.get("/runs/{run_id}", response_model=RunStatusResponse)
async def get_run(run_id: str, store: RunStore = Depends(get_run_store)):
    """Current state, progress and (when finished) result of a run."""
    return RunStatusResponse.from_run(_get_run_or_404(run_id, store))


@router.post("/runs/{run_id}/cancel", response_model=CancelResponse)
async def cancel_run(run_id: str, store: RunStore = Depends(get_run_store)):
    """Request cooperative cancellation; a no-op for finished runs."""
    run = _get_run_or_404(run_id, store)
    run.cancel()
    return CancelResponse(
        run_id=run.run_id,
        state=run.state().value,
        cancel_requested=run.cancel_requested,
    )


@router.get("/runs/{run_id}/events")
async def stream_run_events(run_id: str, store: RunStore = Depends(get_run_store)):
    """
    Server-Sent Events stream of a run's progress.

    Returns:
        StreamingResponse with text/event-stream content type
    """
    run = _get_run_or_404(run_id, store)
    return StreamingResponse(
        event_generator(run),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
