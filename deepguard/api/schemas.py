"""
API Schemas (DTOs) for the HTTP layer.

These Pydantic models are the only shapes the API returns; routes build them
from Run objects with `from_run`.
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from deepguard.pipeline.runner import Run
from deepguard.services.detector import DeepfakeDetector


class HealthResponse(BaseModel):
    status: str
    version: str


class StageInfo(BaseModel):
    type: str
    display_name: str
    default_weight: float


class PipelineStageDTO(BaseModel):
    name: str
    display_name: str
    weight: float


class ProgressEventDTO(BaseModel):
    stage: str
    stage_index: int
    completed_weight: float
    total_weight: float
    progress: float = Field(..., ge=0.0, le=100.0)


class DetectionResultDTO(BaseModel):
    classification: bool
    label: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    elapsed_time: float = Field(..., ge=0.0)
    sub_scores: Dict[str, float]


class FailureDTO(BaseModel):
    stage_name: str
    stage_index: int
    error_type: str
    message: str


class NotificationDTO(BaseModel):
    title: str
    description: str
    variant: str


class RunStatusResponse(BaseModel):
    """Snapshot of a run."""
    run_id: str
    state: str
    progress: float
    elapsed_time: Optional[float] = None
    stages: List[PipelineStageDTO]
    events: List[ProgressEventDTO]
    result: Optional[DetectionResultDTO] = None
    failure: Optional[FailureDTO] = None
    notification: NotificationDTO

    @classmethod
    def from_run(cls, run: Run) -> "RunStatusResponse":
        result = run.result()
        failure = run.failure()
        return cls(
            run_id=run.run_id,
            state=run.state().value,
            progress=run.percent,
            elapsed_time=run.elapsed_time(),
            stages=[
                PipelineStageDTO(name=s.name, display_name=s.label, weight=s.weight)
                for s in run.pipeline.stages
            ],
            events=[ProgressEventDTO(**e.to_dict()) for e in run.progress_events()],
            result=DetectionResultDTO(
                label=DeepfakeDetector.verdict_label(run),
                **result.to_dict(),
            ) if result else None,
            failure=FailureDTO(**failure.to_dict()) if failure else None,
            notification=NotificationDTO(**DeepfakeDetector.summarize(run).to_dict()),
        )


class AnalyzeResponse(BaseModel):
    run_id: str
    state: str
    filename: str


class CancelResponse(BaseModel):
    run_id: str
    state: str
    cancel_requested: bool
