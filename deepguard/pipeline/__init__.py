"""
Staged analysis pipeline.

- Pipeline: ordered, validated stage definitions plus decision policy
- PipelineRunner / Run: sequential execution with progress, cancellation
  and a single terminal result
"""
from deepguard.pipeline.errors import (
    PipelineError,
    InvalidPipelineError,
    AlreadyStartedError,
    StageFailure,
    FailureInfo,
    UnknownStageTypeError,
)
from deepguard.pipeline.result import DetectionResult, SubScore
from deepguard.pipeline.callbacks import ProgressEvent
from deepguard.pipeline.definition import Pipeline
from deepguard.pipeline.runner import PipelineRunner, Run, RunState, StageRun
from deepguard.pipeline.stages import (
    StageContext,
    StageDescriptor,
    StageOutcome,
    StagePlugin,
    StageStatus,
)

__all__ = [
    "PipelineError",
    "InvalidPipelineError",
    "AlreadyStartedError",
    "StageFailure",
    "FailureInfo",
    "UnknownStageTypeError",
    "DetectionResult",
    "SubScore",
    "ProgressEvent",
    "Pipeline",
    "PipelineRunner",
    "Run",
    "RunState",
    "StageRun",
    "StageContext",
    "StageDescriptor",
    "StageOutcome",
    "StagePlugin",
    "StageStatus",
]
