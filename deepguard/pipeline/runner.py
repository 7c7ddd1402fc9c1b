"""
Pipeline runner for staged execution.

The PipelineRunner binds a Pipeline to one input artifact and returns a Run.
The Run is the core of the service:
- Executes stages strictly in order, one work unit in flight at a time
- Emits a ProgressEvent after every completed stage
- Honors cancellation cooperatively at stage boundaries
- Records the first stage failure and stops
- Publishes exactly one DetectionResult on success

State machine:

    idle --start()--> running --all stages ok--> succeeded
                         |----stage raises-----> failed
                         '----cancel()---------> cancelled

Runs are disposable; retrying means starting a new Run.
"""
import asyncio
import math
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from deepguard.core.logging import get_logger
from deepguard.pipeline.callbacks import ProgressEvent, ProgressListener, ProgressListeners
from deepguard.pipeline.definition import Pipeline
from deepguard.pipeline.errors import AlreadyStartedError, FailureInfo, StageFailure
from deepguard.pipeline.result import DetectionResult, SubScore, summarize_sub_scores
from deepguard.pipeline.stages.base import StageContext, StageOutcome, StageStatus

logger = get_logger("pipeline.runner")

# Pseudo stage name used when aggregation itself fails after the last stage
AGGREGATE_STAGE = "aggregate"


class RunState(str, Enum):
    """Lifecycle state of a Run."""
    IDLE = "idle"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({RunState.SUCCEEDED, RunState.FAILED, RunState.CANCELLED})


@dataclass(frozen=True)
class StageRun:
    """Record of a stage execution."""
    stage_name: str
    stage_index: int
    status: StageStatus
    duration_ms: float = 0.0
    error: Optional[str] = None
    skip_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage_name": self.stage_name,
            "stage_index": self.stage_index,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "error": self.error,
            "skip_reason": self.skip_reason,
        }


class Run:
    """
    One execution of a Pipeline against one input artifact.

    External callers may read state, progress, result and failure, subscribe
    to progress, and call start()/cancel(). Everything else is mutated only
    by the run's own sequential stage loop.
    """

    def __init__(self, pipeline: Pipeline, run_id: Optional[str] = None):
        self.run_id = run_id or uuid.uuid4().hex
        self._pipeline = pipeline
        self._state = RunState.IDLE
        self._input: Any = None

        self._cancel_requested = False
        self._in_flight = False
        # Set once the result exists; the final event is being delivered
        self._completing = False

        self._listeners = ProgressListeners()
        self._events: List[ProgressEvent] = []
        self._stage_runs: List[StageRun] = []

        self._result: Optional[DetectionResult] = None
        self._failure: Optional[FailureInfo] = None

        self._started_at: Optional[float] = None
        self._elapsed: Optional[float] = None
        self._done: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Read-only accessors
    # ------------------------------------------------------------------

    @property
    def pipeline(self) -> Pipeline:
        return self._pipeline

    @property
    def input(self) -> Any:
        return self._input

    def state(self) -> RunState:
        return self._state

    def result(self) -> Optional[DetectionResult]:
        """DetectionResult once succeeded, None otherwise."""
        return self._result

    def failure(self) -> Optional[FailureInfo]:
        """FailureInfo once failed, None otherwise."""
        return self._failure

    def progress_events(self) -> Tuple[ProgressEvent, ...]:
        """Every progress event emitted so far, in order."""
        return tuple(self._events)

    def stage_runs(self) -> Tuple[StageRun, ...]:
        return tuple(self._stage_runs)

    @property
    def percent(self) -> float:
        return self._events[-1].percent if self._events else 0.0

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def elapsed_time(self) -> Optional[float]:
        """Seconds since start(); frozen at the terminal transition."""
        if self._elapsed is not None:
            return self._elapsed
        if self._started_at is None:
            return None
        return time.monotonic() - self._started_at

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def subscribe_progress(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a progress listener; returns its unsubscribe handle."""
        return self._listeners.subscribe(listener)

    def start(self, input_artifact: Any) -> "Run":
        """
        Move idle -> running and schedule stage execution.

        Must be called from a running event loop. Returns immediately.

        Raises:
            AlreadyStartedError: If the run is not idle
        """
        if self._state is not RunState.IDLE:
            raise AlreadyStartedError(
                f"Run {self.run_id} cannot start from state '{self._state.value}'"
            )
        loop = asyncio.get_running_loop()

        self._input = input_artifact
        self._done = asyncio.Event()
        self._started_at = time.monotonic()
        self._state = RunState.RUNNING
        logger.info(
            f"Run {self.run_id} started: {len(self._pipeline)} stages, "
            f"total weight {self._pipeline.total_weight():g}"
        )
        self._task = loop.create_task(self._execute(), name=f"deepguard-run-{self.run_id}")
        return self

    def cancel(self) -> None:
        """
        Request cooperative cancellation.

        The in-flight stage (if any) is allowed to settle; no further stage
        starts. With nothing in flight the run is cancelled immediately.
        No-op unless the run is running, and no-op when repeated. Once every
        stage has completed the run can no longer be cancelled.
        """
        if self._state is not RunState.RUNNING or self._cancel_requested or self._completing:
            return
        self._cancel_requested = True
        if self._in_flight:
            logger.info(f"Run {self.run_id}: cancellation requested, waiting for in-flight stage")
        else:
            self._finish_cancelled()

    async def wait(self) -> RunState:
        """Wait for the terminal transition and return the final state."""
        if self._done is None:
            raise RuntimeError(f"Run {self.run_id} has not been started")
        await self._done.wait()
        return self._state

    # ------------------------------------------------------------------
    # Stage loop
    # ------------------------------------------------------------------

    async def _execute(self) -> None:
        stages = self._pipeline.stages
        total_weight = self._pipeline.total_weight()
        last_index = len(stages) - 1

        outcomes: Dict[str, StageOutcome] = {}
        ledger: List[SubScore] = []
        completed_weight = 0.0

        for index, stage in enumerate(stages):
            # Dispatch check: cancel() may have already finished the run
            if self._state is not RunState.RUNNING:
                return
            if self._cancel_requested:
                self._finish_cancelled()
                return

            context = StageContext(
                input=self._input,
                stage_name=stage.name,
                stage_index=index,
                previous=outcomes,
            )

            logger.info(f"Executing stage: {stage.name} ({index + 1}/{len(stages)})")
            stage_started = time.monotonic()
            self._in_flight = True
            try:
                outcome = await stage.execute(context)
                entries = _collect_sub_scores(stage.name, outcome)
            except asyncio.CancelledError:
                # The task itself was cancelled (loop shutdown); not a stage failure
                self._in_flight = False
                self._record_stage(stage.name, index, StageStatus.CANCELLED, stage_started,
                                   error="Task cancelled")
                self._cancel_requested = True
                self._finish_cancelled()
                raise
            except Exception as e:
                self._in_flight = False
                logger.error(f"Stage {stage.name} failed: {e}", exc_info=True)
                self._record_stage(stage.name, index, StageStatus.FAILED, stage_started, error=str(e))
                self._finish_failed(StageFailure(stage.name, index, e))
                return
            self._in_flight = False

            duration_ms = self._record_stage(stage.name, index, StageStatus.COMPLETED, stage_started)
            logger.info(f"Stage {stage.name} completed in {duration_ms:.0f}ms")

            is_final = index == last_index
            if is_final and self._cancel_requested:
                # Progress reaches 100 only for runs that succeed
                self._finish_cancelled()
                return

            outcomes[stage.name] = outcome
            ledger.extend(entries)
            completed_weight = total_weight if is_final else completed_weight + stage.weight

            result = None
            if is_final:
                # Aggregate before the 100% event so it is never followed by a failure
                try:
                    result = self._aggregate(ledger)
                except Exception as e:
                    logger.error(f"Run {self.run_id}: aggregation failed: {e}", exc_info=True)
                    self._finish_failed(StageFailure(AGGREGATE_STAGE, len(stages), e))
                    return
                self._completing = True

            event = ProgressEvent(
                completed_weight=completed_weight,
                total_weight=total_weight,
                stage_name=stage.name,
                stage_index=index,
                is_final=is_final,
            )
            self._events.append(event)
            self._listeners.emit(event)

            if is_final:
                self._finish_succeeded(result)
                return

            # Settle check: a listener or the stage itself may have cancelled
            if self._state is not RunState.RUNNING:
                return
            if self._cancel_requested:
                self._finish_cancelled()
                return

    def _aggregate(self, ledger: List[SubScore]) -> DetectionResult:
        classification = self._pipeline.decide(ledger)
        confidence = self._pipeline.aggregate_confidence(ledger)
        return DetectionResult(
            classification=classification,
            confidence=confidence,
            elapsed_time=time.monotonic() - self._started_at,
            sub_scores=summarize_sub_scores(ledger),
        )

    def _record_stage(
        self,
        stage_name: str,
        stage_index: int,
        status: StageStatus,
        started: float,
        error: Optional[str] = None,
    ) -> float:
        duration_ms = (time.monotonic() - started) * 1000
        self._stage_runs.append(StageRun(
            stage_name=stage_name,
            stage_index=stage_index,
            status=status,
            duration_ms=duration_ms,
            error=error,
        ))
        return duration_ms

    def _skip_remaining(self, reason: str) -> None:
        done = len(self._stage_runs)
        for index, stage in enumerate(self._pipeline.stages[done:], start=done):
            self._stage_runs.append(StageRun(
                stage_name=stage.name,
                stage_index=index,
                status=StageStatus.SKIPPED,
                skip_reason=reason,
            ))

    # ------------------------------------------------------------------
    # Terminal transitions
    # ------------------------------------------------------------------

    def _terminate(self, state: RunState) -> None:
        self._elapsed = time.monotonic() - self._started_at
        self._state = state
        self._done.set()

    def _finish_succeeded(self, result: DetectionResult) -> None:
        self._result = result
        self._elapsed = result.elapsed_time
        self._state = RunState.SUCCEEDED
        self._done.set()
        logger.info(
            f"Run {self.run_id} succeeded in {result.elapsed_time:.2f}s: "
            f"classification={result.classification}, confidence={result.confidence:.3f}"
        )

    def _finish_failed(self, failure: StageFailure) -> None:
        self._failure = failure.to_info()
        self._skip_remaining("Previous stage failed")
        self._terminate(RunState.FAILED)
        logger.info(f"Run {self.run_id} failed at stage '{failure.stage_name}' after {self._elapsed:.2f}s")

    def _finish_cancelled(self) -> None:
        if self._state is not RunState.RUNNING:
            return
        self._skip_remaining("Run cancelled")
        self._terminate(RunState.CANCELLED)
        logger.info(
            f"Run {self.run_id} cancelled after {len(self._events)} of "
            f"{len(self._pipeline)} stages"
        )

    def __repr__(self) -> str:
        return f"Run(id={self.run_id!r}, state={self._state.value})"


def _collect_sub_scores(stage_name: str, outcome: StageOutcome) -> List[SubScore]:
    """Validate a stage's sub-scores and turn them into ledger entries."""
    entries = []
    for name, value in outcome.sub_scores.items():
        if not isinstance(name, str) or not name:
            raise ValueError(f"Sub-score names must be non-empty strings, got {name!r}")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"Sub-score '{name}' must be a number, got {type(value).__name__}")
        if not math.isfinite(value) or not 0.0 <= value <= 1.0:
            raise ValueError(f"Sub-score '{name}' must be in [0, 1], got {value}")
        entries.append(SubScore(stage_name=stage_name, name=name, value=float(value)))
    return entries


class PipelineRunner:
    """
    Starts runs.

    The runner holds no per-run state, so independent runs (e.g. a new
    upload while a previous result is still displayed) never interfere.
    """

    def start(
        self,
        pipeline: Pipeline,
        input_artifact: Any,
        progress_listener: Optional[ProgressListener] = None,
        run_id: Optional[str] = None,
    ) -> Run:
        """
        Create a Run for `pipeline` and start it on `input_artifact`.

        Args:
            pipeline: Validated pipeline definition
            input_artifact: Opaque input handed to every stage
            progress_listener: Optional listener subscribed before execution
            run_id: Optional explicit run identifier

        Returns:
            The Run, already in the running state
        """
        run = Run(pipeline, run_id=run_id)
        if progress_listener is not None:
            run.subscribe_progress(progress_listener)
        return run.start(input_artifact)

    async def run(self, pipeline: Pipeline, input_artifact: Any, **kwargs) -> Run:
        """Start a run and wait for it to reach a terminal state."""
        run = self.start(pipeline, input_artifact, **kwargs)
        await run.wait()
        return run
