"""
Deepfake detector service.

Thin orchestration around the pipeline core: validates the input file,
acquires a media handle for the lifetime of a run, starts the run on the
configured pipeline and turns terminal runs into user-facing notifications.
"""
import asyncio
from contextlib import ExitStack
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Set, Union

from deepguard.core.logging import get_logger
from deepguard.pipeline.callbacks import ProgressListener
from deepguard.pipeline.config import build_default_pipeline
from deepguard.pipeline.definition import Pipeline
from deepguard.pipeline.runner import PipelineRunner, Run, RunState
from deepguard.utils.media import open_media

logger = get_logger("services.detector")

DEEPFAKE_LABEL = "DEEPFAKE DETECTED"
AUTHENTIC_LABEL = "AUTHENTIC VIDEO"


@dataclass(frozen=True)
class Notification:
    """User-facing summary of a run."""
    title: str
    description: str
    variant: str = "default"  # default | destructive

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DeepfakeDetector:
    """
    Runs the analysis pipeline on video files.

    Args:
        pipeline: Pipeline to run (defaults to build_default_pipeline())
        runner: PipelineRunner used to start runs
    """

    def __init__(self, pipeline: Optional[Pipeline] = None, runner: Optional[PipelineRunner] = None):
        self.pipeline = pipeline or build_default_pipeline()
        self.runner = runner or PipelineRunner()
        self._watchers: Set[asyncio.Task] = set()

    def start_analysis(
        self,
        file_path: Union[str, Path],
        content_type: Optional[str] = None,
        progress_listener: Optional[ProgressListener] = None,
        on_release: Optional[Callable[[], Any]] = None,
    ) -> Run:
        """
        Validate `file_path` and start a run without waiting for it.

        The media handle (and `on_release`, if given) is released once the
        run reaches a terminal state.

        Raises:
            InvalidMediaError: If the file is missing or not a video
        """
        with ExitStack() as stack:
            if on_release is not None:
                stack.callback(on_release)
            media = stack.enter_context(open_media(file_path, content_type))
            run = self.runner.start(self.pipeline, media, progress_listener=progress_listener)
            resources = stack.pop_all()

        task = asyncio.get_running_loop().create_task(self._release_when_done(run, resources))
        self._watchers.add(task)
        task.add_done_callback(self._watchers.discard)
        logger.info(f"Started analysis {run.run_id} for {media.name}")
        return run

    async def analyze(
        self,
        file_path: Union[str, Path],
        content_type: Optional[str] = None,
        progress_listener: Optional[ProgressListener] = None,
    ) -> Run:
        """
        Analyze `file_path` and return the finished run.

        If the caller is cancelled (e.g. by a timeout), the run is cancelled
        too and the media handle stays open until the run is terminal.
        """
        with open_media(file_path, content_type) as media:
            run = self.runner.start(self.pipeline, media, progress_listener=progress_listener)
            try:
                await run.wait()
            except asyncio.CancelledError:
                logger.info(f"Analysis {run.run_id} abandoned by caller, cancelling run")
                run.cancel()
                await asyncio.shield(run.wait())
                raise
        return run

    @staticmethod
    async def _release_when_done(run: Run, resources: ExitStack) -> None:
        try:
            await run.wait()
        finally:
            resources.close()

    @staticmethod
    def verdict_label(run: Run) -> Optional[str]:
        result = run.result()
        if result is None:
            return None
        return DEEPFAKE_LABEL if result.classification else AUTHENTIC_LABEL

    @staticmethod
    def summarize(run: Run) -> Notification:
        """Build the notification shown when a run ends (or its progress so far)."""
        state = run.state()
        if state is RunState.SUCCEEDED:
            result = run.result()
            return Notification(
                title="Analysis Complete",
                description=f"Detection completed in {result.elapsed_time:.1f}s",
                variant="destructive" if result.classification else "default",
            )
        if state is RunState.FAILED:
            failure = run.failure()
            return Notification(
                title="Analysis Failed",
                description=f"Stage '{failure.stage_name}' failed: {failure.message}",
                variant="destructive",
            )
        if state is RunState.CANCELLED:
            return Notification(
                title="Analysis Cancelled",
                description=f"Stopped after {len(run.progress_events())} of {len(run.pipeline)} stages",
            )
        return Notification(
            title="Analysis In Progress",
            description=f"{run.percent:.0f}% complete",
        )
