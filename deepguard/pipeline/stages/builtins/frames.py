"""
Frame loading stage.

First stage of the default pipeline. Contributes no score; it records how
many frames later stages will look at.
"""
from deepguard.pipeline.stages.base import StageContext, StageOutcome
from deepguard.pipeline.stages.builtins.simulated import SimulatedStagePlugin, input_seed
from deepguard.utils.hashing import stable_unit

# Frames sampled per analysis, before clamping to the file size
MIN_FRAMES = 16
MAX_FRAMES = 240


class LoadFramesStagePlugin(SimulatedStagePlugin):
    """Decode and sample video frames."""

    base_duration = 0.8

    @property
    def stage_type(self) -> str:
        return "load_frames"

    @property
    def display_name(self) -> str:
        return "Loading video frames"

    def analyze(self, context: StageContext) -> StageOutcome:
        frames = MIN_FRAMES + int(stable_unit(input_seed(context.input), "frames") * (MAX_FRAMES - MIN_FRAMES))
        size = getattr(context.input, "size_bytes", None)
        if size is not None:
            # Tiny files cannot hold many frames
            frames = max(1, min(frames, size // 1024 or 1))
        return StageOutcome(data={"frames_sampled": frames})
