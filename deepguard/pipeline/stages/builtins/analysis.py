"""
Visual analysis stages: face detection, temporal consistency, artifacts.

Each contributes one sub-score describing how likely the sampled frames are
to be manipulated, judged by a different signal.
"""
from deepguard.pipeline.stages.base import StageContext, StageOutcome
from deepguard.pipeline.stages.builtins.simulated import SimulatedStagePlugin


class FaceDetectionStagePlugin(SimulatedStagePlugin):
    """Face detection & extraction, scored by facial landmark anomalies."""

    base_duration = 1.2

    @property
    def stage_type(self) -> str:
        return "face_detection"

    @property
    def display_name(self) -> str:
        return "Face detection & extraction"

    def analyze(self, context: StageContext) -> StageOutcome:
        frames = self.previous_data(context, "frames_sampled", 0)
        faces = max(1, frames // 4) if frames else 0
        return StageOutcome(
            sub_scores={"face_analysis": self.score(context, "face_analysis")},
            data={"faces_detected": faces},
        )


class TemporalConsistencyStagePlugin(SimulatedStagePlugin):
    """Frame-to-frame consistency of detected faces."""

    base_duration = 1.0

    @property
    def stage_type(self) -> str:
        return "temporal_consistency"

    @property
    def display_name(self) -> str:
        return "Temporal consistency analysis"

    def analyze(self, context: StageContext) -> StageOutcome:
        return StageOutcome(
            sub_scores={"temporal_consistency": self.score(context, "temporal_consistency")},
        )


class ArtifactDetectionStagePlugin(SimulatedStagePlugin):
    """Compression and blending artifacts around face regions."""

    base_duration = 0.9

    @property
    def stage_type(self) -> str:
        return "artifact_detection"

    @property
    def display_name(self) -> str:
        return "Artifact detection"

    def analyze(self, context: StageContext) -> StageOutcome:
        return StageOutcome(
            sub_scores={"artifact_detection": self.score(context, "artifact_detection")},
        )
