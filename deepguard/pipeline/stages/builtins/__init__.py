"""
Builtin stage plugins.

Simulated deepfake-analysis stages, in the order the default pipeline runs
them.
"""
from deepguard.pipeline.stages.builtins.simulated import SimulatedStagePlugin
from deepguard.pipeline.stages.builtins.frames import LoadFramesStagePlugin
from deepguard.pipeline.stages.builtins.analysis import (
    FaceDetectionStagePlugin,
    TemporalConsistencyStagePlugin,
    ArtifactDetectionStagePlugin,
)
from deepguard.pipeline.stages.builtins.inference import (
    NeuralInferenceStagePlugin,
    FinalClassificationStagePlugin,
)

BUILTIN_STAGES = [
    LoadFramesStagePlugin,
    FaceDetectionStagePlugin,
    TemporalConsistencyStagePlugin,
    ArtifactDetectionStagePlugin,
    NeuralInferenceStagePlugin,
    FinalClassificationStagePlugin,
]

__all__ = [
    "SimulatedStagePlugin",
    "LoadFramesStagePlugin",
    "FaceDetectionStagePlugin",
    "TemporalConsistencyStagePlugin",
    "ArtifactDetectionStagePlugin",
    "NeuralInferenceStagePlugin",
    "FinalClassificationStagePlugin",
    "BUILTIN_STAGES",
]
