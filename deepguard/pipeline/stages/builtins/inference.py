"""
Model stages: neural network inference and final classification.
"""
from deepguard.pipeline.stages.base import StageContext, StageOutcome
from deepguard.pipeline.stages.builtins.simulated import SimulatedStagePlugin

# Share of the inference score taken from the earlier visual signals
PRIOR_WEIGHT = 0.6


class NeuralInferenceStagePlugin(SimulatedStagePlugin):
    """
    Classifier over the sampled frames.

    Blends its own (fingerprint-derived) output with the mean of the scores
    earlier stages contributed, so it agrees with them more often than not.
    """

    base_duration = 1.1

    @property
    def stage_type(self) -> str:
        return "neural_inference"

    @property
    def display_name(self) -> str:
        return "Neural network inference"

    def analyze(self, context: StageContext) -> StageOutcome:
        own = self.score(context, "neural_inference")
        priors = [
            value
            for outcome in context.previous.values()
            for value in outcome.sub_scores.values()
        ]
        if priors:
            prior_weight = float(self.params.get("prior_weight", PRIOR_WEIGHT))
            score = prior_weight * (sum(priors) / len(priors)) + (1 - prior_weight) * own
        else:
            score = own
        return StageOutcome(
            sub_scores={"neural_inference": min(max(score, 0.0), 1.0)},
            data={"signals_used": len(priors)},
        )


class FinalClassificationStagePlugin(SimulatedStagePlugin):
    """Last stage; checks that the run produced evidence to classify."""

    base_duration = 0.6

    @property
    def stage_type(self) -> str:
        return "final_classification"

    @property
    def display_name(self) -> str:
        return "Final classification"

    def analyze(self, context: StageContext) -> StageOutcome:
        signals = sum(len(o.sub_scores) for o in context.previous.values())
        if signals == 0 and self.params.get("require_signals", True):
            raise ValueError("No analysis signals were produced before classification")
        return StageOutcome(data={"signals": signals})
