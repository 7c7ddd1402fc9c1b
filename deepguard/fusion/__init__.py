"""
Decision policy for turning stage sub-scores into a verdict.
"""
from deepguard.fusion.decision import (
    DecisionStrategy,
    ConfidenceStrategy,
    MeanThresholdDecision,
    MaxThresholdDecision,
    MeanConfidence,
    MaxConfidence,
    mean_score,
)

__all__ = [
    "DecisionStrategy",
    "ConfidenceStrategy",
    "MeanThresholdDecision",
    "MaxThresholdDecision",
    "MeanConfidence",
    "MaxConfidence",
    "mean_score",
]
