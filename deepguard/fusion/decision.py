"""
Decision and confidence strategies.

Encapsulates how the sub-score ledger of a run becomes a pass/fail
classification and a confidence value. Follows the Strategy pattern so a
real model can be plugged in without touching the runner: any callable that
takes the ledger entries works, these classes are the stock choices.
"""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Sequence

from deepguard.core.logging import get_logger

if TYPE_CHECKING:
    from deepguard.pipeline.result import SubScore

logger = get_logger("fusion.decision")


def mean_score(entries: Sequence["SubScore"]) -> Optional[float]:
    """Arithmetic mean of the entry values, or None for an empty ledger."""
    if not entries:
        return None
    return sum(e.value for e in entries) / len(entries)


class DecisionStrategy(ABC):
    """Abstract base for classification strategies."""

    @abstractmethod
    def __call__(self, entries: Sequence["SubScore"]) -> bool:
        """
        Decide the classification.

        Args:
            entries: Sub-score ledger entries selected for the decision

        Returns:
            True when the input should be flagged
        """
        pass


class MeanThresholdDecision(DecisionStrategy):
    """Flag when the mean of the selected sub-scores exceeds the threshold."""

    def __init__(self, threshold: float = 0.5):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        self.threshold = threshold

    def __call__(self, entries: Sequence["SubScore"]) -> bool:
        mean = mean_score(entries)
        if mean is None:
            logger.debug("No sub-scores contributed; classification defaults to False")
            return False
        return mean > self.threshold

    def __repr__(self) -> str:
        return f"MeanThresholdDecision(threshold={self.threshold})"


class MaxThresholdDecision(DecisionStrategy):
    """
    Flag when any selected sub-score exceeds the threshold.

    The most conservative choice: a single strong signal is enough.
    """

    def __init__(self, threshold: float = 0.5):
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        self.threshold = threshold

    def __call__(self, entries: Sequence["SubScore"]) -> bool:
        return any(e.value > self.threshold for e in entries)

    def __repr__(self) -> str:
        return f"MaxThresholdDecision(threshold={self.threshold})"


class ConfidenceStrategy(ABC):
    """Abstract base for confidence aggregation."""

    @abstractmethod
    def __call__(self, entries: Sequence["SubScore"]) -> float:
        pass


class MeanConfidence(ConfidenceStrategy):
    """Mean of all contributed sub-scores (0.0 when none were contributed)."""

    def __call__(self, entries: Sequence["SubScore"]) -> float:
        mean = mean_score(entries)
        return 0.0 if mean is None else mean


class MaxConfidence(ConfidenceStrategy):
    """Highest contributed sub-score."""

    def __call__(self, entries: Sequence["SubScore"]) -> float:
        return max((e.value for e in entries), default=0.0)
