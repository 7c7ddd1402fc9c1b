"""
Tests for decision and confidence strategies.
"""
import pytest

from deepguard.fusion import (
    MaxConfidence,
    MaxThresholdDecision,
    MeanConfidence,
    MeanThresholdDecision,
    mean_score,
)
from deepguard.pipeline import SubScore


def entries(*values):
    return [SubScore("stage", f"m{i}", v) for i, v in enumerate(values)]


class TestMeanThresholdDecision:

    def test_above_threshold(self):
        assert MeanThresholdDecision(0.5)(entries(0.9, 0.95)) is True

    def test_threshold_is_exclusive(self):
        assert MeanThresholdDecision(0.5)(entries(0.4, 0.6)) is False

    def test_empty_ledger_is_negative(self):
        assert MeanThresholdDecision(0.0)([]) is False

    def test_threshold_bounds(self):
        with pytest.raises(ValueError):
            MeanThresholdDecision(-0.1)


class TestMaxThresholdDecision:

    def test_single_strong_signal(self):
        assert MaxThresholdDecision(0.8)(entries(0.1, 0.1, 0.85)) is True

    def test_all_weak(self):
        assert MaxThresholdDecision(0.8)(entries(0.1, 0.8)) is False


class TestConfidence:

    def test_mean_confidence(self):
        assert MeanConfidence()(entries(0.9, 0.95)) == pytest.approx(0.925)

    def test_mean_confidence_empty(self):
        assert MeanConfidence()([]) == 0.0

    def test_max_confidence(self):
        assert MaxConfidence()(entries(0.2, 0.7, 0.4)) == 0.7
        assert MaxConfidence()([]) == 0.0

    def test_mean_score_none_for_empty(self):
        assert mean_score([]) is None
