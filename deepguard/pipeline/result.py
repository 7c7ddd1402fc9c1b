"""
Result models for a pipeline run.

Single source of truth for the structures a finished run exposes:
- SubScore: one entry of the append-only sub-score ledger
- DetectionResult: the aggregated terminal artifact of a successful run
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping


@dataclass(frozen=True)
class SubScore:
    """A named score in [0, 1] contributed by one stage."""
    stage_name: str
    name: str
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"stage": self.stage_name, "name": self.name, "value": self.value}


@dataclass(frozen=True)
class DetectionResult:
    """
    Final classification of a run.

    Attributes:
        classification: True when the input is judged manipulated
        confidence: Aggregated confidence in [0, 1]
        elapsed_time: Seconds from start() to the terminal transition
        sub_scores: Sub-metric name -> score in [0, 1]
    """
    classification: bool
    confidence: float
    elapsed_time: float
    sub_scores: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self):
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0, 1], got {self.confidence}")
        if self.elapsed_time < 0:
            raise ValueError(f"elapsed_time must be >= 0, got {self.elapsed_time}")
        object.__setattr__(self, "sub_scores", MappingProxyType(dict(self.sub_scores)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "classification": self.classification,
            "confidence": self.confidence,
            "elapsed_time": self.elapsed_time,
            "sub_scores": dict(self.sub_scores),
        }


def summarize_sub_scores(entries: Iterable[SubScore]) -> Dict[str, float]:
    """
    Collapse ledger entries into one value per sub-metric name.

    A name contributed by several stages is reported as the mean of its
    entries; first-seen order is kept.
    """
    grouped: Dict[str, List[float]] = {}
    for entry in entries:
        grouped.setdefault(entry.name, []).append(entry.value)
    return {name: sum(values) / len(values) for name, values in grouped.items()}
