"""
Pipeline definition: the ordered, immutable list of stages plus the decision
policy used to aggregate their sub-scores.

A Pipeline has no runtime state; the same instance can back any number of
concurrent runs.
"""
from typing import Callable, FrozenSet, Iterable, Iterator, Optional, Sequence, Tuple

from deepguard.fusion.decision import MeanConfidence, MeanThresholdDecision
from deepguard.pipeline.errors import InvalidPipelineError
from deepguard.pipeline.result import SubScore
from deepguard.pipeline.stages.base import StageDescriptor

DecisionFn = Callable[[Sequence[SubScore]], bool]
ConfidenceFn = Callable[[Sequence[SubScore]], float]


class Pipeline:
    """
    Ordered sequence of stage descriptors.

    Invariants (checked at construction, InvalidPipelineError otherwise):
    - at least one stage
    - every weight is a positive finite number
    - stage names are non-empty and unique

    Args:
        stages: Stage descriptors in execution order
        decision: Callable deciding the classification from sub-scores.
            Defaults to MeanThresholdDecision(threshold).
        confidence: Callable aggregating sub-scores into a confidence.
            Defaults to MeanConfidence().
        threshold: Threshold for the default decision
        decision_keys: If given, only sub-scores with these names are passed
            to the decision function. Confidence always sees every entry.
    """

    def __init__(
        self,
        stages: Iterable[StageDescriptor],
        decision: Optional[DecisionFn] = None,
        confidence: Optional[ConfidenceFn] = None,
        threshold: float = 0.5,
        decision_keys: Optional[Iterable[str]] = None,
    ):
        stages = tuple(stages)
        _validate_stages(stages)

        if decision is None:
            try:
                decision = MeanThresholdDecision(threshold)
            except ValueError as e:
                raise InvalidPipelineError(str(e)) from e
        if not callable(decision):
            raise InvalidPipelineError("decision must be callable")
        if confidence is None:
            confidence = MeanConfidence()
        if not callable(confidence):
            raise InvalidPipelineError("confidence must be callable")

        self._stages: Tuple[StageDescriptor, ...] = stages
        self._total_weight = float(sum(s.weight for s in stages))
        self._decision = decision
        self._confidence = confidence
        self._threshold = threshold
        self._decision_keys: Optional[FrozenSet[str]] = _validate_decision_keys(decision_keys)

    @classmethod
    def construct(cls, stages: Iterable[StageDescriptor], **kwargs) -> "Pipeline":
        """Validate `stages` and build a Pipeline (see class docstring)."""
        return cls(stages, **kwargs)

    @property
    def stages(self) -> Tuple[StageDescriptor, ...]:
        return self._stages

    @property
    def stage_names(self) -> Tuple[str, ...]:
        return tuple(s.name for s in self._stages)

    @property
    def threshold(self) -> float:
        return self._threshold

    @property
    def decision_keys(self) -> Optional[FrozenSet[str]]:
        return self._decision_keys

    def total_weight(self) -> float:
        """Sum of all stage weights."""
        return self._total_weight

    def decide(self, entries: Sequence[SubScore]) -> bool:
        """Apply the decision function to the designated sub-scores."""
        if self._decision_keys is not None:
            entries = [e for e in entries if e.name in self._decision_keys]
        return bool(self._decision(entries))

    def aggregate_confidence(self, entries: Sequence[SubScore]) -> float:
        return float(self._confidence(entries))

    def __len__(self) -> int:
        return len(self._stages)

    def __iter__(self) -> Iterator[StageDescriptor]:
        return iter(self._stages)

    def __getitem__(self, index: int) -> StageDescriptor:
        return self._stages[index]

    def __repr__(self) -> str:
        return f"Pipeline(stages={list(self.stage_names)}, total_weight={self._total_weight})"


def _validate_decision_keys(decision_keys: Optional[Iterable[str]]) -> Optional[FrozenSet[str]]:
    if decision_keys is None:
        return None
    # A bare string would otherwise become a set of characters
    if isinstance(decision_keys, str):
        raise InvalidPipelineError(
            f"decision_keys must be a collection of names, got string '{decision_keys}'"
        )
    keys = frozenset(decision_keys)
    for key in keys:
        if not isinstance(key, str) or not key.strip():
            raise InvalidPipelineError(f"Invalid decision key: {key!r}")
    return keys


def _validate_stages(stages: Tuple[StageDescriptor, ...]) -> None:
    if not stages:
        raise InvalidPipelineError("Pipeline must contain at least one stage")

    seen = set()
    for index, stage in enumerate(stages):
        if not isinstance(stage, StageDescriptor):
            raise InvalidPipelineError(
                f"Stage #{index} is {type(stage).__name__}, expected StageDescriptor"
            )
        if not isinstance(stage.name, str) or not stage.name.strip():
            raise InvalidPipelineError(f"Stage #{index} has an empty name")
        if not stage.is_valid_weight():
            raise InvalidPipelineError(
                f"Stage '{stage.name}' has invalid weight {stage.weight!r}; "
                f"weights must be positive numbers"
            )
        if not stage.is_callable():
            raise InvalidPipelineError(f"Stage '{stage.name}' work is not callable")
        if stage.name in seen:
            raise InvalidPipelineError(f"Duplicate stage name: '{stage.name}'")
        seen.add(stage.name)
