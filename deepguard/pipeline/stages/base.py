"""
Base types for pipeline stages.

A stage is described by a StageDescriptor (name, weight, work). The work unit
is anything that can asynchronously turn a StageContext into a StageOutcome:
either a StagePlugin instance or a plain async callable. This lets simulated
analysis, a remote inference call, or a test double all run in the same slot.
"""
import inspect
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Union


class StageStatus(str, Enum):
    """Status of a stage execution."""
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


def _freeze(mapping: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class StageOutcome:
    """
    What a stage produced.

    Attributes:
        sub_scores: Named scores in [0, 1] contributed to the final result
        data: Arbitrary values later stages may read (frame counts, etc.)
    """
    sub_scores: Mapping[str, float] = field(default_factory=dict)
    data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "sub_scores", _freeze(self.sub_scores))
        object.__setattr__(self, "data", _freeze(self.data))

    @classmethod
    def coerce(cls, value: Any) -> "StageOutcome":
        """
        Normalize whatever a work unit returned.

        None becomes an empty outcome and a plain mapping is read as
        sub-scores. Anything else is a programming error in the stage.
        """
        if value is None:
            return cls()
        if isinstance(value, StageOutcome):
            return value
        if isinstance(value, Mapping):
            return cls(sub_scores=value)
        raise TypeError(
            f"Stage work must return StageOutcome, a mapping or None, "
            f"got {type(value).__name__}"
        )


@dataclass(frozen=True)
class StageContext:
    """
    Everything a work unit may read.

    `previous` holds the outcomes of every stage that already completed in
    this run, keyed by stage name, in execution order.
    """
    input: Any
    stage_name: str
    stage_index: int
    previous: Mapping[str, StageOutcome] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "previous", _freeze(self.previous))

    def previous_score(self, name: str) -> Optional[float]:
        """Most recent sub-score called `name` contributed by an earlier stage."""
        for outcome in reversed(list(self.previous.values())):
            if name in outcome.sub_scores:
                return outcome.sub_scores[name]
        return None


class StagePlugin(ABC):
    """
    Base interface for reusable stage implementations.

    Subclasses must implement:
    - stage_type: The registry key for this stage
    - run(): Execute the stage logic

    Optional overrides:
    - display_name: Human-readable label
    - default_weight: Relative cost used when a pipeline gives no weight
    """

    def __init__(self, params: Optional[Dict[str, Any]] = None):
        self.params: Dict[str, Any] = dict(params or {})

    @property
    @abstractmethod
    def stage_type(self) -> str:
        """
        Unique identifier for this stage type.

        Example: "face_detection", "artifact_detection"
        """
        pass

    @property
    def display_name(self) -> str:
        """Human-readable name for UI/logging."""
        return self.stage_type.replace("_", " ").title()

    @property
    def default_weight(self) -> float:
        return 1.0

    @abstractmethod
    async def run(self, context: StageContext) -> StageOutcome:
        """
        Execute the stage logic.

        Args:
            context: Input artifact plus outcomes of earlier stages

        Returns:
            StageOutcome with this stage's sub-scores and data
        """
        pass

    async def __call__(self, context: StageContext) -> StageOutcome:
        return await self.run(context)


StageWork = Union[StagePlugin, Callable[[StageContext], Awaitable[Any]]]


@dataclass(frozen=True)
class StageDescriptor:
    """
    One named, weighted unit of work in a pipeline.

    Attributes:
        name: Unique (within a pipeline) stage name
        weight: Positive relative cost, used to normalize progress
        work: StagePlugin or async callable taking a StageContext
        display_name: Optional label for presentation layers
    """
    name: str
    weight: float
    work: StageWork
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        return self.display_name or self.name.replace("_", " ").title()

    def is_valid_weight(self) -> bool:
        if isinstance(self.weight, bool) or not isinstance(self.weight, (int, float)):
            return False
        return math.isfinite(self.weight) and self.weight > 0

    def is_callable(self) -> bool:
        return isinstance(self.work, StagePlugin) or callable(self.work)

    async def execute(self, context: StageContext) -> StageOutcome:
        """Await the work unit and normalize its return value."""
        result = self.work(context)
        if not inspect.isawaitable(result):
            raise TypeError(f"Stage '{self.name}' work must be awaitable")
        return StageOutcome.coerce(await result)
