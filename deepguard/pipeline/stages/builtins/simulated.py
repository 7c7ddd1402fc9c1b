"""
Shared base for the builtin simulated analysis stages.

These stages stand in for real signal processing and model inference: each
waits for a nominal duration (scaled by settings.stage_time_scale) and then
derives its scores from the input's content fingerprint, so the same file
always produces the same result.
"""
import asyncio
from typing import Any, Optional, Tuple

from deepguard.core.config import settings
from deepguard.pipeline.stages.base import StageContext, StageOutcome, StagePlugin
from deepguard.utils.hashing import stable_score


def input_seed(artifact: Any) -> str:
    """Stable seed for an input artifact (media fingerprint when available)."""
    fingerprint = getattr(artifact, "fingerprint", None)
    if fingerprint:
        return str(fingerprint)
    return repr(artifact)


class SimulatedStagePlugin(StagePlugin):
    """
    Base for builtin stages with a nominal duration.

    Params:
        duration: Nominal duration in seconds (defaults to `base_duration`)
        time_scale: Multiplier on the duration (defaults to settings)
        score_range: [low, high] bounds for contributed scores
    """

    base_duration: float = 1.0
    default_score_range: Tuple[float, float] = (0.05, 0.95)

    @property
    def default_weight(self) -> float:
        # Weight tracks the nominal duration so progress follows wall time
        return self.base_duration

    @property
    def duration(self) -> float:
        return float(self.params.get("duration", self.base_duration))

    @property
    def time_scale(self) -> float:
        return float(self.params.get("time_scale", settings.stage_time_scale))

    @property
    def score_range(self) -> Tuple[float, float]:
        low, high = self.params.get("score_range", self.default_score_range)
        return float(low), float(high)

    def score(self, context: StageContext, salt: str) -> float:
        low, high = self.score_range
        return stable_score(input_seed(context.input), salt, low, high)

    async def simulate_work(self) -> None:
        delay = max(self.duration * self.time_scale, 0.0)
        # sleep(0) still yields, keeping every stage a real suspension point
        await asyncio.sleep(delay)

    async def run(self, context: StageContext) -> StageOutcome:
        await self.simulate_work()
        return self.analyze(context)

    def analyze(self, context: StageContext) -> StageOutcome:
        """Produce the outcome once the simulated work is done."""
        return StageOutcome()

    @staticmethod
    def previous_data(context: StageContext, key: str, default: Optional[Any] = None) -> Any:
        for outcome in reversed(list(context.previous.values())):
            if key in outcome.data:
                return outcome.data[key]
        return default
