"""
Progress reporting for pipeline runs.

Listeners subscribe to a run and are called synchronously on the run's own
control flow each time a stage completes. Subscribing returns a handle that
removes the listener again:

    unsubscribe = run.subscribe_progress(lambda event: print(event.percent))
    ...
    unsubscribe()

A listener that raises is logged and skipped; it never affects the run.
"""
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from deepguard.core.logging import get_logger

logger = get_logger("pipeline.callbacks")

# Largest float below 100: progress before the final stage never reads 100
_BELOW_COMPLETE = math.nextafter(100.0, 0.0)


@dataclass(frozen=True)
class ProgressEvent:
    """Structured progress event, one per completed stage."""
    completed_weight: float
    total_weight: float
    stage_name: str
    stage_index: int
    is_final: bool = False

    @property
    def percent(self) -> float:
        """Completed share of the pipeline in [0, 100]."""
        if self.is_final:
            return 100.0
        return min(100.0 * self.completed_weight / self.total_weight, _BELOW_COMPLETE)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage_name,
            "stage_index": self.stage_index,
            "completed_weight": self.completed_weight,
            "total_weight": self.total_weight,
            "progress": self.percent,
        }


ProgressListener = Callable[[ProgressEvent], None]


class ProgressListeners:
    """Ordered set of listeners with scoped (unsubscribe-handle) registration."""

    def __init__(self):
        self._listeners: List[ProgressListener] = []

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A callable that deregisters this listener; calling it more than
            once is harmless.
        """
        if not callable(listener):
            raise TypeError("Progress listener must be callable")
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def emit(self, event: ProgressEvent) -> None:
        """Deliver `event` to every listener registered at call time."""
        logger.debug(
            f"Progress: {event.stage_name} ({event.percent:.1f}%)"
        )
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Progress listener failed: {e}")

    def __len__(self) -> int:
        return len(self._listeners)
