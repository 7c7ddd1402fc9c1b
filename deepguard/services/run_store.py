"""
In-memory table of runs started through the API.

Runs are not persisted; once the table is full the oldest finished runs are
dropped. Running runs are never evicted.
"""
from collections import OrderedDict
from typing import Optional

from deepguard.core.logging import get_logger
from deepguard.pipeline.runner import Run

logger = get_logger("services.run_store")


class RunStore:
    """Bounded run_id -> Run mapping, oldest first."""

    def __init__(self, max_runs: int = 64):
        if max_runs < 1:
            raise ValueError("max_runs must be at least 1")
        self.max_runs = max_runs
        self._runs: "OrderedDict[str, Run]" = OrderedDict()

    def add(self, run: Run) -> None:
        self._runs[run.run_id] = run
        self._evict()

    def get(self, run_id: str) -> Optional[Run]:
        return self._runs.get(run_id)

    def _evict(self) -> None:
        if len(self._runs) <= self.max_runs:
            return
        for run_id in list(self._runs):
            if len(self._runs) <= self.max_runs:
                break
            if self._runs[run_id].state().is_terminal:
                del self._runs[run_id]
                logger.debug(f"Evicted run {run_id}")

    def __len__(self) -> int:
        return len(self._runs)

    def __contains__(self, run_id: str) -> bool:
        return run_id in self._runs
