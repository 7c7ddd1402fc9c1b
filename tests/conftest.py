"""
Shared fixtures and stage test doubles.
"""
import asyncio
from typing import Any, Dict, List, Optional

import pytest

from deepguard.pipeline import Pipeline, StageDescriptor, StageOutcome
from deepguard.pipeline.config import build_pipeline, default_pipeline_config


class RecordingWork:
    """
    Async work unit that records calls and returns fixed sub-scores.

    Optionally waits on `gate` before settling and raises `error` instead of
    returning.
    """

    def __init__(
        self,
        scores: Optional[Dict[str, float]] = None,
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
        data: Optional[Dict[str, Any]] = None,
    ):
        self.scores = scores or {}
        self.error = error
        self.gate = gate
        self.data = data or {}
        self.started = asyncio.Event()
        self.contexts: List[Any] = []

    async def __call__(self, context):
        self.contexts.append(context)
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()
        else:
            await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return StageOutcome(sub_scores=self.scores, data=self.data)

    @property
    def calls(self) -> int:
        return len(self.contexts)


def make_stage(name: str, weight: float = 1, **work_kwargs) -> StageDescriptor:
    return StageDescriptor(name=name, weight=weight, work=RecordingWork(**work_kwargs))


def instant_pipeline(**kwargs) -> Pipeline:
    """Builtin six-stage pipeline with no simulated delay."""
    config = default_pipeline_config(threshold=kwargs.pop("threshold", 0.5))
    for stage in config.stages:
        stage.params["time_scale"] = 0
    return build_pipeline(config, **kwargs)


@pytest.fixture
def example_pipeline():
    """load -> score -> classify, unit weights."""
    return Pipeline.construct([
        make_stage("load"),
        make_stage("score", scores={"score": 0.9}),
        make_stage("classify", scores={"score": 0.95}),
    ])


@pytest.fixture
def sample_video(tmp_path):
    """Small file with a video extension (content is never decoded)."""
    path = tmp_path / "clip.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + bytes(range(256)) * 64)
    return path


@pytest.fixture
def other_video(tmp_path):
    path = tmp_path / "other.mov"
    path.write_bytes(b"different content" * 1000)
    return path
