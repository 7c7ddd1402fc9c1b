"""
Tests for the detector service and the in-memory run store.
"""
import asyncio

import pytest

from conftest import RecordingWork, instant_pipeline, make_stage
from deepguard.pipeline import Pipeline, PipelineRunner, RunState, StageDescriptor
from deepguard.services import DeepfakeDetector, RunStore
from deepguard.services.detector import AUTHENTIC_LABEL, DEEPFAKE_LABEL
from deepguard.utils.media import InvalidMediaError, MediaHandle


class TestDetector:

    @pytest.mark.asyncio
    async def test_analyze_default_pipeline(self, sample_video):
        detector = DeepfakeDetector(pipeline=instant_pipeline())
        events = []
        run = await detector.analyze(sample_video, progress_listener=events.append)

        assert run.state() is RunState.SUCCEEDED
        assert events[-1].percent == 100.0
        assert isinstance(run.input, MediaHandle)
        assert run.input.closed
        assert detector.verdict_label(run) in (DEEPFAKE_LABEL, AUTHENTIC_LABEL)

    @pytest.mark.asyncio
    async def test_same_file_same_verdict(self, sample_video, tmp_path):
        copy = tmp_path / "copy.mp4"
        copy.write_bytes(sample_video.read_bytes())
        detector = DeepfakeDetector(pipeline=instant_pipeline())
        first = await detector.analyze(sample_video)
        second = await detector.analyze(copy)
        assert first.result().sub_scores == second.result().sub_scores

    @pytest.mark.asyncio
    async def test_rejects_non_video(self, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("hello")
        detector = DeepfakeDetector(pipeline=instant_pipeline())
        with pytest.raises(InvalidMediaError):
            await detector.analyze(path)

    @pytest.mark.asyncio
    async def test_start_analysis_releases_after_run(self, sample_video):
        gate = asyncio.Event()
        pipeline = Pipeline.construct([
            StageDescriptor(name="slow", weight=1, work=RecordingWork(scores={"s": 0.7}, gate=gate)),
        ])
        released = []
        detector = DeepfakeDetector(pipeline=pipeline)
        run = detector.start_analysis(sample_video, on_release=lambda: released.append(True))

        await asyncio.sleep(0)
        assert run.state() is RunState.RUNNING
        assert not run.input.closed
        assert released == []

        gate.set()
        await run.wait()
        # Let the release watcher observe the terminal state
        for _ in range(3):
            await asyncio.sleep(0)
        assert run.input.closed
        assert released == [True]

    @pytest.mark.asyncio
    async def test_analyze_timeout_cancels_run_before_release(self, sample_video):
        gate = asyncio.Event()
        first = RecordingWork(scores={"s": 0.7}, gate=gate)
        second = RecordingWork(scores={"s": 0.9})
        pipeline = Pipeline.construct([
            StageDescriptor(name="first", weight=1, work=first),
            StageDescriptor(name="second", weight=1, work=second),
        ])
        runs = []

        class TrackingRunner(PipelineRunner):
            def start(self, *args, **kwargs):
                run = super().start(*args, **kwargs)
                runs.append(run)
                return run

        detector = DeepfakeDetector(pipeline=pipeline, runner=TrackingRunner())
        # First stage settles only after the caller has given up
        asyncio.get_running_loop().call_later(0.1, gate.set)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(detector.analyze(sample_video), 0.02)

        run = runs[0]
        assert run.state() is RunState.CANCELLED
        assert run.result() is None
        assert first.calls == 1
        assert second.calls == 0
        assert run.input.closed

    @pytest.mark.asyncio
    async def test_start_analysis_invalid_calls_release(self, tmp_path):
        released = []
        detector = DeepfakeDetector(pipeline=instant_pipeline())
        with pytest.raises(InvalidMediaError):
            detector.start_analysis(tmp_path / "missing.mp4", on_release=lambda: released.append(True))
        assert released == [True]


class TestSummaries:

    @pytest.mark.asyncio
    async def test_succeeded_deepfake(self, example_pipeline):
        run = await PipelineRunner().run(example_pipeline, "artifact")
        note = DeepfakeDetector.summarize(run)
        assert note.title == "Analysis Complete"
        assert note.description.startswith("Detection completed in ")
        assert note.variant == "destructive"
        assert DeepfakeDetector.verdict_label(run) == DEEPFAKE_LABEL

    @pytest.mark.asyncio
    async def test_succeeded_authentic(self):
        pipeline = Pipeline.construct([make_stage("score", scores={"score": 0.1})])
        run = await PipelineRunner().run(pipeline, "artifact")
        note = DeepfakeDetector.summarize(run)
        assert note.variant == "default"
        assert DeepfakeDetector.verdict_label(run) == AUTHENTIC_LABEL

    @pytest.mark.asyncio
    async def test_failed(self):
        pipeline = Pipeline.construct([make_stage("boom", error=RuntimeError("decoder crashed"))])
        run = await PipelineRunner().run(pipeline, "artifact")
        note = DeepfakeDetector.summarize(run)
        assert note.title == "Analysis Failed"
        assert "decoder crashed" in note.description
        assert DeepfakeDetector.verdict_label(run) is None

    @pytest.mark.asyncio
    async def test_cancelled(self):
        gate = asyncio.Event()
        slow = RecordingWork(gate=gate)
        pipeline = Pipeline.construct([
            make_stage("a"),
            StageDescriptor(name="b", weight=1, work=slow),
            make_stage("c"),
        ])
        run = PipelineRunner().start(pipeline, "artifact")
        await slow.started.wait()
        run.cancel()
        gate.set()
        await run.wait()
        note = DeepfakeDetector.summarize(run)
        assert note.title == "Analysis Cancelled"
        assert note.description == "Stopped after 2 of 3 stages"


class TestRunStore:

    @pytest.mark.asyncio
    async def test_add_and_get(self, example_pipeline):
        store = RunStore()
        run = await PipelineRunner().run(example_pipeline, "x")
        store.add(run)
        assert store.get(run.run_id) is run
        assert run.run_id in store
        assert store.get("unknown") is None

    @pytest.mark.asyncio
    async def test_evicts_oldest_finished(self):
        store = RunStore(max_runs=2)
        runs = []
        for _ in range(3):
            run = await PipelineRunner().run(Pipeline.construct([make_stage("a")]), "x")
            store.add(run)
            runs.append(run)
        assert len(store) == 2
        assert runs[0].run_id not in store

    @pytest.mark.asyncio
    async def test_running_runs_are_kept(self):
        store = RunStore(max_runs=1)
        gate = asyncio.Event()
        pipeline = Pipeline.construct([StageDescriptor(name="a", weight=1, work=RecordingWork(gate=gate))])
        first = PipelineRunner().start(pipeline, "x")
        second = PipelineRunner().start(pipeline, "y")
        store.add(first)
        store.add(second)
        assert len(store) == 2
        gate.set()
        await first.wait()
        await second.wait()

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            RunStore(max_runs=0)
