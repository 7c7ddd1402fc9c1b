"""
Tests for pipeline configuration files, the stage registry and the builtin
simulated stages.
"""
import pytest

from conftest import instant_pipeline
from deepguard.core.config import settings
from deepguard.pipeline import (
    InvalidPipelineError,
    PipelineRunner,
    RunState,
    StageContext,
    StageOutcome,
    StagePlugin,
)
from deepguard.pipeline.config import (
    DEFAULT_STAGE_TYPES,
    build_default_pipeline,
    build_pipeline,
    load_pipeline_config,
    parse_pipeline_config,
)
from deepguard.pipeline.errors import UnknownStageTypeError
from deepguard.pipeline.stages.registry import StageRegistry, get_stage_registry
from deepguard.utils.media import MediaHandle

VALID_YAML = """
version: v1
threshold: 0.6
decision_keys: [face_analysis]
stages:
  - name: frames
    type: load_frames
    params:
      time_scale: 0
  - name: faces
    type: face_detection
    weight: 2
    params:
      time_scale: 0
"""


class ConstantStage(StagePlugin):
    """Custom plugin used to test registration."""

    @property
    def stage_type(self) -> str:
        return "constant"

    async def run(self, context: StageContext) -> StageOutcome:
        return StageOutcome(sub_scores={"constant": float(self.params.get("value", 0.5))})


class TestRegistry:

    def test_builtins_registered(self):
        registry = get_stage_registry()
        for stage_type in DEFAULT_STAGE_TYPES:
            assert registry.has(stage_type)

    def test_get_returns_fresh_configured_instances(self):
        registry = get_stage_registry()
        a = registry.get("face_detection", {"duration": 0.1})
        b = registry.get("face_detection")
        assert a is not b
        assert a.duration == 0.1
        assert b.duration == 1.2

    def test_unknown_stage(self):
        with pytest.raises(UnknownStageTypeError) as exc_info:
            get_stage_registry().get("does_not_exist")
        assert "Available stages" in str(exc_info.value)

    def test_duplicate_registration_requires_override(self):
        registry = StageRegistry()
        registry.register("constant", ConstantStage)
        with pytest.raises(ValueError):
            registry.register("constant", ConstantStage)
        registry.register("constant", ConstantStage, override=True)
        assert registry.list_stages() == ["constant"]

    def test_stage_info(self):
        info = get_stage_registry().get_stage_info("artifact_detection")
        assert info == {
            "type": "artifact_detection",
            "display_name": "Artifact detection",
            "default_weight": 0.9,
        }


class TestPipelineConfig:

    def test_load_yaml_text(self):
        config = load_pipeline_config(VALID_YAML)
        assert config.threshold == 0.6
        assert [s.stage_name for s in config.stages] == ["frames", "faces"]

    def test_load_yaml_file(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text(VALID_YAML)
        assert len(load_pipeline_config(path).stages) == 2
        assert len(load_pipeline_config(str(path)).stages) == 2

    def test_build_from_yaml(self):
        pipeline = build_pipeline(load_pipeline_config(VALID_YAML))
        assert pipeline.stage_names == ("frames", "faces")
        # frames takes the plugin default (its nominal duration)
        assert pipeline.total_weight() == pytest.approx(2.8)
        assert pipeline.threshold == 0.6
        assert pipeline.decision_keys == frozenset({"face_analysis"})
        assert pipeline[1].label == "Face detection & extraction"

    @pytest.mark.parametrize("text, message", [
        ("stages: [", "Invalid YAML"),
        ("- just a list", "mapping"),
        ("stages: []", "Invalid pipeline configuration"),
        ("version: v9\nstages: [{type: load_frames}]", "Unsupported schema version"),
        ("stages: [{type: load_frames}, {type: load_frames}]", "Duplicate stage name"),
        ("stages: [{type: load_frames, weight: 0}]", "Invalid pipeline configuration"),
        ("threshold: 2\nstages: [{type: load_frames}]", "Invalid pipeline configuration"),
    ])
    def test_invalid_config(self, text, message):
        with pytest.raises(InvalidPipelineError) as exc_info:
            load_pipeline_config(text)
        assert message in str(exc_info.value)

    def test_unknown_stage_type(self):
        config = parse_pipeline_config({"stages": [{"type": "nope"}]})
        with pytest.raises(InvalidPipelineError) as exc_info:
            build_pipeline(config)
        assert "Unknown stage type" in str(exc_info.value)

    def test_custom_registry(self):
        registry = StageRegistry()
        registry.register("constant", ConstantStage)
        config = parse_pipeline_config({
            "stages": [
                {"type": "constant", "name": "low", "params": {"value": 0.2}},
                {"type": "constant", "name": "high", "params": {"value": 0.4}},
            ]
        })
        pipeline = build_pipeline(config, registry)
        assert pipeline.stage_names == ("low", "high")

    def test_default_pipeline_from_settings_path(self, tmp_path, monkeypatch):
        path = tmp_path / "pipeline.yaml"
        path.write_text(VALID_YAML)
        monkeypatch.setattr(settings, "pipeline_config_path", str(path))
        assert build_default_pipeline().stage_names == ("frames", "faces")

    def test_default_pipeline_builtin(self, monkeypatch):
        monkeypatch.setattr(settings, "pipeline_config_path", None)
        pipeline = build_default_pipeline()
        assert list(pipeline.stage_names) == DEFAULT_STAGE_TYPES
        assert pipeline.total_weight() == pytest.approx(5.6)


class TestBuiltinStages:

    @pytest.fixture
    def media(self, tmp_path):
        path = tmp_path / "clip.mp4"
        path.write_bytes(b"x" * 4096 * 1024)
        return MediaHandle(path=path, size_bytes=4096 * 1024, fingerprint="abc123")

    @pytest.mark.asyncio
    async def test_default_pipeline_runs(self, media):
        run = await PipelineRunner().run(instant_pipeline(), media)
        assert run.state() is RunState.SUCCEEDED
        result = run.result()
        assert set(result.sub_scores) == {
            "face_analysis",
            "temporal_consistency",
            "artifact_detection",
            "neural_inference",
        }
        assert all(0.0 <= v <= 1.0 for v in result.sub_scores.values())
        assert len(run.progress_events()) == 6

    @pytest.mark.asyncio
    async def test_results_are_deterministic_per_input(self, media):
        first = await PipelineRunner().run(instant_pipeline(), media)
        second = await PipelineRunner().run(instant_pipeline(), media)
        assert first.result().sub_scores == second.result().sub_scores
        assert first.result().classification == second.result().classification

    @pytest.mark.asyncio
    async def test_different_inputs_score_differently(self, media):
        other = MediaHandle(path=media.path, size_bytes=media.size_bytes, fingerprint="zzz999")
        first = await PipelineRunner().run(instant_pipeline(), media)
        second = await PipelineRunner().run(instant_pipeline(), other)
        assert first.result().sub_scores != second.result().sub_scores

    @pytest.mark.asyncio
    async def test_inference_uses_previous_scores(self, media):
        registry = get_stage_registry()
        plugin = registry.get("neural_inference", {"time_scale": 0, "prior_weight": 1.0})
        context = StageContext(
            input=media,
            stage_name="neural_inference",
            stage_index=3,
            previous={"faces": StageOutcome(sub_scores={"face_analysis": 0.8})},
        )
        outcome = await plugin.run(context)
        assert outcome.sub_scores["neural_inference"] == pytest.approx(0.8)
        assert outcome.data["signals_used"] == 1

    @pytest.mark.asyncio
    async def test_classification_requires_signals(self, media):
        plugin = get_stage_registry().get("final_classification", {"time_scale": 0})
        context = StageContext(input=media, stage_name="final", stage_index=0)
        with pytest.raises(ValueError):
            await plugin.run(context)

    @pytest.mark.asyncio
    async def test_frames_clamped_for_small_files(self, tmp_path):
        small = MediaHandle(path=tmp_path / "tiny.mp4", size_bytes=2048, fingerprint="f")
        plugin = get_stage_registry().get("load_frames", {"time_scale": 0})
        outcome = await plugin.run(StageContext(input=small, stage_name="frames", stage_index=0))
        assert 1 <= outcome.data["frames_sampled"] <= 2
