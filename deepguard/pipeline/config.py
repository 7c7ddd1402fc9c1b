"""
Pipeline configuration files.

Pipelines can be declared in YAML and resolved against the stage registry:

```yaml
version: v1
threshold: 0.5
decision_keys: [face_analysis, neural_inference]
stages:
  - name: frames
    type: load_frames
  - name: faces
    type: face_detection
    weight: 2
    params:
      duration: 0.5
```

Stage weights default to the plugin's default weight (its nominal duration
for the builtin stages). Every validation problem surfaces as
InvalidPipelineError.
"""
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from deepguard.core.config import settings
from deepguard.core.logging import get_logger
from deepguard.pipeline.definition import Pipeline
from deepguard.pipeline.errors import InvalidPipelineError, UnknownStageTypeError
from deepguard.pipeline.stages.base import StageDescriptor
from deepguard.pipeline.stages.registry import StageRegistry, get_stage_registry

logger = get_logger("pipeline.config")

SUPPORTED_VERSIONS = ("v1",)

# Builtin stages in execution order
DEFAULT_STAGE_TYPES = [
    "load_frames",
    "face_detection",
    "temporal_consistency",
    "artifact_detection",
    "neural_inference",
    "final_classification",
]


class StageConfig(BaseModel):
    """Configuration of one stage in a pipeline file."""
    type: str = Field(..., min_length=1, max_length=50)
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    weight: Optional[float] = Field(default=None, gt=0)
    display_name: Optional[str] = Field(default=None, max_length=100)
    params: Dict[str, Any] = Field(default_factory=dict)

    @property
    def stage_name(self) -> str:
        return self.name or self.type


class PipelineConfig(BaseModel):
    """Configuration of a whole pipeline."""
    version: str = Field(default="v1")
    threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    decision_keys: Optional[List[str]] = None
    stages: List[StageConfig] = Field(..., min_length=1)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if v not in SUPPORTED_VERSIONS:
            raise ValueError(f"Unsupported schema version: {v}. Supported: {', '.join(SUPPORTED_VERSIONS)}")
        return v

    @model_validator(mode="after")
    def validate_unique_names(self):
        seen = set()
        for stage in self.stages:
            if stage.stage_name in seen:
                raise ValueError(f"Duplicate stage name: '{stage.stage_name}'")
            seen.add(stage.stage_name)
        return self


def default_pipeline_config(threshold: Optional[float] = None) -> PipelineConfig:
    """Configuration of the builtin six-stage analysis."""
    return PipelineConfig(
        threshold=settings.detection_threshold if threshold is None else threshold,
        stages=[StageConfig(type=t) for t in DEFAULT_STAGE_TYPES],
    )


def parse_pipeline_config(data: Dict[str, Any]) -> PipelineConfig:
    """
    Validate a pipeline configuration mapping.

    Raises:
        InvalidPipelineError: With pydantic's messages on failure
    """
    try:
        return PipelineConfig.model_validate(data)
    except ValidationError as e:
        raise InvalidPipelineError(f"Invalid pipeline configuration: {e}") from e


def load_pipeline_config(source: Union[str, Path]) -> PipelineConfig:
    """
    Load a pipeline configuration from a YAML file path or YAML text.

    Args:
        source: Path object, path string of an existing file, or raw YAML

    Returns:
        Validated PipelineConfig
    """
    if isinstance(source, Path) or (isinstance(source, str) and "\n" not in source and Path(source).is_file()):
        path = Path(source)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError as e:
            raise InvalidPipelineError(f"Cannot read pipeline config {path}: {e}") from e
        logger.info(f"Loading pipeline config from {path}")
    else:
        text = source

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidPipelineError(f"Invalid YAML syntax: {e}") from e

    if not isinstance(data, dict):
        raise InvalidPipelineError("YAML root must be a mapping/object")

    return parse_pipeline_config(data)


def build_pipeline(
    config: PipelineConfig,
    registry: Optional[StageRegistry] = None,
    **pipeline_kwargs,
) -> Pipeline:
    """
    Resolve every stage of `config` against the registry and build a Pipeline.

    Args:
        config: Validated pipeline configuration
        registry: Stage registry (defaults to the global one)
        **pipeline_kwargs: Extra Pipeline arguments (decision, confidence)

    Raises:
        InvalidPipelineError: Unknown stage type or invalid pipeline
    """
    registry = registry or get_stage_registry()

    stages = []
    for stage_config in config.stages:
        try:
            plugin = registry.get(stage_config.type, stage_config.params)
        except UnknownStageTypeError as e:
            raise InvalidPipelineError(str(e)) from e
        stages.append(StageDescriptor(
            name=stage_config.stage_name,
            weight=stage_config.weight if stage_config.weight is not None else plugin.default_weight,
            work=plugin,
            display_name=stage_config.display_name or plugin.display_name,
        ))

    pipeline = Pipeline.construct(
        stages,
        threshold=config.threshold,
        decision_keys=config.decision_keys,
        **pipeline_kwargs,
    )
    logger.info(f"Built pipeline: {list(pipeline.stage_names)}")
    return pipeline


def build_default_pipeline(
    registry: Optional[StageRegistry] = None,
    **pipeline_kwargs,
) -> Pipeline:
    """
    Build the pipeline configured for this process.

    Uses settings.pipeline_config_path when set, the builtin stages otherwise.
    """
    if settings.pipeline_config_path:
        config = load_pipeline_config(Path(settings.pipeline_config_path))
    else:
        config = default_pipeline_config()
    return build_pipeline(config, registry, **pipeline_kwargs)
