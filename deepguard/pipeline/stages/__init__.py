"""
Stage plugin system for pluggable pipeline execution.

- StageDescriptor: name, weight and work unit of one stage
- StagePlugin: Base interface for reusable stage implementations
- StageRegistry: Registry for discovering and resolving stages
"""
from deepguard.pipeline.stages.base import (
    StageContext,
    StageDescriptor,
    StageOutcome,
    StagePlugin,
    StageStatus,
)
from deepguard.pipeline.stages.registry import StageRegistry, get_stage_registry

__all__ = [
    "StageContext",
    "StageDescriptor",
    "StageOutcome",
    "StagePlugin",
    "StageStatus",
    "StageRegistry",
    "get_stage_registry",
]
