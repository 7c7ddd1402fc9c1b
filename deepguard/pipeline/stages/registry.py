"""
Stage registry for discovering and resolving stage plugins.

The registry maps stage types to plugin classes. Builtin stages are
registered on first use; custom stages can be registered at runtime.
Each lookup creates a fresh plugin instance configured with the given
params, so runs never share plugin state.
"""
from typing import Any, Dict, List, Optional, Type

from deepguard.core.logging import get_logger
from deepguard.pipeline.errors import UnknownStageTypeError
from deepguard.pipeline.stages.base import StagePlugin

logger = get_logger("stages.registry")


class StageRegistry:
    """
    Registry for stage plugins.

    Provides:
    - Registration of stage plugins by type
    - Resolution of plugins by type
    - Listing of available stages
    """

    _instance: Optional["StageRegistry"] = None

    def __init__(self):
        self._stages: Dict[str, Type[StagePlugin]] = {}

    @classmethod
    def get_instance(cls) -> "StageRegistry":
        """Get singleton instance."""
        if cls._instance is None:
            cls._instance = cls()
            cls._instance._register_builtins()
        return cls._instance

    def register(
        self,
        stage_type: str,
        plugin_class: Type[StagePlugin],
        override: bool = False,
    ) -> None:
        """
        Register a stage plugin.

        Args:
            stage_type: Registry key for this stage
            plugin_class: StagePlugin subclass
            override: If True, allow overwriting existing registration
        """
        if stage_type in self._stages and not override:
            raise ValueError(
                f"Stage type '{stage_type}' already registered. "
                f"Use override=True to replace."
            )

        self._stages[stage_type] = plugin_class
        logger.debug(f"Registered stage plugin: {stage_type}")

    def get(self, stage_type: str, params: Optional[Dict[str, Any]] = None) -> StagePlugin:
        """
        Create a stage plugin instance by type.

        Args:
            stage_type: Registry key
            params: Stage-specific configuration

        Returns:
            New StagePlugin instance

        Raises:
            UnknownStageTypeError: If stage type not registered
        """
        if stage_type not in self._stages:
            available = ", ".join(self.list_stages())
            raise UnknownStageTypeError(
                f"Unknown stage type: '{stage_type}'. "
                f"Available stages: {available}"
            )
        return self._stages[stage_type](params)

    def has(self, stage_type: str) -> bool:
        """Check if a stage type is registered."""
        return stage_type in self._stages

    def list_stages(self) -> List[str]:
        """List all registered stage types."""
        return sorted(self._stages.keys())

    def get_stage_info(self, stage_type: str) -> Dict[str, Any]:
        """Get metadata about a stage."""
        plugin = self.get(stage_type)
        return {
            "type": stage_type,
            "display_name": plugin.display_name,
            "default_weight": plugin.default_weight,
        }

    def list_stage_info(self) -> List[Dict[str, Any]]:
        """Get metadata for all registered stages."""
        return [self.get_stage_info(t) for t in self.list_stages()]

    def _register_builtins(self) -> None:
        """Register all builtin stage plugins."""
        # Import here to avoid circular imports
        from deepguard.pipeline.stages.builtins import BUILTIN_STAGES

        for plugin_class in BUILTIN_STAGES:
            # Create instance to get stage_type
            instance = plugin_class()
            self.register(instance.stage_type, plugin_class)

        logger.info(f"Registered {len(BUILTIN_STAGES)} builtin stage plugins")


def get_stage_registry() -> StageRegistry:
    """Get the global stage registry instance."""
    return StageRegistry.get_instance()
