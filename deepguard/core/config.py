"""
Configuration management for DeepGuard service.
"""
import os
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # API Settings
    app_name: str = "DeepGuard - Deepfake Video Analysis"
    version: str = "1.0.0"
    api_prefix: str = "/v1"

    # Logging
    log_level: str = os.getenv("DEEPGUARD_LOG_LEVEL", "INFO")

    # Decision policy
    detection_threshold: float = float(os.getenv("DEEPGUARD_DETECTION_THRESHOLD", "0.5"))

    # Multiplier applied to the simulated stage durations (0 = instant)
    stage_time_scale: float = float(os.getenv("DEEPGUARD_STAGE_TIME_SCALE", "1.0"))

    # Optional YAML pipeline definition; builtin stages are used when unset
    pipeline_config_path: Optional[str] = os.getenv("DEEPGUARD_PIPELINE_CONFIG") or None

    # Upload handling
    max_upload_mb: int = int(os.getenv("DEEPGUARD_MAX_UPLOAD_MB", "500"))
    upload_dir: str = os.getenv("DEEPGUARD_UPLOAD_DIR", "/tmp/deepguard/uploads")

    # Upper bound on runs kept in memory by the API
    max_tracked_runs: int = int(os.getenv("DEEPGUARD_MAX_TRACKED_RUNS", "64"))

    class Config:
        env_file = ".env"
        env_prefix = "DEEPGUARD_"
        case_sensitive = False


# Global settings instance
settings = Settings()
