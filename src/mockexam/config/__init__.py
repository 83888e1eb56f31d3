"""Configuration package for the mock exam pipeline."""

from mockexam.config.app_config import (
    AppConfig,
    GenerationConfig,
    GradingConfig,
    TrainingConfig,
    clear_config_cache,
    load_app_config,
)

__all__ = [
    "AppConfig",
    "GenerationConfig",
    "GradingConfig",
    "TrainingConfig",
    "clear_config_cache",
    "load_app_config",
]
