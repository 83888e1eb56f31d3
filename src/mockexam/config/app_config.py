"""Application configuration loader.

Loads pipeline settings from configs/mockexam.yaml (override the path with
the MOCKEXAM_CONFIG environment variable). Missing file or missing keys fall
back to defaults. The `llm:` section of the same file is read by
LLMConfig.from_yaml in mockexam.llm.client.

Usage:
    from mockexam.config.app_config import load_app_config

    config = load_app_config()
    config.generation.max_attempts
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

CONFIG_FILE = Path("configs/mockexam.yaml")
CONFIG_ENV_VAR = "MOCKEXAM_CONFIG"


@dataclass
class GenerationConfig:
    """Exam generation settings."""

    max_attempts: int = 3
    temperature: float = 0.2
    max_material_chars: int = 120000


@dataclass
class GradingConfig:
    """Open-form grading settings."""

    temperature: float = 0.1
    history_limit: int = 10
    mistakes_limit: int = 20
    field_max_chars: int = 600


@dataclass
class TrainingConfig:
    """Training material settings."""

    temperature: float = 0.4
    mistakes_window: int = 40
    field_max_chars: int = 1200
    model_answer_max_chars: int = 1600


@dataclass
class AppConfig:
    """Application-wide configuration."""

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    grading: GradingConfig = field(default_factory=GradingConfig)
    training: TrainingConfig = field(default_factory=TrainingConfig)


# Module-level cache
_cached_config: AppConfig | None = None


def resolve_config_path() -> Path:
    """Config file path, honouring MOCKEXAM_CONFIG."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return CONFIG_FILE


def read_config_file(path: Path | None = None) -> dict[str, Any]:
    """Read the YAML config file into a dict (empty when missing)."""
    if path is None:
        path = resolve_config_path()

    if not path.exists():
        logger.info("using_default_config", path=str(path))
        return {}

    logger.debug("loading_app_config", source=str(path))
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data if isinstance(data, dict) else {}


def _parse_config(data: dict[str, Any]) -> AppConfig:
    """Parse configuration dictionary into AppConfig object."""
    gen = data.get("generation") or {}
    grading = data.get("grading") or {}
    training = data.get("training") or {}

    defaults = AppConfig()

    return AppConfig(
        generation=GenerationConfig(
            max_attempts=int(gen.get("max_attempts", defaults.generation.max_attempts)),
            temperature=float(gen.get("temperature", defaults.generation.temperature)),
            max_material_chars=int(
                gen.get("max_material_chars", defaults.generation.max_material_chars)
            ),
        ),
        grading=GradingConfig(
            temperature=float(grading.get("temperature", defaults.grading.temperature)),
            history_limit=int(grading.get("history_limit", defaults.grading.history_limit)),
            mistakes_limit=int(grading.get("mistakes_limit", defaults.grading.mistakes_limit)),
            field_max_chars=int(
                grading.get("field_max_chars", defaults.grading.field_max_chars)
            ),
        ),
        training=TrainingConfig(
            temperature=float(training.get("temperature", defaults.training.temperature)),
            mistakes_window=int(
                training.get("mistakes_window", defaults.training.mistakes_window)
            ),
            field_max_chars=int(
                training.get("field_max_chars", defaults.training.field_max_chars)
            ),
            model_answer_max_chars=int(
                training.get(
                    "model_answer_max_chars", defaults.training.model_answer_max_chars
                )
            ),
        ),
    )


def load_app_config(force_reload: bool = False, path: Path | None = None) -> AppConfig:
    """Load application config.

    Args:
        force_reload: If True, ignore cached config and reload from file.
        path: Explicit config file (bypasses the cache).

    Returns:
        AppConfig object with all settings.
    """
    global _cached_config

    if path is not None:
        return _parse_config(read_config_file(path))

    if _cached_config is not None and not force_reload:
        return _cached_config

    _cached_config = _parse_config(read_config_file())
    return _cached_config


def clear_config_cache() -> None:
    """Clear the configuration cache.

    Useful for testing or when config is modified at runtime.
    """
    global _cached_config
    _cached_config = None
