"""Tests for app configuration.

Tests the configuration loading, env override of the file path, and
fallbacks to defaults.
"""

from mockexam.config.app_config import (
    AppConfig,
    GenerationConfig,
    clear_config_cache,
    load_app_config,
    read_config_file,
)


class TestLoadAppConfig:
    """Tests for load_app_config function."""

    def test_missing_file_uses_defaults(self, tmp_path):
        """Defaults apply when there is no config file."""
        config = load_app_config(path=tmp_path / "missing.yaml")

        assert isinstance(config, AppConfig)
        assert config.generation.max_attempts == 3
        assert config.generation.temperature == 0.2
        assert config.grading.temperature == 0.1
        assert config.grading.history_limit == 10
        assert config.grading.mistakes_limit == 20
        assert config.training.mistakes_window == 40

    def test_partial_file(self, tmp_path):
        """Keys missing from the file keep their defaults."""
        config_path = tmp_path / "mockexam.yaml"
        config_path.write_text("generation:\n  max_attempts: 5\ngrading:\n  history_limit: 3\n")

        config = load_app_config(path=config_path)

        assert config.generation.max_attempts == 5
        assert config.generation.temperature == GenerationConfig().temperature
        assert config.grading.history_limit == 3
        assert config.grading.mistakes_limit == 20

    def test_env_var_selects_file(self, tmp_path, monkeypatch):
        """MOCKEXAM_CONFIG points at another file."""
        config_path = tmp_path / "custom.yaml"
        config_path.write_text("training:\n  mistakes_window: 12\n")
        monkeypatch.setenv("MOCKEXAM_CONFIG", str(config_path))

        config = load_app_config(force_reload=True)

        assert config.training.mistakes_window == 12

    def test_cached(self, tmp_path, monkeypatch):
        """Second call returns the cached object until the cache is cleared."""
        monkeypatch.setenv("MOCKEXAM_CONFIG", str(tmp_path / "missing.yaml"))

        first = load_app_config()
        assert load_app_config() is first

        clear_config_cache()
        assert load_app_config() is not first

    def test_repository_config_matches_defaults(self, monkeypatch):
        """configs/mockexam.yaml restates the built-in defaults."""
        monkeypatch.delenv("MOCKEXAM_CONFIG", raising=False)

        assert load_app_config(force_reload=True) == AppConfig()


class TestReadConfigFile:
    """Tests for read_config_file function."""

    def test_non_mapping_yaml(self, tmp_path):
        config_path = tmp_path / "list.yaml"
        config_path.write_text("- a\n- b\n")

        assert read_config_file(config_path) == {}

    def test_empty_file(self, tmp_path):
        config_path = tmp_path / "empty.yaml"
        config_path.write_text("")

        assert read_config_file(config_path) == {}
