"""Tests for configuration loading."""

from pathlib import Path

import pytest

from page_budget.config import AppConfig, load_config


class TestLoadConfig:
    """Tests for load_config."""

    def test_missing_file_uses_defaults(self, tmp_path):
        config = load_config(tmp_path / "config.yaml")
        assert config.project_root == tmp_path
        assert config.summary.budgets_path is None
        assert config.summary.output_format == "table"
        assert config.logging.level == "INFO"

    def test_values_and_unknown_keys(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "summary:\n"
            "  budgets_path: budgets.yaml\n"
            "  output_format: json\n"
            "  colour: true\n"
            "logging:\n"
            "  level: DEBUG\n"
        )
        config = load_config(path)
        assert config.summary.budgets_path == "budgets.yaml"
        assert config.summary.output_format == "json"
        assert config.logging.level == "DEBUG"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert load_config(path).summary.entities_path is None

    def test_invalid_output_format(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("summary:\n  output_format: xml\n")
        with pytest.raises(ValueError):
            load_config(path)


class TestResolvePath:
    """Tests for AppConfig.resolve_path."""

    def test_relative(self, tmp_path):
        config = AppConfig(project_root=tmp_path)
        assert config.resolve_path("budgets.yaml") == tmp_path / "budgets.yaml"

    def test_absolute(self, tmp_path):
        config = AppConfig(project_root=Path("/elsewhere"))
        assert config.resolve_path(str(tmp_path / "b.yaml")) == tmp_path / "b.yaml"
