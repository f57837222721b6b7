"""Tests for fit settings."""

import json
import tempfile
from pathlib import Path

import pytest

from pipy_prompt.settings import (
    CONFIG_DIR_NAME,
    SETTINGS_FILE_NAME,
    FitSettings,
    SummarySettings,
    clear_config_value_cache,
    deep_merge,
    dict_to_settings,
    load_settings,
    migrate_settings,
    resolve_config_value,
    settings_to_dict,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


def write_json(path: Path, data) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")


class TestDeepMerge:
    def test_nested_merge(self):
        """Test merging nested dictionaries."""
        base = {"summary": {"model": "a", "max_tokens": 10}}
        overrides = {"summary": {"max_tokens": 20}}

        assert deep_merge(base, overrides) == {"summary": {"model": "a", "max_tokens": 20}}

    def test_override_none_ignored(self):
        """Test that None values in overrides are ignored."""
        assert deep_merge({"a": 1}, {"a": None, "b": 2}) == {"a": 1, "b": 2}


class TestMigrateSettings:
    def test_camel_case_keys(self):
        data = migrate_settings(
            {"maxIterations": 5, "tokenizerModel": "gpt-4o", "summary": {"maxTokens": 200, "apiKey": "KEY"}}
        )
        assert data == {
            "max_iterations": 5,
            "tokenizer_model": "gpt-4o",
            "summary": {"max_tokens": 200, "api_key": "KEY"},
        }

    def test_snake_case_wins(self):
        data = migrate_settings({"maxIterations": 5, "max_iterations": 7})
        assert data["max_iterations"] == 7


class TestConversion:
    def test_dict_to_settings_ignores_unknown(self):
        settings = dict_to_settings({"max_iterations": 3, "bogus": 1, "summary": {"model": "m", "x": 2}})
        assert settings.max_iterations == 3
        assert settings.summary == SummarySettings(model="m")

    def test_round_trip(self):
        settings = FitSettings(max_iterations=2, summary=SummarySettings(max_tokens=50))
        assert dict_to_settings(settings_to_dict(settings)) == settings


class TestLoadSettings:
    def test_defaults_without_files(self, temp_dir):
        settings = load_settings(cwd=temp_dir, agent_dir=temp_dir)
        assert settings == FitSettings()

    def test_project_overrides_global(self, temp_dir):
        agent_dir = Path(temp_dir) / "agent"
        cwd = Path(temp_dir) / "project"
        write_json(agent_dir / SETTINGS_FILE_NAME, {"maxIterations": 10, "summary": {"model": "global"}})
        write_json(cwd / CONFIG_DIR_NAME / SETTINGS_FILE_NAME, {"summary": {"maxTokens": 99}})

        settings = load_settings(cwd=cwd, agent_dir=agent_dir)

        assert settings.max_iterations == 10
        assert settings.summary.model == "global"
        assert settings.summary.max_tokens == 99

    def test_invalid_json_ignored(self, temp_dir):
        path = Path(temp_dir) / SETTINGS_FILE_NAME
        path.write_text("{not json", encoding="utf-8")

        assert load_settings(cwd=temp_dir, agent_dir=temp_dir) == FitSettings()

    def test_non_object_ignored(self, temp_dir):
        write_json(Path(temp_dir) / SETTINGS_FILE_NAME, [1, 2, 3])
        assert load_settings(cwd=temp_dir, agent_dir=temp_dir) == FitSettings()


class TestResolveConfigValue:
    def setup_method(self):
        clear_config_value_cache()

    def test_literal(self, monkeypatch):
        monkeypatch.delenv("sk-literal-key", raising=False)
        assert resolve_config_value("sk-literal-key") == "sk-literal-key"

    def test_env_var(self, monkeypatch):
        monkeypatch.setenv("PIPY_TEST_KEY", "from-env")
        assert resolve_config_value("PIPY_TEST_KEY") == "from-env"

    def test_command(self):
        assert resolve_config_value("!echo hello") == "hello"

    def test_command_without_output(self):
        assert resolve_config_value("!true") is None

    def test_command_output_cached_until_cleared(self, temp_dir):
        counter = Path(temp_dir) / "runs"
        command = f"!echo run >> {counter} && wc -l < {counter}"

        assert resolve_config_value(command) == "1"
        assert resolve_config_value(command) == "1"

        clear_config_value_cache()
        assert resolve_config_value(command) == "2"
