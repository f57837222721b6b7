"""Fit settings with global/project hierarchy.

Settings are loaded from:
1. Global: ~/.pipy/prompt-settings.json
2. Project: <cwd>/.pi/prompt-settings.json

Project settings override global settings.
"""

import functools
import json
import logging
import os
import subprocess
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".pi"
SETTINGS_FILE_NAME = "prompt-settings.json"


@dataclass
class SummarySettings:
    """Settings for the default summarizer."""

    model: str = "anthropic/claude-sonnet-4-5"
    max_tokens: int = 1024
    temperature: float | None = None
    api_key: str | None = None  # Literal, env var name, or "!shell command"


@dataclass
class FitSettings:
    """Settings for fitting prompts to a budget."""

    max_iterations: int | None = None  # None = stop only on failure or fit
    tokenizer_model: str | None = None  # None = chars/4 estimate
    summary: SummarySettings = field(default_factory=SummarySettings)


DEFAULT_SETTINGS = FitSettings()


def get_default_agent_dir() -> Path:
    """Get the default global configuration directory."""
    return Path.home() / ".pipy"


def deep_merge(base: dict, overrides: dict) -> dict:
    """Layer ``overrides`` on top of ``base``; nested sections merge key by key.

    A ``None`` override means "not set here" and keeps the base value.
    """
    merged = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        current = merged.get(key)
        both_sections = isinstance(current, dict) and isinstance(value, dict)
        merged[key] = deep_merge(current, value) if both_sections else value
    return merged


def migrate_settings(data: dict) -> dict:
    """Migrate camelCase keys to snake_case."""
    key_migrations = {
        "maxIterations": "max_iterations",
        "tokenizerModel": "tokenizer_model",
    }
    for old_key, new_key in key_migrations.items():
        if old_key in data and new_key not in data:
            data[new_key] = data.pop(old_key)

    if "summary" in data and isinstance(data["summary"], dict):
        summary = data["summary"]
        if "maxTokens" in summary:
            summary["max_tokens"] = summary.pop("maxTokens")
        if "apiKey" in summary:
            summary["api_key"] = summary.pop("apiKey")

    return data


def dict_to_settings(data: dict) -> FitSettings:
    """Convert a dictionary to FitSettings, ignoring unknown keys."""
    data = dict(data)
    if "summary" in data and isinstance(data["summary"], dict):
        valid_summary = {f.name for f in fields(SummarySettings)}
        data["summary"] = SummarySettings(
            **{k: v for k, v in data["summary"].items() if k in valid_summary}
        )

    valid_fields = {f.name for f in fields(FitSettings)}
    return FitSettings(**{k: v for k, v in data.items() if k in valid_fields})


def settings_to_dict(settings: FitSettings) -> dict:
    """Convert FitSettings to a plain dictionary."""
    return asdict(settings)


def _load_from_file(path: Path) -> dict:
    if not path.exists():
        return {}

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Could not load settings from {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring settings in {path}: expected a JSON object")
        return {}
    return migrate_settings(data)


def load_settings(
    cwd: str | Path | None = None,
    agent_dir: str | Path | None = None,
) -> FitSettings:
    """Load settings, project overriding global.

    Args:
        cwd: Working directory for project settings
        agent_dir: Global config directory (default: ~/.pipy)
    """
    cwd_path = Path(cwd) if cwd else Path.cwd()
    agent_path = Path(agent_dir) if agent_dir else get_default_agent_dir()

    global_settings = _load_from_file(agent_path / SETTINGS_FILE_NAME)
    project_settings = _load_from_file(cwd_path / CONFIG_DIR_NAME / SETTINGS_FILE_NAME)

    merged = deep_merge(global_settings, project_settings)
    return dict_to_settings(merged) if merged else FitSettings()


# === Config value resolution ===

COMMAND_PREFIX = "!"
COMMAND_TIMEOUT_SECONDS = 10


def resolve_config_value(config: str) -> str | None:
    """Turn a settings value such as ``summary.api_key`` into the secret it names.

    ``"!op read op://vault/key"`` runs a shell command and uses its trimmed
    stdout, cached per process. The name of a set environment variable yields
    that variable's value. Anything else is used as written.
    """
    if config.startswith(COMMAND_PREFIX):
        return _run_config_command(config[len(COMMAND_PREFIX):])
    return os.environ.get(config) or config


@functools.lru_cache(maxsize=None)
def _run_config_command(command: str) -> str | None:
    try:
        completed = subprocess.run(
            command,
            shell=True,
            capture_output=True,
            text=True,
            timeout=COMMAND_TIMEOUT_SECONDS,
        )
    except (subprocess.TimeoutExpired, OSError) as e:
        logger.warning(f"Config command {command!r} failed: {e}")
        return None
    return completed.stdout.strip() or None


def clear_config_value_cache() -> None:
    """Forget cached command output so the next lookup runs commands again."""
    _run_config_command.cache_clear()
