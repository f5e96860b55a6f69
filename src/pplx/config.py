"""Central configuration for paths, constants and user settings."""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

# Data directory, override with PPLX_DATA_DIR env var
DATA_DIR = Path(os.environ.get("PPLX_DATA_DIR", str(Path.home() / ".pplx")))

SESSIONS_DIR = DATA_DIR / "sessions"
CONFIG_PATH = DATA_DIR / "config.json"

# Remote API
API_ENDPOINT = "https://api.perplexity.ai/chat/completions"
DEFAULT_MODEL = "sonar"
KNOWN_MODELS = (
    "sonar",
    "sonar-pro",
    "sonar-deep-research",
    "sonar-reasoning",
    "sonar-reasoning-pro",
)

# Stored messages sent along with each new question
MAX_CONTEXT_MESSAGES = 20

ENV_PREFIX = "PPLX_"

# Never written to the config file
_SECRET_FIELDS = {"api_key"}


class Settings(BaseModel):
    api_key: str = ""
    model: str = DEFAULT_MODEL
    max_tokens: int = Field(0, ge=0)  # 0 means the model default
    temperature: float = Field(0.2, ge=0, lt=2)
    top_p: float = Field(0.9, ge=0, le=1)
    search_context_size: str = "low"
    search_mode: str = "web"
    reasoning_effort: str = "medium"
    sessions_dir: Path = SESSIONS_DIR
    context_window: int = Field(MAX_CONTEXT_MESSAGES, ge=0)
    timeout: float = Field(30.0, gt=0)
    max_retries: int = Field(3, ge=0)

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigError(
                "API key is required. Set PPLX_API_KEY environment variable "
                f"or add api_key to {CONFIG_PATH}"
            )
        return self.api_key


def _read_config_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Failed to read config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def _read_env() -> dict[str, str]:
    values: dict[str, str] = {}
    for name in Settings.model_fields:
        value = os.environ.get(ENV_PREFIX + name.upper())
        if value:
            values[name] = value
    return values


def load_settings(config_file: Path | None = None, **overrides: Any) -> Settings:
    """Load settings: defaults, then the config file, then PPLX_* env vars, then overrides.

    Overrides with a value of None are ignored so CLI options can be passed
    through unconditionally.
    """
    values = _read_config_file(config_file or CONFIG_PATH)
    values.update(_read_env())
    values.update({k: v for k, v in overrides.items() if v is not None})

    try:
        return Settings.model_validate(values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def save_settings(settings: Settings, path: Path | None = None) -> Path:
    """Write settings to the config file, leaving out the API key."""
    path = path or CONFIG_PATH
    data = settings.model_dump(mode="json", exclude=_SECRET_FIELDS)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Failed to write config file {path}: {e}") from e
    return path


def init_config(path: Path | None = None) -> bool:
    """Create a default config file. Returns False if one already exists."""
    path = path or CONFIG_PATH
    if path.exists():
        return False
    save_settings(Settings(), path)
    return True
