"""Configuration for Ass Chat.

Config discovery (first match wins):
  1. ``--config`` flag
  2. ``./ass_chat.yaml``
  3. ``~/.config/ass-chat/config.yaml``
  4. Built-in defaults

Environment variables ``ASS_CHAT_ENDPOINT``, ``ASS_CHAT_API_KEY`` and
``ASS_CHAT_MODEL`` override whatever the file says.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import AliasChoices, BaseModel, ConfigDict, Field

_logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://localhost:8080/v1/chat/completions"
DEFAULT_MODEL = "ass-default"
DEFAULT_TIMEOUT = 120.0


class AssConfig(BaseModel):
    """Backend settings.  An empty ``api_key`` means no auth header is sent.

    File keys may use the editor-style names (``apiEndpoint``, ``apiKey``).

    ``timeout`` bounds writes and pool waits only.  Connects are capped at
    30s and reads at 300s (one-shot) or 60s between stream chunks.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    endpoint: str = Field(
        default=DEFAULT_ENDPOINT,
        validation_alias=AliasChoices("endpoint", "api_endpoint", "apiEndpoint"),
    )
    api_key: str = Field(
        default="", validation_alias=AliasChoices("api_key", "apiKey"),
    )
    model: str = DEFAULT_MODEL
    timeout: float = DEFAULT_TIMEOUT

    def with_overrides(self, **overrides: Any) -> AssConfig:
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return self.model_copy(update=changes) if changes else self


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./ass_chat.yaml"),
    Path.home() / ".config" / "ass-chat" / "config.yaml",
]

_ENV_VARS = {
    "endpoint": "ASS_CHAT_ENDPOINT",
    "api_key": "ASS_CHAT_API_KEY",
    "model": "ASS_CHAT_MODEL",
}


def _apply_env(config: AssConfig, environ: Mapping[str, str]) -> AssConfig:
    overrides = {
        field_name: environ[var]
        for field_name, var in _ENV_VARS.items()
        if var in environ
    }
    if overrides:
        _logger.debug("Config overridden from environment: %s", sorted(overrides))
    return config.with_overrides(**overrides)


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> AssConfig:
    """Load configuration from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.
    environ:
        Environment to read overrides from (defaults to ``os.environ``).

    Returns
    -------
    AssConfig
    """
    env = os.environ if environ is None else environ
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            _logger.warning("Config file not found: %s, using defaults", path)
            return _apply_env(AssConfig(), env)
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found, using defaults")
        return _apply_env(AssConfig(), env)

    _logger.info("Loading config from %s", config_path)
    with open(config_path) as f:
        raw: dict[str, Any] = yaml.safe_load(f) or {}

    # Settings may live under "chat:" or at the top level
    section = raw.get("chat", raw)
    if not isinstance(section, dict):
        section = {}
    return _apply_env(AssConfig.model_validate(section), env)
