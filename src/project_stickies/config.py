"""Runtime settings read from the environment (and ``.env`` via python-dotenv)."""

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from project_stickies.llm.profiles import DEFAULT_PROFILE, ModelProfile

DEFAULT_HOME = "~/.project-stickies"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class ConfigError(ValueError):
    """Raised when an environment setting has an invalid value."""


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    anthropic_api_key: str | None = None
    openai_api_key: str | None = None
    model_profile: ModelProfile = DEFAULT_PROFILE
    llm_provider: Literal["auto", "anthropic", "openai"] = "auto"
    llm_fallback_provider: Literal["anthropic", "openai"] | None = None
    allow_llm_fallback: bool = False
    auto_context_enabled: bool = True
    home: Path = Path(DEFAULT_HOME).expanduser()
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from ``env`` (defaults to ``os.environ``).

    Auto-discovery stays on unless ENABLE_AUTO_CONTEXT is exactly ``false``.

    Raises:
        ConfigError: If a value is invalid
    """
    env = os.environ if env is None else env
    try:
        return Settings(
            anthropic_api_key=env.get("ANTHROPIC_API_KEY") or env.get("CLAUDE_CODE_OAUTH_TOKEN"),
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            model_profile=env.get("STICKIES_MODEL_PROFILE") or DEFAULT_PROFILE,
            llm_provider=env.get("STICKIES_LLM_PROVIDER") or "auto",
            llm_fallback_provider=env.get("STICKIES_LLM_FALLBACK_PROVIDER") or None,
            allow_llm_fallback=_parse_bool(
                "STICKIES_ALLOW_LLM_FALLBACK", env.get("STICKIES_ALLOW_LLM_FALLBACK", "")
            ),
            auto_context_enabled=env.get("ENABLE_AUTO_CONTEXT") != "false",
            home=Path(env.get("STICKIES_HOME") or DEFAULT_HOME).expanduser(),
            log_level=(env.get("STICKIES_LOG_LEVEL") or "WARNING").upper(),
        )
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
