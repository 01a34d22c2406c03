"""Shared not7 configuration utilities.

Reads ~/.not7/configuration.json and the process environment into a
``Not7Config`` value. The value is passed explicitly to the execution
manager, the executor and the tool-manager factory; nothing here is
cached at module level.

Example configuration file::

    {
      "llm": {"api_key": "sk-...", "default_model": "gpt-4"},
      "builtin": {"serp_api_key": "..."},
      "arcade": {"api_key": "...", "user_id": "me@example.com"},
      "executions_dir": "./executions",
      "log_dir": "./logs"
    }
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Low-level config file access
# ---------------------------------------------------------------------------

NOT7_CONFIG_FILE = Path.home() / ".not7" / "configuration.json"

DEFAULT_MODEL = "gpt-4"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 2000


def get_not7_config(path: Path | None = None) -> dict[str, Any]:
    """Load the raw configuration dict; a missing or unreadable file yields {}."""
    config_file = Path(path) if path else NOT7_CONFIG_FILE
    if not config_file.exists():
        return {}
    try:
        with open(config_file, encoding="utf-8-sig") as f:
            data = json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning(f"Ignoring unreadable config file {config_file}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Ignoring config file {config_file}: expected a JSON object")
        return {}
    return data


# ---------------------------------------------------------------------------
# Typed configuration
# ---------------------------------------------------------------------------


@dataclass
class LLMSettings:
    """Reasoning backend credentials and defaults for ReAct nodes."""

    api_key: str | None = None
    api_base: str | None = None
    default_model: str = DEFAULT_MODEL
    default_temperature: float = DEFAULT_TEMPERATURE
    default_max_tokens: int = DEFAULT_MAX_TOKENS


@dataclass
class BuiltinToolsSettings:
    serp_api_key: str = ""


@dataclass
class ArcadeSettings:
    api_key: str = ""
    user_id: str = ""


@dataclass
class Not7Config:
    """Runtime configuration handed to the engine's constructors."""

    llm: LLMSettings = field(default_factory=LLMSettings)
    builtin: BuiltinToolsSettings = field(default_factory=BuiltinToolsSettings)
    arcade: ArcadeSettings = field(default_factory=ArcadeSettings)
    executions_dir: Path = field(default_factory=lambda: Path("./executions"))
    log_dir: Path = field(default_factory=lambda: Path("./logs"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Not7Config":
        llm = data.get("llm") or {}
        builtin = data.get("builtin") or {}
        arcade = data.get("arcade") or {}
        return cls(
            llm=LLMSettings(
                api_key=llm.get("api_key"),
                api_base=llm.get("api_base"),
                default_model=llm.get("default_model", DEFAULT_MODEL),
                default_temperature=float(llm.get("default_temperature", DEFAULT_TEMPERATURE)),
                default_max_tokens=int(llm.get("default_max_tokens", DEFAULT_MAX_TOKENS)),
            ),
            builtin=BuiltinToolsSettings(serp_api_key=builtin.get("serp_api_key", "")),
            arcade=ArcadeSettings(
                api_key=arcade.get("api_key", ""),
                user_id=arcade.get("user_id", ""),
            ),
            executions_dir=Path(data.get("executions_dir", "./executions")),
            log_dir=Path(data.get("log_dir", "./logs")),
        )

    @classmethod
    def load(
        cls,
        path: Path | None = None,
        environ: dict[str, str] | None = None,
    ) -> "Not7Config":
        """
        Build configuration from the config file, then apply environment overrides.

        Recognized variables: OPENAI_API_KEY, NOT7_DEFAULT_MODEL, SERP_API_KEY,
        ARCADE_API_KEY, ARCADE_USER_ID, NOT7_EXECUTIONS_DIR, NOT7_LOG_DIR.
        """
        env = os.environ if environ is None else environ
        config = cls.from_dict(get_not7_config(path))

        if env.get("OPENAI_API_KEY"):
            config.llm.api_key = env["OPENAI_API_KEY"]
        if env.get("NOT7_DEFAULT_MODEL"):
            config.llm.default_model = env["NOT7_DEFAULT_MODEL"]
        if env.get("SERP_API_KEY"):
            config.builtin.serp_api_key = env["SERP_API_KEY"]
        if env.get("ARCADE_API_KEY"):
            config.arcade.api_key = env["ARCADE_API_KEY"]
        if env.get("ARCADE_USER_ID"):
            config.arcade.user_id = env["ARCADE_USER_ID"]
        if env.get("NOT7_EXECUTIONS_DIR"):
            config.executions_dir = Path(env["NOT7_EXECUTIONS_DIR"])
        if env.get("NOT7_LOG_DIR"):
            config.log_dir = Path(env["NOT7_LOG_DIR"])

        return config
