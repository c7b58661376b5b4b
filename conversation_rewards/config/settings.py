"""Application settings with Pydantic Settings validation.

Secrets (API keys) are loaded from the environment or a .env file.
Non-sensitive configuration is loaded from a YAML file validated against the
JSON schema shipped in ``config/schemas``.
"""

import json
from pathlib import Path
from typing import Any, Final, cast

import yaml
from jsonschema import ValidationError as JSONSchemaValidationError
from jsonschema import validate
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from conversation_rewards.config.incentives import (
    CONTENT_EVALUATOR_SECTION,
    DATA_PURGE_SECTION,
)
from conversation_rewards.config.logging_config import get_logger

DEFAULT_CONFIG_PATH: Final[str] = "config/main.yaml"
SCHEMA_DIR: Final[Path] = Path(__file__).resolve().parent / "schemas"

logger = cast(Any, get_logger(__name__))


def load_schema(schema_name: str) -> dict[str, Any]:
    """Load a JSON Schema shipped with the package.

    Args:
        schema_name: Schema name without extension (e.g., "main")

    Returns:
        JSON Schema dictionary or empty dict if not found
    """
    schema_path = SCHEMA_DIR / f"{schema_name}.schema.json"
    if not schema_path.exists():
        return {}

    try:
        with open(schema_path, encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, OSError) as e:
        logger.warning("config_schema_load_failed", schema=schema_name, error=str(e))
        return {}


def validate_config_section(
    config: dict[str, Any], schema_name: str, file_path: str = ""
) -> None:
    """Validate configuration against a JSON Schema.

    Raises:
        ValueError: If validation fails
    """
    schema = load_schema(schema_name)
    if not schema:
        return

    try:
        validate(instance=config, schema=schema)
        logger.debug("config_validation_succeeded", schema=schema_name)
    except JSONSchemaValidationError as e:
        error_msg = f"Config validation failed for {schema_name}"
        if file_path:
            error_msg += f" (file: {file_path})"
        error_msg += f": {e.message}"
        raise ValueError(error_msg) from e


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Load the YAML configuration file.

    A missing or unreadable file yields an empty configuration, so every
    stage ends up disabled rather than the process failing at import time.

    Raises:
        ValueError: If the file does not match the configuration schema
    """
    path = Path(config_path)
    if not path.exists():
        logger.debug("config_file_missing", path=str(path))
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            config = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning("config_file_load_failed", path=str(path), error=str(e))
        return {}

    if not isinstance(config, dict):
        raise ValueError(f"Config file must contain a mapping: {path}")

    validate_config_section(config, "main", str(path))
    logger.info("config_load_complete", path=str(path))
    return config


class Settings(BaseSettings):
    """Application settings.

    Secrets are loaded from the environment. Non-sensitive config is loaded
    from ``config_path`` with fallback to defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env" if Path(".env").exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === SECRETS (from .env) ===

    openai_api_key: SecretStr | None = Field(
        default=None, description="OpenAI API key (from .env)"
    )

    # === NON-SENSITIVE CONFIG (from YAML or defaults) ===

    config_path: str = Field(
        default=DEFAULT_CONFIG_PATH, description="Path to the YAML configuration"
    )
    incentives: dict[str, Any] = Field(
        default_factory=dict, description="Per-stage configuration blocks"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def _blank_secret_as_missing(cls, value: SecretStr | str | None) -> Any:
        if value is None:
            return None
        secret_value = (
            value.get_secret_value() if isinstance(value, SecretStr) else str(value)
        )
        return secret_value if secret_value.strip() else None

    def __init__(self, **data: Any):
        """Initialize settings and apply defaults from the YAML file."""
        super().__init__(**data)
        self._apply_yaml_defaults(load_config(self.config_path))

    def _apply_yaml_defaults(self, config: dict[str, Any]) -> None:
        """Apply YAML-sourced defaults without overriding explicitly set values."""

        fields_from_env = set(self.model_fields_set)

        def _assign(field_name: str, value: Any) -> None:
            if value is None:
                return
            if field_name in fields_from_env:
                return

            object.__setattr__(self, field_name, value)
            self.model_fields_set.add(field_name)

        _assign("incentives", config.get("incentives"))

        logging_config = config.get("logging") or {}
        _assign("log_level", logging_config.get("level"))
        _assign("json_logs", logging_config.get("json"))

    @property
    def data_purge(self) -> Any:
        """Raw ``dataPurge`` block, ``None`` when absent."""
        return self.incentives.get(DATA_PURGE_SECTION)

    @property
    def content_evaluator(self) -> Any:
        """Raw ``contentEvaluator`` block, ``None`` when absent."""
        return self.incentives.get(CONTENT_EVALUATOR_SECTION)


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
