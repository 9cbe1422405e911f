# src/caseport/core/config.py
"""
Configuration schema and loading for caseport.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.

Example settings.yaml:
    database:
      url: "sqlite:///./appeals.db"
    export:
      sanitize: true
      indent: 2
    import:
      id_offset: 2000000000
      target_url: "sqlite:///./scratch.db"
"""

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ID_OFFSET = 2_000_000_000


class DatabaseSettings(BaseModel):
    """Source database connection configuration."""

    model_config = {"frozen": True}

    # NOTE: str instead of Path - Path mangles PostgreSQL DSNs
    url: str = Field(default="sqlite:///./appeals.db", description="SQLAlchemy database URL")
    echo: bool = Field(default=False, description="Echo SQL statements (includes record values)")


class ExportSettings(BaseModel):
    """Export behaviour."""

    model_config = {"frozen": True}

    sanitize: bool = Field(
        default=True,
        description="Redact sensitive fields. False is the unsanitized admin mode.",
    )
    indent: int | None = Field(
        default=2,
        ge=0,
        description="JSON indentation of the written document (None for compact)",
    )
    sanitize_key_env: str = Field(
        default="CASEPORT_SANITIZE_KEY",
        description="Environment variable holding the pseudonym key; a random key is used when unset",
    )
    seed: int | None = Field(
        default=None,
        description="Seed for non-memoized random transforms (reproducible dates and pins)",
    )


class ImportSettings(BaseModel):
    """Import behaviour."""

    model_config = {"frozen": True}

    id_offset: int = Field(
        default=DEFAULT_ID_OFFSET,
        gt=0,
        description="Added to ids of created records; ids below it are treated as not yet reassociated",
    )
    target_url: str | None = Field(
        default=None,
        description="Database to import into (defaults to database.url)",
    )


class CaseportSettings(BaseModel):
    """Top-level caseport configuration."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    # "import" is a keyword; YAML uses import:, Python uses import_
    import_: ImportSettings = Field(default_factory=ImportSettings, alias="import")

    @field_validator("import_")
    @classmethod
    def validate_id_offset_exceeds_safe_integers(cls, v: ImportSettings) -> ImportSettings:
        """Offset ids must stay within the JSON safe-integer range."""
        if v.id_offset > 2**52:
            raise ValueError(f"id_offset {v.id_offset} leaves no room below 2**53 for offset ids")
        return v

    @property
    def target_url(self) -> str:
        return self.import_.target_url or self.database.url


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values."""

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.environ.get(var_name)
            if env_value is not None:
                return env_value
            if default is not None:
                return default
            # No env var and no default - keep original so validation reports it
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lowercase_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lowercase_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path) -> CaseportSettings:
    """Load settings from YAML file with environment variable overrides.

    Uses Dynaconf for multi-source loading with precedence:
    1. Environment variables (CASEPORT_*) - highest priority
    2. Config file (settings.yaml)
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: CASEPORT_DATABASE__URL for nested keys.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated CaseportSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="CASEPORT",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; filter out its internal settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): _lowercase_keys(v) for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    raw_config = _expand_env_vars(raw_config)

    return CaseportSettings(**raw_config)
