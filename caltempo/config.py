"""Settings for caltempo.

Settings come from an optional YAML (or JSON) file and ``CALTEMPO_*``
environment variables, environment taking precedence:

- CALTEMPO_DEFAULT_TIMEZONE -> 'default_timezone'
- CALTEMPO_TRANSITION_HORIZON -> 'transition_horizon' (ISO datetime)
- CALTEMPO_LOOKAHEAD_DAYS -> 'lookahead_days' (int)
- CALTEMPO_MAX_OCCURRENCES -> 'max_occurrences' (int)
- CALTEMPO_LOG_LEVEL -> 'log_level'
"""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .exceptions import TimezoneError
from .transitions import HORIZON
from .tz import Tz

logger = logging.getLogger(__name__)

ENV_PREFIX = "CALTEMPO_"
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "caltempo" / "config.yaml"

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class TempoSettings(BaseModel):
    """Runtime settings for timezone resolution and calendar queries."""

    default_timezone: str = Field(
        default="UTC", description="Zone for floating values when a calendar embeds none"
    )
    transition_horizon: datetime = Field(
        default=HORIZON, description="Recurring timezone transitions are not unrolled past this"
    )
    lookahead_days: int = Field(
        default=7, ge=1, description="Days covered by queries without an explicit end"
    )
    max_occurrences: int = Field(
        default=1000, ge=1, description="Maximum occurrences collected per event and query"
    )
    log_level: str = Field(default="INFO", description="Logging level name")

    model_config = ConfigDict(extra="ignore")

    @field_validator("default_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        """Reject zone names that cannot be resolved."""
        try:
            Tz.from_str(v)
        except TimezoneError:
            raise ValueError(f"Invalid timezone: {v!r}") from None
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = str(v).upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v!r}")
        return level

    @field_validator("transition_horizon")
    @classmethod
    def validate_horizon(cls, v: datetime) -> datetime:
        # Transition instants are naive wall-clock readings
        return v.replace(tzinfo=None)

    def resolve_timezone(self) -> Tz:
        return Tz.from_str(self.default_timezone)


def env_overrides(environ: Optional[dict[str, str]] = None) -> dict[str, Any]:
    """Collect settings from ``CALTEMPO_*`` environment variables."""
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for field_name in TempoSettings.model_fields:
        value = env.get(f"{ENV_PREFIX}{field_name.upper()}")
        if value:
            overrides[field_name] = value
    return overrides


def _load_yaml(path: Path) -> Any:
    """Load a YAML file; JSON documents are valid YAML too."""
    loaded = yaml.safe_load(path.read_text())
    # safe_load returns None for empty files
    return {} if loaded is None else loaded


def load_settings(path: Union[str, Path, None] = None) -> TempoSettings:
    """Load settings from a YAML/JSON file and the environment.

    Args:
        path: Optional path to the settings file. Defaults to
              ~/.config/caltempo/config.yaml.

    Returns:
        Validated TempoSettings

    Behavior:
    - If the file is missing: defaults plus environment overrides.
    - If the top level is not a mapping: raises ValueError.
    - Invalid values raise pydantic's ValidationError.
    """
    p = Path(path) if path else DEFAULT_CONFIG_PATH
    logger.debug("Attempting to load settings from %s", p)

    data: dict[str, Any] = {}
    if p.exists():
        raw = _load_yaml(p)
        if not isinstance(raw, dict):
            logger.warning("Settings file %s parsed but top-level is not a mapping: %r", p, raw)
            raise ValueError("Settings file must contain a mapping at top level")  # noqa: TRY004
        data.update(raw)
        logger.info("Loaded settings from %s", p)
    else:
        logger.info("Settings file %s not found; using defaults", p)

    overrides = env_overrides()
    if overrides:
        logger.debug("Applying environment overrides: %s", sorted(overrides))
    data.update(overrides)

    settings = TempoSettings(**data)
    logger.debug("Settings values: %s", settings)
    return settings
