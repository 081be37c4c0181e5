"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import OCCUPYING_STATUSES, ScheduleStatus
from .domain.timeslots import SlotRules, time_to_minutes

_CLOCK_PATTERN = re.compile(r"^\d{2}:\d{2}$")

CONFIG_ENV_VAR = "CLASSPLANNER_CONFIG"


class SlotRulesConfig(BaseModel):
    """Bookable window for class slots."""
    first_start: str = "09:00"
    last_start: str = "19:00"
    step_minutes: int = 20
    duration_minutes: int = 120
    day_end: str = "21:00"

    @field_validator("first_start", "last_start", "day_end")
    @classmethod
    def validate_clock(cls, v: str) -> str:
        """Validate a zero-padded HH:MM wall-clock time."""
        if not _CLOCK_PATTERN.match(v):
            raise ValueError(f"Time must be HH:MM, got {v!r}")
        hours, minutes = (int(part) for part in v.split(":"))
        if hours > 23 or minutes > 59:
            raise ValueError(f"Time out of range: {v}")
        return v

    @field_validator("step_minutes", "duration_minutes")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("step_minutes and duration_minutes must be greater than zero")
        return v

    @model_validator(mode="after")
    def validate_window(self) -> "SlotRulesConfig":
        """Ensure the last slot of the day still fits before closing time."""
        # SlotRules carries the invariant checks; surface them as config errors.
        self.to_rules()
        return self

    def to_rules(self) -> SlotRules:
        """Get the domain-level slot rules."""
        return SlotRules(
            first_start=time_to_minutes(self.first_start),
            last_start=time_to_minutes(self.last_start),
            step_minutes=self.step_minutes,
            duration_minutes=self.duration_minutes,
            day_end=time_to_minutes(self.day_end),
        )


class AppConfig(BaseModel):
    """Application configuration."""
    slot_rules: SlotRulesConfig = Field(default_factory=SlotRulesConfig)
    week_starts_on: int = 0  # 0=Sunday, 6=Saturday
    occupying_statuses: List[ScheduleStatus] = Field(
        default_factory=lambda: sorted(OCCUPYING_STATUSES, key=lambda s: s.value)
    )
    batch_commit_mode: Literal["atomic", "partial"] = "atomic"
    data_file: Path = Path("schedules.json")
    log_level: str = "WARNING"

    @field_validator("week_starts_on")
    @classmethod
    def validate_week_start(cls, v: int) -> int:
        if v not in range(7):
            raise ValueError(f"week_starts_on must be between 0 and 6, got {v}")
        return v

    @field_validator("occupying_statuses")
    @classmethod
    def validate_occupying(cls, value: List[ScheduleStatus]) -> List[ScheduleStatus]:
        """Cancelled bookings never hold a trainer's time; drop duplicates."""
        if ScheduleStatus.CANCELLED in value:
            raise ValueError("cancelled schedules cannot occupy a trainer")
        deduped: List[ScheduleStatus] = []
        for status in value:
            if status not in deduped:
                deduped.append(status)
        return deduped

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Build a config from a YAML file.

        A relative ``data_file`` is resolved against the file's directory.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If the file is not a valid settings mapping
        """
        config = cls(**_read_settings(config_path))
        if not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config


def _read_settings(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(
            f"Config file not found: {path} (start from config.example.yaml)"
        ) from None

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} must hold a mapping of settings, got {type(data).__name__}")
    return data


def get_default_config_path() -> Path:
    """
    Return the first existing of ./config.yaml and the project's config.yaml.

    Falls back to ./config.yaml when neither exists.
    """
    candidates = [
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parent.parent / "config.yaml",
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def load_config(config_file: Optional[Path] = None) -> AppConfig:
    """
    Load settings from ``config_file``, ``$CLASSPLANNER_CONFIG`` or the default file.

    An explicit or environment-provided file must exist. Without either, a
    missing default file means built-in defaults.
    """
    env_file = os.getenv(CONFIG_ENV_VAR)
    if config_file is None and env_file:
        config_file = Path(env_file)

    if config_file is not None:
        return AppConfig.load_from_yaml(config_file)

    default_path = get_default_config_path()
    if default_path.exists():
        return AppConfig.load_from_yaml(default_path)
    return AppConfig()
