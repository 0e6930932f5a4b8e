"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import ShopPolicy
from .domain.time_utils import parse_hhmm


class DefaultsConfig(BaseModel):
    """Default settings for slot searches."""
    duration_minutes: int = 30
    cadence_minutes: int = 15

    @field_validator("duration_minutes", "cadence_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations are positive."""
        if value <= 0:
            raise ValueError("durations must be greater than zero")
        return value


class PolicyConfig(BaseModel):
    """Shop-wide scheduling rules."""
    lunch_break_start: str = "14:30"
    lunch_break_end: str = "15:00"
    closed_weekdays: List[int] = Field(default_factory=lambda: [0])  # Sunday
    reject_past_closing: bool = True
    lunch_blocks_service: bool = False

    @field_validator("lunch_break_start", "lunch_break_end")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Validate HH:mm strings."""
        parse_hhmm(value)
        return value

    @field_validator("closed_weekdays")
    @classmethod
    def validate_closed_weekdays(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range (0=Sunday) and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"closed_weekdays must be between 0 and 6, got {invalid_days}")
        # Preserve order while removing duplicates
        seen: set[int] = set()
        deduped: List[int] = []
        for day in value:
            if day not in seen:
                deduped.append(day)
                seen.add(day)
        return deduped

    @model_validator(mode="after")
    def validate_lunch_order(self) -> "PolicyConfig":
        """Ensure the lunch break starts before it ends."""
        if parse_hhmm(self.lunch_break_end) <= parse_hhmm(self.lunch_break_start):
            raise ValueError("lunch_break_end must be later than lunch_break_start")
        return self

    def to_policy(self, default_cadence_minutes: int = 15) -> ShopPolicy:
        return ShopPolicy(
            lunch_break_start=parse_hhmm(self.lunch_break_start),
            lunch_break_end=parse_hhmm(self.lunch_break_end),
            closed_weekdays=frozenset(self.closed_weekdays),
            default_cadence_minutes=default_cadence_minutes,
            reject_past_closing=self.reject_past_closing,
            lunch_blocks_service=self.lunch_blocks_service,
        )


class ApiConfig(BaseModel):
    """Optional booking backend to read schedules from."""
    base_url: str
    token: Optional[str] = None
    timeout_seconds: float = 10

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got {value!r}")
        return value.rstrip("/")


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Berlin"
    data_file: Path = Path("schedule.json")
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    policy: PolicyConfig = Field(default_factory=PolicyConfig)
    api: Optional[ApiConfig] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except (KeyError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    def build_policy(self) -> ShopPolicy:
        """Get the domain policy for the configured rules."""
        return self.policy.to_policy(default_cadence_minutes=self.defaults.cadence_minutes)

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        A relative ``data_file`` is resolved against the config file's folder.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
