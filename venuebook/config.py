"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class SlotsConfig(BaseModel):
    """Slot generation policy."""
    # None: step equals the service duration
    step_minutes: Optional[int] = None

    @field_validator("step_minutes")
    @classmethod
    def validate_step(cls, value: Optional[int]) -> Optional[int]:
        """Ensure the slot grid is positive."""
        if value is not None and value <= 0:
            raise ValueError("step_minutes must be greater than zero")
        return value


class VenueDefaultsConfig(BaseModel):
    """Booking rules applied to seeded venues that don't set their own."""
    booking_advance_hours: int = 48
    booking_advance_days: int = 30
    cancellation_hours: int = 24

    @field_validator("booking_advance_hours", "cancellation_hours")
    @classmethod
    def validate_hours(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"Hours must not be negative, got {v}")
        return v

    @field_validator("booking_advance_days")
    @classmethod
    def validate_days(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"booking_advance_days must be greater than zero, got {v}")
        return v

    @model_validator(mode="after")
    def validate_notice_within_horizon(self) -> "VenueDefaultsConfig":
        """The minimum notice must leave some bookable days."""
        if self.booking_advance_hours > self.booking_advance_days * 24:
            raise ValueError("booking_advance_hours exceeds the booking horizon")
        return self

    def as_dict(self) -> Dict[str, int]:
        return self.model_dump()


class AppConfig(BaseModel):
    """Application configuration."""
    database_url: str = "sqlite:///./venuebook.db"
    log_level: str = "INFO"
    slots: SlotsConfig = Field(default_factory=SlotsConfig)
    venue_defaults: VenueDefaultsConfig = Field(default_factory=VenueDefaultsConfig)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Accept standard logging level names, case-insensitive."""
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return level

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, value: str) -> str:
        if "://" not in value:
            raise ValueError(f"database_url must be an SQLAlchemy URL, got {value!r}")
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

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

        return cls(**data)

    @classmethod
    def load_or_default(cls, config_path: Optional[Path] = None) -> "AppConfig":
        """Load ``config_path`` (or the default path) if it exists, else use defaults."""
        path = config_path or get_default_config_path()
        if config_path is None and not path.exists():
            return cls()
        return cls.load_from_yaml(path)


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
