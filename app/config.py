"""
Application settings (Pydantic Settings).

Values come from ``SCHEDULING_*`` environment variables or a ``.env`` file
at the project root.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.errors import MissingConfiguration

_env_path = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SCHEDULING_", env_file=_env_path, extra="ignore"
    )

    # Base timeslot unit; every generated slot is this long. No default.
    minutes_of_timeslot: int = Field(gt=0)
    conflict_buffer_minutes: int = Field(default=30, ge=0)
    placeholder_host_tag: str = "TBD"

    heatmap_hour_of_opening: int = Field(default=5, ge=0, le=23)
    heatmap_hour_of_closure: int = Field(default=22, ge=1, le=24)
    heatmap_minutes_of_bucket: int = Field(default=30, gt=0)
    heatmap_timezone: str = "UTC"

    log_level: str = "INFO"

    @field_validator("log_level", mode="after")
    @classmethod
    def upper_level(cls, v: str) -> str:
        return v.strip().upper()

    @model_validator(mode="after")
    def check_bucket_is_whole_units(self) -> Settings:
        if self.heatmap_minutes_of_bucket % self.minutes_of_timeslot:
            raise ValueError(
                "heatmap_minutes_of_bucket must be a multiple of minutes_of_timeslot"
            )
        if self.heatmap_hour_of_closure <= self.heatmap_hour_of_opening:
            raise ValueError("heatmap_hour_of_closure must be after opening")
        return self


def load_settings(**overrides) -> Settings:
    """Build settings, turning validation failures into MissingConfiguration."""
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        fields = ", ".join(
            ".".join(str(p) for p in err["loc"]) or "settings" for err in exc.errors()
        )
        raise MissingConfiguration(f"Invalid or missing settings: {fields}") from exc


@lru_cache
def get_settings() -> Settings:
    return load_settings()
