import datetime as dt

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScheduleConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CLINIC_SCHEDULE_", env_file=".env", extra="ignore")

    opening_time: dt.time = dt.time(9, 0)
    closing_time: dt.time = dt.time(21, 0)
    default_duration_minutes: int = Field(default=30, gt=0)
    clinic_timezone: str = "Europe/Paris"

    @model_validator(mode="after")
    def check_hours(self) -> "ScheduleConfig":
        if self.closing_time <= self.opening_time:
            raise ValueError("closing_time must be after opening_time")
        return self


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    schedule: ScheduleConfig = Field(default_factory=lambda: ScheduleConfig())
