"""Wheel server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from shared.validators import StringListEnvSettingsSource, parse_origins

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class WheelServerSettings(BaseSettings):
    model_config = {"env_prefix": "WHEEL_"}

    database_path: str = Field(default="backend/storage.db", min_length=1)
    log_dir: str = Field(default="backend/logs/wheel", min_length=1)
    cors_origins: list[str] = ["http://localhost:3000"]

    # Player and display read the same values, so both screens reveal together.
    spin_animation_seconds: float = Field(default=10.0, ge=0)
    result_window_seconds: float = Field(default=15.0, ge=0)

    # Prize notifications are disabled when no URL is configured.
    notify_url: str | None = None
    notify_timeout_seconds: float = Field(default=10.0, gt=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_origins(v)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,  # noqa: ARG003
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return init_settings, StringListEnvSettingsSource(settings_cls), dotenv_settings, file_secret_settings
