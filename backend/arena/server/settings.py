"""Arena server configuration via environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from arena.session.result_reporter import DEFAULT_SECRET_HEADER
from shared.validators import StringListEnvSettingsSource, parse_string_list

if TYPE_CHECKING:
    from pydantic_settings.sources.base import PydanticBaseSettingsSource


class ArenaServerSettings(BaseSettings):
    model_config = {"env_prefix": "RPS_"}

    # match rules, copied into MatchSettings for every new session
    max_score: int = Field(default=4, ge=1)
    wager_amount: int | float = Field(default=0, ge=0)
    countdown_ticks: int = Field(default=3, ge=1)
    choice_ticks: int = Field(default=10, ge=1)
    reveal_delay_ticks: int = Field(default=3, ge=1)
    reconnect_grace_ticks: int = Field(default=30, ge=1)
    enforce_match_id: bool = True

    tick_seconds: float = Field(default=1.0, gt=0)
    max_capacity: int = Field(default=100, ge=1)
    log_dir: str = Field(default="backend/logs/arena", min_length=1)
    cors_origins: list[str] = ["http://localhost:8712"]

    # result reporting is disabled while the URL is empty
    result_webhook_url: str = ""
    result_webhook_secret: str = ""
    result_webhook_header: str = Field(default=DEFAULT_SECRET_HEADER, min_length=1)
    result_webhook_timeout_seconds: float = Field(default=5.0, gt=0)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def validate_cors_origins(cls, v: str | list[str]) -> list[str]:
        return parse_string_list(v)

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
