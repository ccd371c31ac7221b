"""Per-match rule and timing configuration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from arena.server.settings import ArenaServerSettings


class MatchSettings(BaseModel):
    """
    Rules and timings for a single match.

    Durations are in scheduler ticks, not seconds; the server decides how long
    a tick lasts.
    """

    model_config = ConfigDict(frozen=True)

    max_score: int = Field(default=4, ge=1)
    wager_amount: int | float = 0
    countdown_ticks: int = Field(default=3, ge=1)
    choice_ticks: int = Field(default=10, ge=1)
    reveal_delay_ticks: int = Field(default=3, ge=1)
    reconnect_grace_ticks: int = Field(default=30, ge=1)
    # reject joins that declare a different match id than the one already adopted
    enforce_match_id: bool = True

    @classmethod
    def from_server_settings(cls, settings: ArenaServerSettings) -> MatchSettings:
        """Build MatchSettings from the matching fields of the server settings."""
        return cls(**{name: getattr(settings, name) for name in cls.model_fields})
