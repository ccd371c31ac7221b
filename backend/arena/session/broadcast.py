"""Shared broadcast utility for sending messages to the players of a match."""

import contextlib
from collections.abc import Iterable
from typing import Any

from arena.session.models import Player


async def broadcast_to_players(
    players: Iterable[Player],
    message: dict[str, Any],
    exclude_connection_id: str | None = None,
) -> None:
    """Send a message to every connected player, skipping one if excluded.

    The iterable is snapshotted first so a send that yields cannot observe a
    roster mutated mid-loop. Send failures on a dying socket are ignored: the
    disconnect handler will deal with that player.
    """
    for player in list(players):
        if not player.connected or player.connection_id == exclude_connection_id:
            continue
        with contextlib.suppress(RuntimeError, OSError, ConnectionError):
            await player.connection.send_message(message)
