"""
Deliver final match results to the external record-keeping service.

Delivery is fire-and-forget: dispatch() schedules a background POST and
returns immediately, so the state machine never waits on the network. A
failed delivery (transport error or non-2xx response) is logged and dropped.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Protocol

import httpx
import structlog

from arena.logic.enums import MatchEndReason
from arena.session.types import MatchResultPayload, RoundResultPayload

if TYPE_CHECKING:
    from arena.session.models import Match, Player

logger = structlog.get_logger()

DEFAULT_SECRET_HEADER = "X-Webhook-Secret"  # noqa: S105
_MAX_LOGGED_BODY = 500


class ResultSink(Protocol):
    def dispatch(self, payload: MatchResultPayload, reason: MatchEndReason) -> None: ...

    async def aclose(self) -> None: ...


def build_result_payload(match: Match, winner: Player, loser: Player | None) -> MatchResultPayload:
    """Snapshot the finished match into an immutable payload."""
    return MatchResultPayload(
        match_id=match.report_id,
        winner_id=winner.identity,
        loser_id=loser.identity if loser is not None else "",
        winner_score=winner.score,
        loser_score=loser.score if loser is not None else 0,
        rounds=tuple(
            RoundResultPayload(
                round_number=record.round_number,
                player1_choice=record.player1_move,
                player2_choice=record.player2_move,
                winner_id=record.winner_id,
            )
            for record in match.rounds
        ),
        wager_amount=match.wager_amount,
    )


class ResultReporter:
    """POST match results to a webhook authenticated by a shared secret header."""

    def __init__(
        self,
        url: str,
        secret: str,
        *,
        header_name: str = DEFAULT_SECRET_HEADER,
        timeout_seconds: float = 5.0,
    ) -> None:
        self._url = url
        self._secret = secret
        self._header_name = header_name
        self._timeout_seconds = timeout_seconds
        self._tasks: set[asyncio.Task[bool]] = set()

    @property
    def enabled(self) -> bool:
        return bool(self._url)

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def dispatch(self, payload: MatchResultPayload, reason: MatchEndReason) -> None:
        """Schedule delivery in the background and return immediately."""
        if not self.enabled:
            logger.info("result reporting disabled, skipping", match_id=payload.match_id, reason=reason)
            return
        task = asyncio.create_task(self.deliver(payload, reason))
        # keep a strong reference until the task finishes
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def deliver(self, payload: MatchResultPayload, reason: MatchEndReason = MatchEndReason.SCORE) -> bool:
        """POST the payload once. Return True on a 2xx response.

        The end reason is only logged; the request body is the payload alone.
        """
        log = logger.bind(match_id=payload.match_id, reason=reason)
        headers = {self._header_name: self._secret}
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                response = await client.post(self._url, json=payload.to_wire(), headers=headers)
        except httpx.HTTPError:
            log.exception("match result delivery failed")
            return False

        if not response.is_success:
            log.warning(
                "match result rejected",
                status_code=response.status_code,
                body=response.text[:_MAX_LOGGED_BODY],
            )
            return False

        log.info("match result delivered", status_code=response.status_code)
        return True

    async def aclose(self) -> None:
        """Wait for in-flight deliveries (used on server shutdown)."""
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
