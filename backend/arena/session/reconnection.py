"""Track reconnection grace windows for players who dropped without leaving."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from arena.session.scheduler import TimerHandle, TimerScheduler


@dataclass(eq=False)
class GraceWindow:
    """An open reconnection window for one player identity."""

    identity: str
    handle: TimerHandle | None = None


# Called (without any session lock held) when a window's timer fires.
GraceExpiredCallback = Callable[[GraceWindow], Awaitable[None]]


class ReconnectionManager:
    """Open, claim, and expire per-identity grace windows.

    This class only does bookkeeping. It does NOT touch match state: the
    session controller decides what an expired window means (forfeit or
    plain cleanup) and calls expire() under its own lock so that a window
    claimed by a reconnect in the meantime is recognized as stale.
    """

    def __init__(self, scheduler: TimerScheduler, grace_ticks: int, on_expired: GraceExpiredCallback) -> None:
        self._scheduler = scheduler
        self._grace_ticks = grace_ticks
        self._on_expired = on_expired
        self._windows: dict[str, GraceWindow] = {}  # identity -> open window

    @property
    def grace_ticks(self) -> int:
        return self._grace_ticks

    def begin_grace(self, identity: str) -> GraceWindow:
        """Open a grace window for an identity, replacing any window already open."""
        self.cancel(identity)
        window = GraceWindow(identity=identity)
        window.handle = self._scheduler.call_later(self._grace_ticks, lambda: self._on_expired(window))
        self._windows[identity] = window
        return window

    def is_pending(self, identity: str) -> bool:
        return identity in self._windows

    def claim(self, identity: str) -> bool:
        """Close the window for a returning player.

        Returns False when no window is open, either because none was opened
        or because it has already expired.
        """
        window = self._windows.pop(identity, None)
        if window is None:
            return False
        if window.handle is not None:
            window.handle.cancel()
        return True

    def expire(self, window: GraceWindow) -> bool:
        """Consume a window whose timer fired. Returns False if it is no longer the open one."""
        if self._windows.get(window.identity) is not window:
            return False
        del self._windows[window.identity]
        return True

    def cancel(self, identity: str) -> None:
        self.claim(identity)

    def cancel_all(self) -> None:
        for identity in list(self._windows):
            self.cancel(identity)
