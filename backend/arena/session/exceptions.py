"""Typed errors raised by the session layer.

Join rejections carry the error code the transport reports to the client
before closing the connection.
"""

from arena.messaging.types import SessionErrorCode


class ArenaError(Exception):
    """Base exception for match session errors."""


class JoinRejectedError(ArenaError):
    """A join attempt was refused. The session state is left untouched."""

    code: SessionErrorCode = SessionErrorCode.SESSION_CLOSED

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class MatchIdMismatchError(JoinRejectedError):
    """The join declared a match id different from the one the session adopted."""

    code = SessionErrorCode.MATCH_ID_MISMATCH

    def __init__(self, *, expected: str, received: str) -> None:
        self.expected = expected
        self.received = received
        super().__init__(f"match id mismatch: session is {expected!r}, join declared {received!r}")


class SessionFullError(JoinRejectedError):
    code = SessionErrorCode.SESSION_FULL


class AlreadyJoinedError(JoinRejectedError):
    code = SessionErrorCode.ALREADY_JOINED


class SessionClosedError(JoinRejectedError):
    code = SessionErrorCode.SESSION_CLOSED
