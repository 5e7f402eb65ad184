"""Domain exceptions mapped to HTTP status codes by the global error handler."""

from __future__ import annotations


class MentoraError(Exception):
    """Base class for errors that surface to API clients."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInput(MentoraError):
    status_code = 400


class Unauthorized(MentoraError):
    status_code = 401


class Forbidden(MentoraError):
    status_code = 403


class NotFound(MentoraError):
    status_code = 404


class Conflict(MentoraError):
    """The target record was already processed (e.g. a decided request)."""

    status_code = 409


class UpstreamFailure(MentoraError):
    """A third-party provider was unreachable or returned an error."""

    status_code = 500
