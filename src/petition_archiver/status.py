"""Workflow status codes."""

from enum import IntEnum


class StatusCode(IntEnum):
    """Outcome of one workflow invocation.

    Values follow HTTP semantics so the invoking layer can pass them through.
    Only OK and SERVER_ERROR are produced by the archive workflow itself.
    """

    OK = 200
    BAD_REQUEST = 400
    FORBIDDEN = 403
    NOT_FOUND = 404
    SERVER_ERROR = 500

    @property
    def is_success(self) -> bool:
        return self is StatusCode.OK
