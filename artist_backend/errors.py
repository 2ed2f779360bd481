"""
Error taxonomy shared by the repositories and the HTTP layer.

Each error carries the message that is safe to show to API clients. Routes do
not catch these; the handlers registered in ``artist_backend.app`` convert
them to responses.
"""

from __future__ import annotations

from typing import Optional


class ArtistBackendError(Exception):
    status_code = 500

    def __init__(self, message: str, *, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def as_dict(self) -> dict:
        body = {"detail": self.message}
        if self.field:
            body["field"] = self.field
        return body


class ValidationError(ArtistBackendError):
    """A field is missing, malformed or out of range."""

    status_code = 400


class DuplicateError(ArtistBackendError):
    """A uniqueness rule or the one-rating-per-artist rule was violated."""

    status_code = 400


class NotFoundError(ArtistBackendError):
    status_code = 404


class UnauthorizedError(ArtistBackendError):
    status_code = 401


class UpstreamError(ArtistBackendError):
    """
    A store, auth or blob provider call failed.

    ``message`` stays generic; the provider detail goes to the server log.
    """

    status_code = 500

    def __init__(self, message: str = "Upstream service failure", *, detail: str = ""):
        super().__init__(message)
        self.detail = detail
