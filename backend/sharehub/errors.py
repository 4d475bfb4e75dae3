"""Domain errors raised by the ShareHub core and mapped to HTTP responses in ``main``."""

from __future__ import annotations


class ShareHubError(RuntimeError):
    """Base error for authorization-gated resource operations."""

    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class Unauthenticated(ShareHubError):
    """Raised when a bearer credential is missing, malformed or expired."""

    status_code = 401


class Forbidden(ShareHubError):
    """Raised when the caller lacks privilege or ownership of the target."""

    status_code = 403


class InvalidArgument(ShareHubError):
    """Raised for empty input or a rejected self-targeting action."""

    status_code = 400


class NotFound(ShareHubError):
    """Raised when the referenced user, file or message does not exist."""

    status_code = 404


class PayloadTooLarge(ShareHubError):
    status_code = 413


class DependencyFailure(ShareHubError):
    """Raised when the relational store or blob store call fails."""

    status_code = 500
