"""Exception types raised while authenticating and assigning reviewers."""

from typing import Optional


class AutoAssignError(Exception):
    """Base exception for all reviewer assignment errors."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class InvalidKeyMaterial(AutoAssignError):
    """Raised when the GitHub App private key cannot be parsed or used for signing."""


class MissingInstallation(AutoAssignError):
    """Raised when the triggering payload carries no installation identifier."""


class TokenExchangeFailed(AutoAssignError):
    """Raised when an app credential cannot be redeemed for an installation token."""


class QueryFailed(AutoAssignError):
    """Raised when the reviewer candidate query fails."""


class MutationFailed(AutoAssignError):
    """Raised when the review request mutation fails."""


class Unauthorized(AutoAssignError):
    """Raised when a webhook body does not match its signature."""
