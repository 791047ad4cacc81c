"""
Data Models Module

This module defines all Pydantic models used throughout the application.
Strong typing ensures data integrity and provides clear contracts between components.

Design Decisions:
- Use Pydantic models for all data transfer objects
- Request-scoped value objects are frozen
- Credential material is held in SecretStr and never rendered
- Webhook payload models are lenient: unknown keys are ignored and shape
  problems are reported as "no target" rather than raised
"""

import time
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

# App credentials are valid for exactly ten minutes from mint time
APP_CREDENTIAL_TTL_SECONDS = 10 * 60


# =============================================================================
# Enums
# =============================================================================

class RouteOutcome(str, Enum):
    """Terminal outcomes of routing a single webhook delivery."""
    IGNORED = "ignored"
    ASSIGNED = "assigned"
    NO_REVIEWER = "no_reviewer"
    FAILED = "failed"


# =============================================================================
# Credential Models
# =============================================================================

class AppCredential(BaseModel):
    """
    A short-lived RS256-signed JWT asserting the GitHub App's identity.

    Attributes:
        issuer_id: GitHub App identifier (the JWT ``iss`` claim)
        issued_at: Mint time in epoch seconds (``iat``)
        expires_at: Expiry in epoch seconds (``exp``), always issued_at + 600
        jwt: The encoded, signed token
    """
    model_config = ConfigDict(frozen=True)

    issuer_id: str
    issued_at: int
    expires_at: int
    jwt: SecretStr

    def is_expired(self, now: Optional[float] = None) -> bool:
        """Check whether the credential may no longer be presented."""
        current = int(time.time() if now is None else now)
        return current >= self.expires_at


class InstallationToken(BaseModel):
    """Bearer token scoped to a single installation of the app."""
    model_config = ConfigDict(frozen=True)

    installation_id: int
    token: SecretStr
    expires_at: Optional[datetime] = None


# =============================================================================
# GitHub Webhook Models
# =============================================================================

class WebhookEvent(BaseModel):
    """An inbound webhook delivery exactly as received."""
    model_config = ConfigDict(frozen=True)

    event_type: Optional[str] = None
    action: Optional[str] = None
    delivery_id: Optional[str] = None
    raw_body: bytes = Field(default=b"", repr=False)
    signature_header: Optional[str] = Field(default=None, repr=False)


class GitHubUser(BaseModel):
    """GitHub user information."""
    login: str


class GitHubRepository(BaseModel):
    """GitHub repository information."""
    name: str
    owner: GitHubUser


class GitHubPullRequest(BaseModel):
    """The subset of a webhook pull request this service reads."""
    number: Optional[int] = None
    requested_reviewers: List[Dict[str, Any]]


class GitHubInstallation(BaseModel):
    """GitHub App installation information."""
    id: int


class PullRequestWebhookPayload(BaseModel):
    """Pull request webhook payload, reduced to the fields we act on."""
    number: Optional[int] = None
    pull_request: GitHubPullRequest
    repository: GitHubRepository
    installation: Optional[GitHubInstallation] = None


# =============================================================================
# Internal Processing Models
# =============================================================================

class ReviewTarget(BaseModel):
    """
    The pull request a delivery asks us to act on.

    Built from a raw webhook payload via ``from_payload``; payloads that do
    not carry the expected shape produce no target.
    """
    model_config = ConfigDict(frozen=True)

    owner: str
    repo_name: str
    pr_number: int
    installation_id: Optional[int] = None
    requested_reviewers: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def full_repo_name(self) -> str:
        """Get the full repository name (owner/repo)."""
        return f"{self.owner}/{self.repo_name}"

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["ReviewTarget"]:
        """Extract a review target, or None if the payload shape is unexpected."""
        if not isinstance(payload, dict):
            return None
        try:
            parsed = PullRequestWebhookPayload.model_validate(payload)
        except ValidationError:
            return None

        pr_number = parsed.number if parsed.number is not None else parsed.pull_request.number
        if pr_number is None:
            return None

        return cls(
            owner=parsed.repository.owner.login,
            repo_name=parsed.repository.name,
            pr_number=pr_number,
            installation_id=parsed.installation.id if parsed.installation else None,
            requested_reviewers=parsed.pull_request.requested_reviewers,
        )


class SuggestedReviewer(BaseModel):
    """A platform-suggested reviewer for a pull request."""
    model_config = ConfigDict(frozen=True)

    id: str
    is_author: bool = False
    is_commenter: bool = False


class PullRequestContext(BaseModel):
    """
    Reviewer candidates for a pull request, fetched fresh for each request.
    """
    model_config = ConfigDict(frozen=True)

    owner: str
    repo_name: str
    pr_number: int
    pr_id: str
    suggested_reviewers: List[SuggestedReviewer] = Field(default_factory=list)
    assignable_users: List[str] = Field(default_factory=list)
