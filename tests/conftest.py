"""
Test Configuration

Pytest configuration and fixtures for the test suite.
"""

import hashlib
import hmac
import json
import random
from typing import Any, Dict, Generator, List, Optional

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from auto_assign.config import Settings
from auto_assign.main import create_app
from auto_assign.models import InstallationToken

WEBHOOK_SECRET = "test_webhook_secret"
APP_ID = "12345"
INSTALLATION_TOKEN = "ghs_installationtoken1234567890"

# One key for the whole session; RSA generation is slow
_RSA_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
PRIVATE_KEY_PEM = _RSA_KEY.private_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PrivateFormat.PKCS8,
    encryption_algorithm=serialization.NoEncryption()
).decode()
PUBLIC_KEY_PEM = _RSA_KEY.public_key().public_bytes(
    encoding=serialization.Encoding.PEM,
    format=serialization.PublicFormat.SubjectPublicKeyInfo
).decode()


def sign(body: bytes, secret: str = WEBHOOK_SECRET, method: str = "sha256") -> str:
    """Build a signature header value for ``body``."""
    digest = hmac.new(secret.encode(), body, getattr(hashlib, method)).hexdigest()
    return f"{method}={digest}"


def make_settings(**overrides: Any) -> Settings:
    """Settings for tests, independent of the process environment."""
    values: Dict[str, Any] = {
        "github_app_id": APP_ID,
        # Escaped the way it arrives through an environment variable
        "github_private_key": PRIVATE_KEY_PEM.replace("\n", "\\n"),
        "github_webhook_secret": WEBHOOK_SECRET,
        "log_json_format": False,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeGitHub:
    """
    In-memory stand-in for GitHub's token and GraphQL endpoints.

    Every request is recorded in ``requests``.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.pr_id = "PR_kwDOAAAB"
        self.suggested_reviewers: List[Dict[str, Any]] = []
        self.assignable_users: List[str] = []
        self.token_status = 201
        self.query_status = 200
        self.mutation_status = 200
        self.query_errors: Optional[List[Dict[str, Any]]] = None
        self.mutation_errors: Optional[List[Dict[str, Any]]] = None
        self.raise_on_graphql: Optional[Exception] = None

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    @property
    def token_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/access_tokens")]

    @property
    def graphql_requests(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests if r.url.path.endswith("/graphql")]

    @property
    def mutations(self) -> List[Dict[str, Any]]:
        return [body for body in self.graphql_requests if "requestReviews" in body["query"]]

    def suggest(self, *ids: str, is_author: bool = False) -> None:
        self.suggested_reviewers = [
            {"isAuthor": is_author, "isCommenter": False, "reviewer": {"id": user_id}}
            for user_id in ids
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path.endswith("/access_tokens"):
            if self.token_status >= 300:
                return httpx.Response(self.token_status, json={"message": "Bad credentials"})
            return httpx.Response(
                self.token_status,
                json={"token": INSTALLATION_TOKEN, "expires_at": "2030-01-01T00:00:00Z"}
            )

        if request.url.path.endswith("/graphql"):
            if self.raise_on_graphql is not None:
                raise self.raise_on_graphql
            body = json.loads(request.content)
            if "requestReviews" in body["query"]:
                return self._mutation_response()
            return self._query_response()

        return httpx.Response(404, json={"message": "Not Found"})

    def _query_response(self) -> httpx.Response:
        if self.query_errors:
            return httpx.Response(self.query_status, json={"data": None, "errors": self.query_errors})
        return httpx.Response(self.query_status, json={
            "data": {
                "repository": {
                    "pullRequest": {
                        "id": self.pr_id,
                        "suggestedReviewers": self.suggested_reviewers,
                    },
                    "assignableUsers": {
                        "edges": [{"node": {"id": user_id}} for user_id in self.assignable_users]
                    },
                }
            }
        })

    def _mutation_response(self) -> httpx.Response:
        if self.mutation_errors:
            return httpx.Response(self.mutation_status, json={"data": None, "errors": self.mutation_errors})
        return httpx.Response(self.mutation_status, json={
            "data": {"requestReviews": {"pullRequest": {"title": "Add new feature"}}}
        })


@pytest.fixture
def settings() -> Settings:
    """Default test settings."""
    return make_settings()


@pytest.fixture
def fake_github() -> FakeGitHub:
    """A fresh fake GitHub for each test."""
    return FakeGitHub()


@pytest.fixture
def installation_token() -> InstallationToken:
    """An installation token as returned by the exchanger."""
    return InstallationToken(installation_id=987654, token=INSTALLATION_TOKEN)


@pytest.fixture
def client(settings: Settings, fake_github: FakeGitHub) -> Generator[TestClient, None, None]:
    """Create a test client wired to the fake GitHub."""
    app = create_app(settings, transport=fake_github.transport, rng=random.Random(0))
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def sample_pr_payload() -> dict:
    """Sample pull request opened webhook payload."""
    return {
        "action": "opened",
        "number": 42,
        "pull_request": {
            "id": 123456789,
            "number": 42,
            "state": "open",
            "title": "Add new feature",
            "body": "This PR adds a new feature to the application.",
            "user": {
                "login": "testuser",
                "id": 12345,
                "type": "User"
            },
            "html_url": "https://github.com/owner/repo/pull/42",
            "requested_reviewers": [],
            "requested_teams": [],
            "draft": False
        },
        "repository": {
            "id": 111,
            "name": "repo",
            "full_name": "owner/repo",
            "private": False,
            "owner": {
                "login": "owner",
                "id": 1,
                "type": "User"
            },
            "html_url": "https://github.com/owner/repo",
            "default_branch": "main"
        },
        "sender": {
            "login": "testuser",
            "id": 12345,
            "type": "User"
        },
        "installation": {
            "id": 987654
        }
    }
