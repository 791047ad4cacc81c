"""
GitHub GraphQL Client Module

A narrow client for executing GraphQL documents against GitHub with an
installation token. Callers see a single capability:
``execute(document, variables, token) -> data``.
"""

from typing import Any, Dict, List, Optional

import httpx

from auto_assign.config import Settings
from auto_assign.logging_config import get_logger
from auto_assign.models import InstallationToken

logger = get_logger(__name__)


class GraphQLRequestError(Exception):
    """Raised when a GraphQL request fails at the transport or schema level."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        errors: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body
        self.errors = errors or []


class GraphQLClient:
    """
    Async GitHub GraphQL client.

    Usage:
        client = GraphQLClient(settings)
        data = await client.execute(QUERY, {"owner": "octo"}, token)
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the GraphQL client.

        Args:
            settings: Application settings (endpoint, timeout)
            transport: Optional httpx transport, used by tests
        """
        self.settings = settings
        self._transport = transport

    def _headers(self, token: InstallationToken) -> Dict[str, str]:
        return {
            "Authorization": f"bearer {token.token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
        }

    async def execute(
        self,
        document: str,
        variables: Dict[str, Any],
        token: InstallationToken
    ) -> Dict[str, Any]:
        """
        Execute a GraphQL query or mutation.

        Args:
            document: GraphQL document text
            variables: Document variables
            token: Installation token used as the bearer credential

        Returns:
            The ``data`` portion of the response

        Raises:
            GraphQLRequestError: On transport errors, non-2xx responses,
                undecodable bodies or GraphQL ``errors``
        """
        async with httpx.AsyncClient(
            timeout=self.settings.github_request_timeout,
            transport=self._transport
        ) as client:
            try:
                response = await client.post(
                    self.settings.graphql_url,
                    json={"query": document, "variables": variables},
                    headers=self._headers(token)
                )
            except httpx.HTTPError as e:
                logger.error("GraphQL request failed", error_type=type(e).__name__)
                raise GraphQLRequestError(f"GraphQL request failed: {type(e).__name__}") from e

        if not response.is_success:
            logger.error(
                "GraphQL request failed",
                status_code=response.status_code,
                error=response.text[:500]
            )
            raise GraphQLRequestError(
                f"GraphQL request failed: {response.status_code}",
                status_code=response.status_code,
                response_body=response.text
            )

        try:
            body = response.json()
        except ValueError as e:
            raise GraphQLRequestError(
                "GraphQL response is not valid JSON",
                status_code=response.status_code
            ) from e

        if not isinstance(body, dict):
            raise GraphQLRequestError(
                "GraphQL response is not an object",
                status_code=response.status_code
            )

        # GraphQL reports schema and resolver failures with a 200 status
        if body.get("errors"):
            errors = body["errors"] if isinstance(body["errors"], list) else [body["errors"]]
            error_messages = [
                e.get("message", "Unknown error") if isinstance(e, dict) else str(e)
                for e in errors
            ]
            logger.error("GraphQL query returned errors", errors=error_messages)
            raise GraphQLRequestError(
                f"GraphQL errors: {'; '.join(error_messages)}",
                status_code=response.status_code,
                errors=error_messages
            )

        data = body.get("data")
        if not isinstance(data, dict):
            raise GraphQLRequestError(
                "GraphQL response carries no data",
                status_code=response.status_code
            )
        return data
