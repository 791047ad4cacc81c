"""
GitHub App Authentication Service

This module handles GitHub App authentication including:
- Loading the app's RSA private key
- JWT generation for App authentication
- Installation access token exchange

Design Decisions:
- Use RS256 algorithm for JWT signing (GitHub requirement)
- Mint a fresh JWT for every exchange and never cache tokens across requests
- Refuse to present a JWT past its expiry
- Every outbound call carries a bounded timeout
"""

import time
from datetime import datetime
from typing import Any, Optional, Union

import httpx
import jwt
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from auto_assign.config import Settings
from auto_assign.errors import InvalidKeyMaterial, MissingInstallation, TokenExchangeFailed
from auto_assign.logging_config import get_logger
from auto_assign.models import APP_CREDENTIAL_TTL_SECONDS, AppCredential, InstallationToken

logger = get_logger(__name__)

PrivateKey = Union[RSAPrivateKey, str]


def load_private_key(pem: str) -> RSAPrivateKey:
    """
    Parse PEM key material into an RSA private key.

    Args:
        pem: PEM-encoded private key with real newlines

    Returns:
        The parsed RSA private key

    Raises:
        InvalidKeyMaterial: If the PEM cannot be parsed or is not an RSA key
    """
    try:
        key = serialization.load_pem_private_key(pem.encode(), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise InvalidKeyMaterial(f"Unable to parse GitHub App private key: {type(e).__name__}") from e

    if not isinstance(key, RSAPrivateKey):
        raise InvalidKeyMaterial("GitHub App private key must be an RSA key")
    return key


def mint(issuer_id: str, private_key: PrivateKey, now: Optional[float] = None) -> AppCredential:
    """
    Mint a JWT for GitHub App authentication.

    The JWT authenticates as the GitHub App itself, not as an installation.
    It is valid for exactly ten minutes from ``now``.

    Args:
        issuer_id: GitHub App identifier
        private_key: RSA private key (parsed, or PEM text)
        now: Mint time in epoch seconds; defaults to the wall clock

    Returns:
        A freshly signed AppCredential

    Raises:
        InvalidKeyMaterial: If the key cannot be used for RS256 signing
    """
    if isinstance(private_key, str):
        private_key = load_private_key(private_key)

    issued_at = int(time.time() if now is None else now)
    expires_at = issued_at + APP_CREDENTIAL_TTL_SECONDS

    payload = {
        "iat": issued_at,
        "exp": expires_at,
        "iss": issuer_id,
    }

    try:
        token = jwt.encode(payload, private_key, algorithm="RS256")
    except (ValueError, TypeError, jwt.PyJWTError) as e:
        logger.error("Failed to sign app credential", error_type=type(e).__name__)
        raise InvalidKeyMaterial(f"Failed to sign app credential: {type(e).__name__}") from e

    logger.debug("Minted app credential", issuer_id=issuer_id, expires_at=expires_at)
    return AppCredential(
        issuer_id=issuer_id,
        issued_at=issued_at,
        expires_at=expires_at,
        jwt=token,
    )


class TokenExchanger:
    """
    Redeems app credentials for installation access tokens.

    Usage:
        exchanger = TokenExchanger(settings)
        token = await exchanger.exchange(credential, installation_id)
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the exchanger.

        Args:
            settings: Application settings (API host, timeout)
            transport: Optional httpx transport, used by tests
        """
        self.settings = settings
        self._transport = transport

    def _access_tokens_url(self, installation_id: int) -> str:
        return f"{self.settings.rest_api_base}/app/installations/{installation_id}/access_tokens"

    async def exchange(
        self,
        credential: AppCredential,
        installation_id: Optional[int]
    ) -> InstallationToken:
        """
        Exchange an app credential for an installation access token.

        Args:
            credential: Unexpired app credential
            installation_id: GitHub App installation ID from the webhook payload

        Returns:
            InstallationToken scoped to the given installation

        Raises:
            MissingInstallation: If installation_id is absent
            TokenExchangeFailed: On expired credential, transport error or non-2xx
        """
        if installation_id is None:
            raise MissingInstallation("Webhook payload does not identify an installation")

        if credential.is_expired():
            raise TokenExchangeFailed("App credential expired before token exchange")

        headers = {
            "Authorization": f"Bearer {credential.jwt.get_secret_value()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

        async with httpx.AsyncClient(
            timeout=self.settings.github_request_timeout,
            transport=self._transport
        ) as client:
            try:
                response = await client.post(self._access_tokens_url(installation_id), headers=headers)
            except httpx.HTTPError as e:
                logger.error(
                    "Installation token request failed",
                    installation_id=installation_id,
                    error_type=type(e).__name__
                )
                raise TokenExchangeFailed(f"Installation token request failed: {type(e).__name__}") from e

        if not response.is_success:
            error_body = response.text
            logger.error(
                "Failed to get installation token",
                installation_id=installation_id,
                status_code=response.status_code,
                error=error_body[:500]
            )
            raise TokenExchangeFailed(
                f"Failed to get installation token: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body
            )

        token = self._parse_token(response, installation_id)

        logger.info(
            "Obtained installation access token",
            installation_id=installation_id,
            expires_at=token.expires_at.isoformat() if token.expires_at else None
        )
        return token

    def _parse_token(self, response: httpx.Response, installation_id: int) -> InstallationToken:
        try:
            data: Any = response.json()
            value = data["token"]
            expires_raw = data.get("expires_at")
            expires_at = (
                datetime.fromisoformat(expires_raw.replace("Z", "+00:00"))
                if expires_raw else None
            )
        except (ValueError, TypeError, KeyError, AttributeError) as e:
            raise TokenExchangeFailed(
                "Malformed installation token response",
                status_code=response.status_code
            ) from e

        if not isinstance(value, str) or not value:
            raise TokenExchangeFailed(
                "Malformed installation token response",
                status_code=response.status_code
            )

        return InstallationToken(
            installation_id=installation_id,
            token=value,
            expires_at=expires_at,
        )


class GitHubAppAuth:
    """
    GitHub App Authentication Manager.

    Mints a fresh app credential and exchanges it on every call; nothing is
    cached between calls.

    Usage:
        auth = GitHubAppAuth(settings, private_key)
        token = await auth.installation_token(installation_id)
    """

    def __init__(
        self,
        settings: Settings,
        private_key: RSAPrivateKey,
        exchanger: Optional[TokenExchanger] = None
    ):
        self.settings = settings
        self._private_key = private_key
        self.exchanger = exchanger or TokenExchanger(settings)

    def generate_credential(self, now: Optional[float] = None) -> AppCredential:
        """Mint an app credential for this GitHub App."""
        return mint(self.settings.github_app_id, self._private_key, now)

    async def installation_token(self, installation_id: Optional[int]) -> InstallationToken:
        """
        Obtain an installation access token.

        Args:
            installation_id: GitHub App installation ID

        Returns:
            Installation access token

        Raises:
            MissingInstallation: If installation_id is absent
            TokenExchangeFailed: If the exchange fails
        """
        if installation_id is None:
            raise MissingInstallation("Webhook payload does not identify an installation")

        credential = self.generate_credential()
        return await self.exchanger.exchange(credential, installation_id)
