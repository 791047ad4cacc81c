"""
Configuration Management Module

This module handles all application configuration using Pydantic Settings.
Configuration is loaded from environment variables with strong typing and validation.

Design Decisions:
- Use Pydantic Settings for automatic environment variable loading
- Settings are frozen once loaded and passed explicitly to each component
- Validate configuration at startup (fail-fast approach)
- Support both file path and direct content for private key (flexibility)
- Secrets are held as SecretStr so they never render in logs or reprs
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Public GitHub is served from api.github.com; Enterprise hosts expose the
# APIs under /api/v3 and /api/graphql on the instance host itself.
PUBLIC_GITHUB_HOSTS = {"github.com", "api.github.com"}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All sensitive values are loaded from environment variables only,
    never hardcoded or logged.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        frozen=True
    )

    # =========================================================================
    # GitHub App Configuration
    # =========================================================================
    github_app_id: str = Field(
        validation_alias=AliasChoices("github_app_id", "github_app_identifier"),
        description="GitHub App ID from app settings"
    )

    github_private_key_path: Optional[str] = Field(
        default=None,
        description="Path to GitHub App private key .pem file"
    )

    github_private_key: Optional[SecretStr] = Field(
        default=None,
        description="GitHub App private key content (alternative to path)"
    )

    github_webhook_secret: SecretStr = Field(
        description="Webhook secret for signature verification"
    )

    github_host: str = Field(
        default="github.com",
        description="GitHub or GitHub Enterprise host name"
    )

    github_request_timeout: float = Field(
        default=10.0,
        gt=0.0,
        le=120.0,
        description="Timeout in seconds for each outbound GitHub call"
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================
    host: str = Field(
        default="0.0.0.0",
        description="Host to bind the server"
    )

    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port to bind the server"
    )

    # =========================================================================
    # Logging Configuration
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    log_json_format: bool = Field(
        default=True,
        description="Enable JSON logging format"
    )

    log_requests: bool = Field(
        default=False,
        description="Enable request/response logging"
    )

    # =========================================================================
    # Validators
    # =========================================================================
    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("github_host")
    @classmethod
    def validate_github_host(cls, v: str) -> str:
        """Reduce the host to a bare host name."""
        host = v.strip()
        for scheme in ("https://", "http://"):
            if host.lower().startswith(scheme):
                host = host[len(scheme):]
        host = host.rstrip("/")
        if not host or "/" in host:
            raise ValueError(f"Invalid GitHub host: {v}")
        return host.lower()

    # =========================================================================
    # Computed Properties
    # =========================================================================
    @property
    def is_public_github(self) -> bool:
        """Whether the configured host is github.com rather than Enterprise."""
        return self.github_host in PUBLIC_GITHUB_HOSTS

    @property
    def rest_api_base(self) -> str:
        """Base URL of the REST API (used for token issuance)."""
        if self.is_public_github:
            return "https://api.github.com"
        return f"https://{self.github_host}/api/v3"

    @property
    def graphql_url(self) -> str:
        """URL of the GraphQL endpoint."""
        if self.is_public_github:
            return "https://api.github.com/graphql"
        return f"https://{self.github_host}/api/graphql"

    def get_private_key(self) -> str:
        """
        Get the GitHub App private key content.

        Supports two modes:
        1. Direct content via GITHUB_PRIVATE_KEY env var
        2. File path via GITHUB_PRIVATE_KEY_PATH env var

        Returns:
            Private key content as string

        Raises:
            ValueError: If neither option is configured or file doesn't exist
        """
        # Direct content takes precedence
        if self.github_private_key is not None:
            # Env vars carry the PEM with newlines escaped as a literal \n
            return self.github_private_key.get_secret_value().replace("\\n", "\n")

        # Fall back to file path
        if self.github_private_key_path:
            key_path = Path(self.github_private_key_path)
            if not key_path.exists():
                raise ValueError(f"Private key file not found: {key_path}")
            return key_path.read_text()

        raise ValueError(
            "GitHub private key not configured. "
            "Set either GITHUB_PRIVATE_KEY or GITHUB_PRIVATE_KEY_PATH"
        )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Only the entry points call this; components receive the settings
    object through their constructors.

    Returns:
        Settings instance
    """
    return Settings()
