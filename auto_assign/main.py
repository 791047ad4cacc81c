"""
FastAPI Application Entry Point

This module creates and configures the FastAPI application.
It wires the configured components, routes and exception handlers.

Design Decisions:
- Use lifespan events for startup/shutdown logging
- Load the private key while building the app so bad key material is fatal at startup
- Components receive the frozen settings explicitly and are kept on app.state
- Expose health check endpoints
"""

import random
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from auto_assign import __version__
from auto_assign.config import Settings, get_settings
from auto_assign.errors import InvalidKeyMaterial, Unauthorized
from auto_assign.logging_config import get_logger, setup_logging
from auto_assign.services.github_auth import GitHubAppAuth, TokenExchanger, load_private_key
from auto_assign.services.graphql_client import GraphQLClient
from auto_assign.services.reviewers import ReviewerResolver, ReviewRequester
from auto_assign.webhook import router as webhook_router
from auto_assign.webhook.processor import EventRouter, ReviewerAssigner

logger = get_logger(__name__)


def load_app_key(settings: Settings) -> RSAPrivateKey:
    """
    Load and parse the configured GitHub App private key.

    Raises:
        InvalidKeyMaterial: If the key is missing or unusable
    """
    try:
        pem = settings.get_private_key()
    except ValueError as e:
        raise InvalidKeyMaterial(str(e)) from e
    return load_private_key(pem)


def build_event_router(
    settings: Settings,
    private_key: RSAPrivateKey,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    rng: Optional[random.Random] = None
) -> EventRouter:
    """Wire the authentication, query and mutation components together."""
    auth = GitHubAppAuth(
        settings,
        private_key,
        exchanger=TokenExchanger(settings, transport=transport)
    )
    graphql = GraphQLClient(settings, transport=transport)
    assigner = ReviewerAssigner(
        auth=auth,
        resolver=ReviewerResolver(graphql, rng=rng),
        requester=ReviewRequester(graphql)
    )
    return EventRouter(assigner)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events for the application.
    """
    settings: Settings = app.state.settings
    logger.info(
        "Starting Reviewer Auto-Assign",
        host=settings.host,
        port=settings.port,
        github_host=settings.github_host,
        app_id=settings.github_app_id
    )

    yield

    logger.info("Shutting down Reviewer Auto-Assign")


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    rng: Optional[random.Random] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Application settings; loaded from the environment if omitted
        transport: Optional httpx transport for all outbound GitHub calls
        rng: Optional random source for reviewer selection

    Returns:
        Configured FastAPI application instance

    Raises:
        InvalidKeyMaterial: If the GitHub App private key is unusable
    """
    settings = settings or get_settings()
    setup_logging(settings)

    try:
        private_key = load_app_key(settings)
    except InvalidKeyMaterial as e:
        logger.error("Configuration validation failed", error=str(e))
        raise

    app = FastAPI(
        title="Reviewer Auto-Assign",
        description="Assigns a reviewer to newly opened GitHub pull requests",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None
    )

    app.state.settings = settings
    app.state.event_router = build_event_router(settings, private_key, transport, rng)

    # Register routes
    app.include_router(webhook_router)

    @app.exception_handler(Unauthorized)
    async def unauthorized_handler(
        request: Request,
        exc: Unauthorized
    ) -> JSONResponse:
        """Reject unauthenticated deliveries without any detail."""
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Unauthorized"}
        )

    # Add global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"}
        )

    @app.get("/")
    async def root():
        """Root endpoint with basic info."""
        return {
            "name": "Reviewer Auto-Assign",
            "version": __version__,
            "status": "running"
        }

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint.

        Returns basic health status for load balancers and monitors.
        """
        return {
            "status": "healthy",
            "service": "reviewer-auto-assign",
            "version": __version__
        }

    @app.get("/ready")
    async def readiness_check():
        """
        Readiness check endpoint.

        Verifies that the private key can still be loaded.
        """
        try:
            load_app_key(settings)
        except InvalidKeyMaterial as e:
            logger.error("Readiness check failed", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Not ready: private key unavailable"
            )

        return {
            "status": "ready",
            "service": "reviewer-auto-assign"
        }

    return app
