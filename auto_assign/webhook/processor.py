"""
Webhook Event Processor Module

This module decides what to do with an authenticated webhook delivery and
orchestrates reviewer assignment for newly opened pull requests.

Design Decisions:
- Only pull_request/opened deliveries without requested reviewers do anything
- Unexpected payload shapes are ignored rather than raised
- One installation token per delivery, shared by the query and the mutation
- All downstream failures are caught and logged at the request boundary
"""

from typing import Any, Dict, Optional

from auto_assign.errors import AutoAssignError
from auto_assign.logging_config import get_logger
from auto_assign.models import ReviewTarget, RouteOutcome, WebhookEvent
from auto_assign.services.github_auth import GitHubAppAuth
from auto_assign.services.reviewers import ReviewerResolver, ReviewRequester

logger = get_logger(__name__)

PULL_REQUEST_EVENT = "pull_request"
OPENED_ACTION = "opened"


class ReviewerAssigner:
    """
    Assigns a reviewer to a single pull request.

    Usage:
        assigner = ReviewerAssigner(auth, resolver, requester)
        outcome = await assigner.assign(target)
    """

    def __init__(
        self,
        auth: GitHubAppAuth,
        resolver: ReviewerResolver,
        requester: ReviewRequester
    ):
        self.auth = auth
        self.resolver = resolver
        self.requester = requester

    async def assign(self, target: ReviewTarget) -> RouteOutcome:
        """
        Resolve a reviewer for ``target`` and request their review.

        Raises:
            MissingInstallation, TokenExchangeFailed, QueryFailed, MutationFailed
        """
        logger.debug(
            "Assigning reviewer",
            repo=target.full_repo_name,
            pr_number=target.pr_number
        )

        token = await self.auth.installation_token(target.installation_id)

        pr_id, reviewer_id = await self.resolver.resolve(
            target.owner,
            target.repo_name,
            target.pr_number,
            token
        )

        if reviewer_id is None:
            logger.info(
                "No reviewer candidates found",
                repo=target.full_repo_name,
                pr_number=target.pr_number
            )
            return RouteOutcome.NO_REVIEWER

        await self.requester.request(pr_id, reviewer_id, token)

        logger.info(
            "Reviewer assigned",
            repo=target.full_repo_name,
            pr_number=target.pr_number,
            reviewer_id=reviewer_id
        )
        return RouteOutcome.ASSIGNED


class EventRouter:
    """
    Dispatches authenticated webhook deliveries.

    Usage:
        router = EventRouter(assigner)
        outcome = await router.route("pull_request", "opened", payload)
    """

    def __init__(self, assigner: ReviewerAssigner):
        self.assigner = assigner

    async def route(
        self,
        event_type: Optional[str],
        action: Optional[str],
        payload: Any
    ) -> RouteOutcome:
        """
        Route a delivery to its handler.

        Returns:
            IGNORED for anything but an opened pull request with no requested
            reviewers; otherwise the assignment outcome
        """
        if event_type != PULL_REQUEST_EVENT or action != OPENED_ACTION:
            return RouteOutcome.IGNORED

        target = ReviewTarget.from_payload(payload)
        if target is None:
            logger.debug("Ignoring pull request with unexpected payload shape")
            return RouteOutcome.IGNORED

        if target.requested_reviewers:
            logger.debug(
                "Pull request already has reviewers",
                repo=target.full_repo_name,
                pr_number=target.pr_number
            )
            return RouteOutcome.IGNORED

        return await self.assigner.assign(target)


def _describe_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Pick loggable identifiers out of a payload without trusting its shape."""
    repository = payload.get("repository")
    repo = repository.get("full_name") if isinstance(repository, dict) else None
    pr_number = payload.get("number")
    return {
        "repo": repo if isinstance(repo, str) else None,
        "pr_number": pr_number if isinstance(pr_number, int) else None,
    }


async def handle_event(
    router: EventRouter,
    event: WebhookEvent,
    payload: Dict[str, Any]
) -> RouteOutcome:
    """
    Route a delivery, containing every failure.

    This is the request boundary: errors are logged with enough context to
    diagnose and reported as FAILED, never raised to the HTTP layer.

    Args:
        router: Event router
        event: The authenticated delivery
        payload: Decoded JSON body (empty dict if undecodable)

    Returns:
        The routing outcome
    """
    logger.debug(
        "Received event",
        event_type=event.event_type,
        action=event.action,
        delivery_id=event.delivery_id
    )

    try:
        outcome = await router.route(event.event_type, event.action, payload)
    except AutoAssignError as e:
        logger.error(
            "Reviewer assignment failed",
            event_type=event.event_type,
            action=event.action,
            delivery_id=event.delivery_id,
            error=str(e),
            error_type=type(e).__name__,
            status_code=e.status_code,
            **_describe_payload(payload)
        )
        return RouteOutcome.FAILED
    except Exception as e:
        logger.error(
            "Unexpected error while processing webhook",
            event_type=event.event_type,
            action=event.action,
            delivery_id=event.delivery_id,
            error=str(e),
            error_type=type(e).__name__,
            **_describe_payload(payload)
        )
        return RouteOutcome.FAILED

    logger.info(
        "Processed webhook",
        event_type=event.event_type,
        action=event.action,
        delivery_id=event.delivery_id,
        outcome=outcome.value
    )
    return outcome
