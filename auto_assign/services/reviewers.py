"""
Reviewer Selection and Review Request Module

Resolves a reviewer for a pull request from GitHub's suggested reviewers
(falling back to the repository's assignable users) and requests a review
from them.

Design Decisions:
- One combined GraphQL query fetches the pull request id and both candidate pools
- Selection is uniform over distinct candidate ids; randomness is injectable
- No reviewer is a valid outcome, not an error
- The requester never calls GitHub when there is nobody to assign
"""

import random
from typing import Any, Dict, List, Optional, Tuple

from auto_assign.errors import MutationFailed, QueryFailed
from auto_assign.logging_config import get_logger
from auto_assign.models import InstallationToken, PullRequestContext, SuggestedReviewer
from auto_assign.services.graphql_client import GraphQLClient, GraphQLRequestError

logger = get_logger(__name__)

# GitHub caps assignableUsers pages at 100 nodes
ASSIGNABLE_USERS_LIMIT = 100

SUGGESTED_REVIEWERS_QUERY = """
query($owner: String!, $repo_name: String!, $pr_number: Int!) {
    repository(owner: $owner, name: $repo_name) {
        pullRequest(number: $pr_number) {
            id
            suggestedReviewers {
                isAuthor
                isCommenter
                reviewer {
                    id
                }
            }
        }
        assignableUsers(first: %d) {
            edges {
                node {
                    id
                }
            }
        }
    }
}
""" % ASSIGNABLE_USERS_LIMIT

REQUEST_REVIEW_MUTATION = """
mutation($pr_id: ID!, $user_id: ID!) {
    requestReviews(input: {pullRequestId: $pr_id, userIds: [$user_id]}) {
        pullRequest {
            title
        }
    }
}
"""


def pick_reviewer(context: PullRequestContext, rng: random.Random) -> Optional[str]:
    """
    Pick a reviewer id for a pull request.

    Suggested reviewers win over assignable users. Duplicate ids are
    collapsed so every distinct candidate is equally likely.

    Returns:
        The chosen node id, or None when both pools are empty
    """
    if context.suggested_reviewers:
        candidates = [reviewer.id for reviewer in context.suggested_reviewers]
    else:
        candidates = list(context.assignable_users)

    candidates = list(dict.fromkeys(candidates))
    if not candidates:
        return None
    return rng.choice(candidates)


def _malformed(field: str) -> QueryFailed:
    return QueryFailed(f"Malformed suggested reviewers response at {field}")


def _list_field(container: Dict[str, Any], key: str) -> List[Any]:
    value = container.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise _malformed(key)
    return value


def _node_id(node: Any, field: str) -> Optional[str]:
    """Return a node's id, or None for a null node such as a deleted user."""
    if node is None:
        return None
    if not isinstance(node, dict):
        raise _malformed(field)
    node_id = node.get("id")
    if node_id is not None and not isinstance(node_id, str):
        raise _malformed(f"{field}.id")
    return node_id or None


class ReviewerResolver:
    """
    Finds a reviewer for a pull request.

    Usage:
        resolver = ReviewerResolver(graphql_client)
        pr_id, reviewer_id = await resolver.resolve("octo", "repo", 42, token)
    """

    def __init__(self, client: GraphQLClient, rng: Optional[random.Random] = None):
        self.client = client
        self.rng = rng or random.Random()

    async def fetch(
        self,
        owner: str,
        repo_name: str,
        pr_number: int,
        token: InstallationToken
    ) -> PullRequestContext:
        """
        Fetch the pull request id and reviewer candidates.

        Raises:
            QueryFailed: If the query fails or the response lacks the pull request
        """
        variables = {"owner": owner, "repo_name": repo_name, "pr_number": pr_number}

        try:
            data = await self.client.execute(SUGGESTED_REVIEWERS_QUERY, variables, token)
        except GraphQLRequestError as e:
            raise QueryFailed(
                f"Suggested reviewers query failed: {e}",
                status_code=e.status_code,
                response_body=e.response_body
            ) from e

        return self._parse_context(data, owner, repo_name, pr_number)

    def _parse_context(
        self,
        data: Dict[str, Any],
        owner: str,
        repo_name: str,
        pr_number: int
    ) -> PullRequestContext:
        repository = data.get("repository")
        if not isinstance(repository, dict):
            raise QueryFailed(f"Repository {owner}/{repo_name} not found")

        pull_request = repository.get("pullRequest")
        if not isinstance(pull_request, dict) or not pull_request.get("id"):
            raise QueryFailed(f"Pull request {owner}/{repo_name}#{pr_number} not found")
        if not isinstance(pull_request["id"], str):
            raise _malformed("pullRequest.id")

        suggested: List[SuggestedReviewer] = []
        for entry in _list_field(pull_request, "suggestedReviewers"):
            if not isinstance(entry, dict):
                raise _malformed("suggestedReviewers")
            reviewer_id = _node_id(entry.get("reviewer"), "suggestedReviewers.reviewer")
            if reviewer_id:
                suggested.append(SuggestedReviewer(
                    id=reviewer_id,
                    is_author=bool(entry.get("isAuthor")),
                    is_commenter=bool(entry.get("isCommenter"))
                ))

        assignable_users = repository.get("assignableUsers")
        if assignable_users is None:
            assignable_users = {}
        if not isinstance(assignable_users, dict):
            raise _malformed("assignableUsers")

        assignable: List[str] = []
        for edge in _list_field(assignable_users, "edges"):
            if not isinstance(edge, dict):
                raise _malformed("assignableUsers.edges")
            node_id = _node_id(edge.get("node"), "assignableUsers.edges.node")
            if node_id:
                assignable.append(node_id)

        return PullRequestContext(
            owner=owner,
            repo_name=repo_name,
            pr_number=pr_number,
            pr_id=pull_request["id"],
            suggested_reviewers=suggested,
            assignable_users=assignable
        )

    async def resolve(
        self,
        owner: str,
        repo_name: str,
        pr_number: int,
        token: InstallationToken
    ) -> Tuple[str, Optional[str]]:
        """
        Resolve a reviewer for a pull request.

        Args:
            owner: Repository owner login
            repo_name: Repository name
            pr_number: Pull request number
            token: Installation token

        Returns:
            Tuple of (pull request node id, reviewer node id or None)

        Raises:
            QueryFailed: If the candidate query fails
        """
        context = await self.fetch(owner, repo_name, pr_number, token)
        reviewer_id = pick_reviewer(context, self.rng)

        logger.debug(
            "Resolved reviewer candidates",
            repo=f"{owner}/{repo_name}",
            pr_number=pr_number,
            num_suggested=len(context.suggested_reviewers),
            num_assignable=len(context.assignable_users),
            source="suggested" if context.suggested_reviewers else "assignable",
            found=reviewer_id is not None
        )
        return context.pr_id, reviewer_id


class ReviewRequester:
    """
    Requests a review on a pull request from a single user.

    Usage:
        requester = ReviewRequester(graphql_client)
        await requester.request(pr_id, reviewer_id, token)
    """

    def __init__(self, client: GraphQLClient):
        self.client = client

    async def request(
        self,
        pr_id: str,
        reviewer_id: Optional[str],
        token: InstallationToken
    ) -> bool:
        """
        Request a review from ``reviewer_id``.

        Returns immediately without calling GitHub when reviewer_id is None.

        Returns:
            True once the review has been requested (or there was nobody to request)

        Raises:
            MutationFailed: If the mutation fails
        """
        if reviewer_id is None:
            return True

        try:
            data = await self.client.execute(
                REQUEST_REVIEW_MUTATION,
                {"pr_id": pr_id, "user_id": reviewer_id},
                token
            )
        except GraphQLRequestError as e:
            raise MutationFailed(
                f"Review request failed: {e}",
                status_code=e.status_code,
                response_body=e.response_body
            ) from e

        pull_request = (data.get("requestReviews") or {}).get("pullRequest")
        if not isinstance(pull_request, dict):
            raise MutationFailed("Review request returned no pull request")

        logger.info(
            "Requested review",
            pr_id=pr_id,
            reviewer_id=reviewer_id,
            title=pull_request.get("title")
        )
        return True
