"""
Services Package

This package contains all service modules for Reviewer Auto-Assign:
- github_auth: GitHub App credentials and installation tokens
- graphql_client: GitHub GraphQL transport
- reviewers: reviewer selection and review requests
"""

from auto_assign.services.github_auth import (
    GitHubAppAuth,
    TokenExchanger,
    load_private_key,
    mint,
)
from auto_assign.services.graphql_client import GraphQLClient, GraphQLRequestError
from auto_assign.services.reviewers import ReviewerResolver, ReviewRequester, pick_reviewer

__all__ = [
    "GitHubAppAuth",
    "TokenExchanger",
    "load_private_key",
    "mint",
    "GraphQLClient",
    "GraphQLRequestError",
    "ReviewerResolver",
    "ReviewRequester",
    "pick_reviewer",
]
