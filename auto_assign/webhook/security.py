"""
Webhook Security Module

This module handles verification of GitHub webhook payloads. A delivery is
authentic only when its signature header carries an HMAC of the raw body,
keyed with our webhook secret, that matches the one we compute.

Design Decisions:
- Use constant-time comparison to prevent timing attacks
- Verify signature before any payload processing
- Accept the SHA-2 family and SHA-1 (X-Hub-Signature-256 preferred)
- A missing header is an empty method and digest, which never matches
- Never log or return the secret or either digest
"""

import hashlib
import hmac
from typing import Optional, Tuple

from fastapi import Request

from auto_assign.logging_config import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADERS = ("X-Hub-Signature-256", "X-Hub-Signature")

SUPPORTED_METHODS = {
    "sha1": hashlib.sha1,
    "sha224": hashlib.sha224,
    "sha256": hashlib.sha256,
    "sha384": hashlib.sha384,
    "sha512": hashlib.sha512,
}


def parse_signature_header(signature_header: Optional[str]) -> Tuple[str, str]:
    """
    Split a ``<method>=<hex_digest>`` header.

    Returns:
        (method, digest); both empty when the header is absent or has no ``=``
    """
    if signature_header is None:
        return "", ""
    method, sep, digest = signature_header.partition("=")
    if not sep:
        return "", ""
    return method, digest


def authenticate(
    raw_body: bytes,
    signature_header: Optional[str],
    shared_secret: str
) -> bool:
    """
    Check that a webhook body was signed with the shared secret.

    Args:
        raw_body: Request body exactly as received
        signature_header: Value of the signature header, or None if absent
        shared_secret: Webhook secret shared with GitHub

    Returns:
        True only for a supported method whose digest matches exactly
    """
    method, their_digest = parse_signature_header(signature_header)

    hash_func = SUPPORTED_METHODS.get(method)
    if hash_func is None or not their_digest:
        return False

    our_digest = hmac.new(shared_secret.encode(), raw_body, hash_func).hexdigest()

    try:
        their_bytes = their_digest.encode("ascii")
    except UnicodeEncodeError:
        return False

    return hmac.compare_digest(their_bytes, our_digest.encode("ascii"))


def extract_signature_header(request: Request) -> Optional[str]:
    """
    Get the signature header, preferring SHA-256 over the legacy SHA-1 header.
    """
    for header in SIGNATURE_HEADERS:
        value = request.headers.get(header)
        if value is not None:
            return value
    return None


def extract_delivery_id(request: Request) -> Optional[str]:
    """
    Extract the webhook delivery ID from headers.

    This is useful for correlating log lines with GitHub's delivery log.

    Args:
        request: FastAPI request object

    Returns:
        Delivery ID or None
    """
    return request.headers.get("X-GitHub-Delivery")
