"""
Webhook Handler Module

This module defines the FastAPI endpoint that receives GitHub webhooks.

Design Decisions:
- Authenticate the raw body before anything else; reject with 401 on mismatch
- Undecodable bodies are treated as an empty object
- Every authenticated delivery is acknowledged with a plain "ok", whatever
  happened downstream
"""

import json
from typing import Any, Dict

from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse

from auto_assign.errors import Unauthorized
from auto_assign.logging_config import get_logger
from auto_assign.models import WebhookEvent
from auto_assign.webhook.processor import handle_event
from auto_assign.webhook.security import (
    authenticate,
    extract_delivery_id,
    extract_signature_header,
)

logger = get_logger(__name__)

router = APIRouter(tags=["webhook"])


def parse_payload(raw_body: bytes) -> Dict[str, Any]:
    """Decode a JSON object body, falling back to an empty dict."""
    try:
        payload = json.loads(raw_body) if raw_body else {}
    except (ValueError, RecursionError):
        return {}
    return payload if isinstance(payload, dict) else {}


@router.post("/", status_code=status.HTTP_200_OK, response_class=PlainTextResponse)
async def github_webhook(request: Request) -> str:
    """
    GitHub webhook endpoint.

    Verifies the delivery signature, then routes the event. Returns the
    literal body "ok" for every authenticated delivery.

    Raises:
        Unauthorized: If the signature does not match the body
    """
    settings = request.app.state.settings
    delivery_id = extract_delivery_id(request)

    # Read raw body for signature verification
    raw_body = await request.body()
    signature_header = extract_signature_header(request)

    if not authenticate(
        raw_body,
        signature_header,
        settings.github_webhook_secret.get_secret_value()
    ):
        logger.warning(
            "Rejected webhook with invalid signature",
            delivery_id=delivery_id,
            header_present=signature_header is not None,
            remote_addr=request.client.host if request.client else "unknown"
        )
        raise Unauthorized("Invalid webhook signature")

    payload = parse_payload(raw_body)
    action = payload.get("action")

    event = WebhookEvent(
        event_type=request.headers.get("X-GitHub-Event"),
        action=action if isinstance(action, str) else None,
        delivery_id=delivery_id,
        raw_body=raw_body,
        signature_header=signature_header
    )

    await handle_event(request.app.state.event_router, event, payload)
    return "ok"
