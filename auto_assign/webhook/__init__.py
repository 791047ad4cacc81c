"""
Webhook Package

This package contains webhook handling components:
- handler: FastAPI route handlers
- security: Webhook signature verification
- processor: Event routing and reviewer assignment
"""

from auto_assign.webhook.handler import router

__all__ = ["router"]
