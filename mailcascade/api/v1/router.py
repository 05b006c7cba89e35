"""API v1 router aggregation.

Includes all endpoint modules with consistent prefix and tags. All routes
use dependencies from mailcascade.api.v1.dependencies (no manual repo/service construction).
"""

from fastapi import APIRouter

from mailcascade.api.v1.endpoints import email_integrations, emails, health

api_router = APIRouter()

api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(emails.router, prefix="/emails", tags=["emails"])
api_router.include_router(
    email_integrations.router, prefix="/email-integrations", tags=["email-integrations"]
)
