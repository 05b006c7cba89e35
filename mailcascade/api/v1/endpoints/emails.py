"""Emails API: send through the delivery cascade, list the caller's delivery log."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from mailcascade.api.v1.dependencies import (
    get_current_user_id,
    get_email_delivery_log_repo,
    get_email_delivery_service,
)
from mailcascade.application.services.email_delivery_service import EmailDeliveryService
from mailcascade.core.limiter import limit_writes
from mailcascade.infrastructure.persistence.repositories.email_delivery_log_repo import (
    EmailDeliveryLogRepository,
)
from mailcascade.schemas.email import DeliveryLogResponse, EmailResultResponse, SendEmailBody

router = APIRouter()


@router.post("/send", response_model=EmailResultResponse)
@limit_writes
async def send_email(
    request: Request,
    body: SendEmailBody,
    user_id: Annotated[str, Depends(get_current_user_id)],
    delivery_service: Annotated[EmailDeliveryService, Depends(get_email_delivery_service)],
):
    """Send one email. A failed delivery is still 200 with success=false and the reasons."""
    result = await delivery_service.send_email(body.to_request(user_id))
    return EmailResultResponse.model_validate(result)


@router.get("/logs", response_model=list[DeliveryLogResponse])
async def list_delivery_logs(
    user_id: Annotated[str, Depends(get_current_user_id)],
    log_repo: Annotated[EmailDeliveryLogRepository, Depends(get_email_delivery_log_repo)],
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
):
    """Caller's delivery log, newest first (paginated)."""
    entries = await log_repo.list_by_user(user_id, skip=skip, limit=limit)
    return [DeliveryLogResponse.model_validate(e) for e in entries]
