"""Email administration endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from crackzone.api.deps import EmailTester, InvitationSender
from crackzone.logging_config import get_logger
from crackzone.schemas.common import ERROR_RESPONSES, MessageResponse
from crackzone.schemas.requests import TestEmailRequest, TournamentInvitationRequest
from crackzone.schemas.responses import EmailConfigResponse
from crackzone.services.email import EmailService, get_email_service

router = APIRouter(prefix="/email", tags=["Email"])
logger = get_logger(__name__)

EmailDep = Annotated[EmailService, Depends(get_email_service)]


@router.post("/test-config", response_model=EmailConfigResponse, responses=ERROR_RESPONSES)
async def test_config(admin: EmailTester, email: EmailDep):
    """Open an SMTP session with the configured credentials."""
    ok = await email.verify_config()
    return EmailConfigResponse(
        configured=ok,
        message="Email configuration is valid" if ok else "Email configuration failed",
    )


@router.post("/test-send", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def test_send(request_body: TestEmailRequest, admin: EmailTester, email: EmailDep):
    await email.send(request_body.to, request_body.template, email.sample_data(request_body.template))
    logger.info("test_email_sent", template=request_body.template, requested_by=admin.id)
    return MessageResponse(message="Test email sent successfully")


@router.post("/tournament-invitation", response_model=MessageResponse, responses=ERROR_RESPONSES)
async def tournament_invitation(request_body: TournamentInvitationRequest, sender: InvitationSender, email: EmailDep):
    await email.send_tournament_invitation(
        request_body.email,
        request_body.username,
        request_body.model_dump(by_alias=False, exclude={"email", "username"}, exclude_none=True),
    )
    return MessageResponse(message="Tournament invitation sent successfully")
