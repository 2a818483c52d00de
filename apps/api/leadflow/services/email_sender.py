"""Email sender interface + selection helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

from leadflow.core.config import settings
from leadflow.jobs.utils import mask_email
from leadflow.services import resend_email_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SendResult:
    success: bool
    error: str | None = None
    message_id: str | None = None


class EmailSender(Protocol):
    key: str

    async def send(
        self,
        *,
        sender: str,
        recipient: str,
        subject: str,
        body: str,
        idempotency_key: str | None = None,
    ) -> SendResult:
        """Send one email. Never raises for transport failures."""


class ResendEmailSender:
    key = "resend"

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key

    async def send(
        self,
        *,
        sender: str,
        recipient: str,
        subject: str,
        body: str,
        idempotency_key: str | None = None,
    ) -> SendResult:
        success, error, message_id = await resend_email_service.send_email_direct(
            api_key=self.api_key,
            to_email=recipient,
            subject=subject,
            body=body,
            from_email=sender,
            idempotency_key=idempotency_key,
        )
        return SendResult(success=success, error=error, message_id=message_id)


class DryRunEmailSender:
    """Logs instead of sending. Used when no provider is configured."""

    key = "dry_run"

    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send(
        self,
        *,
        sender: str,
        recipient: str,
        subject: str,
        body: str,
        idempotency_key: str | None = None,
    ) -> SendResult:
        self.sent.append(
            {"sender": sender, "recipient": recipient, "subject": subject, "body": body}
        )
        logger.info(
            "Dry run email from %s to %s: %s",
            sender,
            mask_email(recipient),
            subject,
        )
        return SendResult(success=True)


def select_sender() -> EmailSender:
    """Resend when an API key is configured, otherwise dry run."""
    if settings.RESEND_API_KEY:
        return ResendEmailSender(settings.RESEND_API_KEY)
    return DryRunEmailSender()
