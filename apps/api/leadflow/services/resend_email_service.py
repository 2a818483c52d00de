"""Resend Email Service.

Sends workflow emails via the Resend API. A single attempt is made; delivery
jobs are never retried.
"""

from __future__ import annotations

import html as html_module
import logging
import re

import httpx

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"
RESEND_TIMEOUT_SECONDS = 20.0


def _html_to_text(content: str) -> str:
    """Convert HTML into readable text for the plain-text alternative."""
    text = re.sub(r"<(script|style)[^>]*>.*?</\1>", "", content, flags=re.DOTALL | re.I)
    text = re.sub(r"<[^>]+>", " ", text)
    text = re.sub(r"\s+", " ", text).strip()
    return html_module.unescape(text)


async def send_email_direct(
    api_key: str,
    to_email: str,
    subject: str,
    body: str,
    from_email: str,
    idempotency_key: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> tuple[bool, str | None, str | None]:
    """
    Send an email via Resend.

    Args:
        api_key: Resend API key
        to_email: Recipient email
        subject: Email subject
        body: Email body (plain text or HTML)
        from_email: Sender address
        idempotency_key: Idempotency key (optional)
        transport: httpx transport override (tests)

    Returns:
        (success, error_message, message_id)
    """
    payload: dict[str, object] = {
        "from": from_email,
        "to": [to_email],
        "subject": subject,
        "html": body,
    }

    text = _html_to_text(body)
    if text:
        payload["text"] = text

    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json",
    }
    if idempotency_key:
        headers["Idempotency-Key"] = idempotency_key

    try:
        async with httpx.AsyncClient(
            timeout=RESEND_TIMEOUT_SECONDS, transport=transport
        ) as client:
            response = await client.post(RESEND_SEND_URL, headers=headers, json=payload)
    except httpx.TimeoutException:
        return False, "Connection timeout", None
    except httpx.HTTPError as e:
        logger.exception("Resend connection error")
        return False, f"Connection error: {e.__class__.__name__}", None

    if 200 <= response.status_code < 300:
        try:
            data = response.json()
        except ValueError:
            logger.warning("Resend returned a non-JSON success body")
            return True, None, None
        return True, None, data.get("id") if isinstance(data, dict) else None

    if response.status_code == 409:
        # Idempotency conflict = already sent
        return True, None, None

    error_detail = None
    try:
        data = response.json()
        if isinstance(data, dict):
            error_detail = data.get("message") or data.get("error")
    except ValueError:
        pass

    error_msg = f"Resend API error: {response.status_code}"
    if error_detail:
        error_msg = f"{error_msg} ({error_detail})"

    return False, error_msg, None
