import json

import httpx
import pytest

from leadflow.services import resend_email_service
from leadflow.services.resend_email_service import _html_to_text, send_email_direct


@pytest.mark.asyncio
async def test_send_email_direct_success():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["idem"] = request.headers.get("Idempotency-Key")
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "msg_123"})

    success, error, message_id = await send_email_direct(
        api_key="re_test",
        to_email="a@x.com",
        subject="Hello",
        body="<p>Hi <b>there</b></p>",
        from_email="owner@test.com",
        idempotency_key="workflow-email/1",
        transport=httpx.MockTransport(handler),
    )

    assert (success, error, message_id) == (True, None, "msg_123")
    assert captured["url"] == resend_email_service.RESEND_SEND_URL
    assert captured["auth"] == "Bearer re_test"
    assert captured["idem"] == "workflow-email/1"
    assert captured["body"]["to"] == ["a@x.com"]
    assert captured["body"]["from"] == "owner@test.com"
    assert captured["body"]["text"] == "Hi there"


@pytest.mark.asyncio
async def test_send_email_direct_api_error():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"message": "Invalid from address"})

    success, error, message_id = await send_email_direct(
        api_key="re_test",
        to_email="a@x.com",
        subject="Hello",
        body="Hi",
        from_email="bad",
        transport=httpx.MockTransport(handler),
    )

    assert success is False
    assert error == "Resend API error: 422 (Invalid from address)"
    assert message_id is None


@pytest.mark.asyncio
async def test_send_email_direct_single_attempt_on_timeout():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ConnectTimeout("timed out", request=request)

    success, error, _ = await send_email_direct(
        api_key="re_test",
        to_email="a@x.com",
        subject="Hello",
        body="Hi",
        from_email="owner@test.com",
        transport=httpx.MockTransport(handler),
    )

    assert success is False
    assert error == "Connection timeout"
    assert len(calls) == 1


def test_html_to_text_strips_markup():
    html = "<style>p {color: red}</style><p>Hello &amp; welcome</p>"
    assert _html_to_text(html) == "Hello & welcome"


@pytest.mark.asyncio
async def test_send_email_direct_non_json_success_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="OK")

    success, error, message_id = await send_email_direct(
        api_key="re_test",
        to_email="a@x.com",
        subject="Hello",
        body="Hi",
        from_email="owner@test.com",
        transport=httpx.MockTransport(handler),
    )

    assert (success, error, message_id) == (True, None, None)
