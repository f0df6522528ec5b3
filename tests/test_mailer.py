"""
DevFocus - Mailer Tests
=======================
"""

import json

import httpx
import pytest

from devfocus.core.exceptions import EmailDeliveryError
from devfocus.core.mailer import Mailer, generate_otp, render_otp_email


class TestMailer:
    """Tests for SendGrid delivery over a mocked transport."""

    async def test_send_otp(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(202)

        mailer = Mailer(
            api_key="sg-key",
            api_url="https://mail.test/send",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        sent = await mailer.send_otp("ada@example.com", "Ada", "123456", "reset")
        await mailer.close()

        assert sent.otp == "123456"
        assert sent.subject == "Your DevFocus password reset code"
        body = json.loads(requests[0].content)
        assert requests[0].headers["authorization"] == "Bearer sg-key"
        assert body["personalizations"][0]["to"][0]["email"] == "ada@example.com"
        assert "123456" in body["content"][0]["value"]

    @pytest.mark.parametrize("status_code", [400, 401, 500])
    async def test_rejected(self, status_code: int):
        mailer = Mailer(
            api_key="sg-key",
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: httpx.Response(status_code))
            ),
        )

        with pytest.raises(EmailDeliveryError):
            await mailer.send_otp("ada@example.com", "Ada", "123456")
        await mailer.close()

    async def test_unreachable(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        mailer = Mailer(
            api_key="sg-key",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        with pytest.raises(EmailDeliveryError):
            await mailer.send_otp("ada@example.com", "Ada", "123456")
        await mailer.close()

    async def test_logging_only_without_key(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        mailer = Mailer(
            api_key="",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

        sent = await mailer.send_otp("ada@example.com", "Ada", "654321")
        await mailer.close()

        assert mailer.enabled is False
        assert sent.purpose == "verify"


def test_generate_otp():
    codes = {generate_otp() for _ in range(50)}

    assert all(len(code) == 6 and code.isdigit() for code in codes)
    assert len(codes) > 1
    assert len(generate_otp(8)) == 8


def test_render_otp_email():
    html = render_otp_email("Ada", "123456", "verify")

    assert "Hi Ada!" in html
    assert "123456" in html
