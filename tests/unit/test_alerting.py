# ===================================================
# 📁 tests/unit/test_alerting.py
# ===================================================
import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from deliveryflow.core.alerting import (
    AlertRouter,
    ChannelNotFoundError,
    EmailChannel,
    SlackWebhookChannel,
    format_alert_message,
)
from deliveryflow.interfaces.types.common import AlertReason
from deliveryflow.interfaces.types.events import make_alert_event

from fakes import RecordingChannel


def _event(reason=AlertReason.EXECUTION_FAILED):
    return make_alert_event(reason, execution_id="exec-1", pipeline_name="CICD_Pipeline", stage_name="Unit-Test",
                            detail="exit status 1")


def test_alert_event_shape():
    event = _event()
    assert event["event_type"] == "AlertEvent"
    assert event["reason"] == "ExecutionFailed"
    assert event["timestamp"].endswith("Z")


def test_format_alert_message():
    message = format_alert_message(_event(AlertReason.HEALTH_REGRESSION))
    assert message == "[CRITICAL] HealthRegression in CICD_Pipeline / Unit-Test (execution exec-1): exit status 1"


@pytest.mark.asyncio
async def test_publish_fans_out_to_matching_channels():
    router = AlertRouter()
    everything, health_only = RecordingChannel(), RecordingChannel()
    router.register_channel("all", everything)
    router.register_channel("health", health_only, reasons=[AlertReason.HEALTH_REGRESSION])

    assert router.publish(_event()) == 1
    assert router.publish(_event(AlertReason.HEALTH_REGRESSION)) == 2
    await router.drain()

    assert [e["reason"] for e in everything.events] == ["ExecutionFailed", "HealthRegression"]
    assert [e["reason"] for e in health_only.events] == ["HealthRegression"]


@pytest.mark.asyncio
async def test_failing_channel_is_isolated():
    class BrokenChannel:
        async def send(self, message, event):
            raise RuntimeError("smtp down")

    router = AlertRouter()
    healthy = RecordingChannel()
    router.register_channel("broken", BrokenChannel())
    router.register_channel("healthy", healthy)

    router.publish(_event())
    await router.drain()

    assert len(healthy.events) == 1


def test_publish_without_running_loop_drops_instead_of_blocking():
    router = AlertRouter()
    channel = RecordingChannel()
    router.register_channel("recording", channel)

    assert router.publish(_event()) == 0
    assert channel.events == []


def test_unregister_channel():
    router = AlertRouter()
    router.register_channel("recording", RecordingChannel())
    router.unregister_channel("recording")
    assert router.channels() == []
    assert router.publish(_event()) == 0
    with pytest.raises(ChannelNotFoundError):
        router.unregister_channel("recording")


@pytest.mark.asyncio
async def test_slack_channel_posts_text_payload():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = request.content
        return httpx.Response(200, text="ok")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        channel = SlackWebhookChannel("https://hooks.example.com/T000/B000", client=client)
        await channel.send("pipeline failed", _event())

    assert captured["url"] == "https://hooks.example.com/T000/B000"
    assert json.loads(captured["body"]) == {"text": "pipeline failed"}


@pytest.mark.asyncio
async def test_slack_channel_raises_on_http_error():
    async with httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))) as client:
        channel = SlackWebhookChannel("https://hooks.example.com/x", client=client)
        with pytest.raises(httpx.HTTPStatusError):
            await channel.send("pipeline failed", _event())


@pytest.mark.asyncio
@patch("deliveryflow.core.alerting.channels.smtplib.SMTP")
async def test_email_channel_sends_via_smtp(mock_smtp_cls):
    smtp = MagicMock()
    mock_smtp_cls.return_value.__enter__.return_value = smtp
    channel = EmailChannel("smtp.example.com", "deliveryflow@example.com", ["oncall@example.com"])

    await channel.send("pipeline failed", _event())

    mock_smtp_cls.assert_called_once_with("smtp.example.com", 25, timeout=30)
    sent = smtp.send_message.call_args.args[0]
    assert sent["To"] == "oncall@example.com"
    assert "ExecutionFailed" in sent["Subject"]
