# ============================================
# 📁 core/alerting/channels.py
# ============================================
import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import List, Optional

import httpx

from deliveryflow.interfaces.types.events import AlertEvent

logger = logging.getLogger(__name__)


class LoggingChannel:
    def __init__(self, level: int = logging.WARNING):
        self.level = level

    async def send(self, message: str, event: AlertEvent) -> None:
        logger.log(self.level, f"ALERT: {message}")


class SlackWebhookChannel:
    """Posts alerts to a chat incoming-webhook URL."""

    def __init__(self, webhook_url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self._client = client
        self.timeout = timeout

    async def send(self, message: str, event: AlertEvent) -> None:
        payload = {"text": message}
        if self._client is not None:
            response = await self._client.post(self.webhook_url, json=payload, timeout=self.timeout)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json=payload)
        response.raise_for_status()


class EmailChannel:
    """Sends alerts by SMTP. smtplib blocks, so delivery happens in a worker thread."""

    def __init__(self, smtp_host: str, sender: str, recipients: List[str], smtp_port: int = 25):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender
        self.recipients = list(recipients)

    def build_message(self, message: str, event: AlertEvent) -> EmailMessage:
        email = EmailMessage()
        email["Subject"] = f"[deliveryflow] {event['reason']} - {event.get('pipeline_name') or 'pipeline'}"
        email["From"] = self.sender
        email["To"] = ", ".join(self.recipients)
        email.set_content(message)
        return email

    def _send_sync(self, email: EmailMessage) -> None:
        with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as smtp:
            smtp.send_message(email)

    async def send(self, message: str, event: AlertEvent) -> None:
        if not self.recipients:
            logger.warning("EmailChannel has no recipients; alert not sent.")
            return
        await asyncio.to_thread(self._send_sync, self.build_message(message, event))
