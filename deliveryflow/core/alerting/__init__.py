from .router import AlertRouter, ChannelNotFoundError
from .channels import EmailChannel, LoggingChannel, SlackWebhookChannel
from .routing_rules import format_alert_message, get_severity

__all__ = [
    "AlertRouter",
    "ChannelNotFoundError",
    "EmailChannel",
    "LoggingChannel",
    "SlackWebhookChannel",
    "format_alert_message",
    "get_severity",
]
