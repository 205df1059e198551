# ============================================
# 📁 core/alerting/router.py
# ============================================
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional, Set

from deliveryflow.interfaces.collaborators import NotificationChannel
from deliveryflow.interfaces.types.common import AlertReason
from deliveryflow.interfaces.types.events import AlertEvent
from .routing_rules import format_alert_message

logger = logging.getLogger(__name__)


class ChannelNotFoundError(Exception):
    """Raised when unregistering a channel that was never registered."""
    pass


@dataclass(frozen=True)
class _Subscription:
    channel: NotificationChannel
    reasons: Optional[FrozenSet[str]] = None

    def matches(self, reason: str) -> bool:
        return self.reasons is None or reason in self.reasons


class AlertRouter:
    """
    Fans AlertEvents out to the registered notification channels.

    publish() only schedules deliveries; each channel runs in its own task, and
    a channel that fails is logged and never affects the others or the caller.
    """

    def __init__(self):
        self._subscriptions: Dict[str, _Subscription] = {}
        self._in_flight: Set[asyncio.Task] = set()

    def register_channel(self, name: str, channel: NotificationChannel,
                         reasons: Optional[Iterable[AlertReason]] = None) -> None:
        reason_filter = frozenset(AlertReason(r).value for r in reasons) if reasons is not None else None
        self._subscriptions[name] = _Subscription(channel=channel, reasons=reason_filter)
        logger.info(f"Alert channel '{name}' registered"
                    + (f" for {sorted(reason_filter)}" if reason_filter is not None else " for all reasons"))

    def unregister_channel(self, name: str) -> None:
        if name not in self._subscriptions:
            raise ChannelNotFoundError(f"Alert channel '{name}' not found.")
        del self._subscriptions[name]

    def channels(self) -> List[str]:
        return list(self._subscriptions)

    def publish(self, event: AlertEvent) -> int:
        """Schedules delivery to every matching channel and returns how many were scheduled."""
        targets = [(name, sub.channel) for name, sub in self._subscriptions.items() if sub.matches(event["reason"])]
        if not targets:
            logger.debug(f"No alert channel subscribed to {event['reason']}.")
            return 0

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error(f"Alert {event['reason']} dropped: publish() needs a running event loop. "
                         f"Event: {format_alert_message(event)}")
            return 0

        message = format_alert_message(event)
        for name, channel in targets:
            task = loop.create_task(self._deliver(name, channel, message, event))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
        return len(targets)

    async def drain(self) -> None:
        """Waits for every scheduled delivery to finish."""
        while self._in_flight:
            await asyncio.gather(*list(self._in_flight))

    async def _deliver(self, name: str, channel: NotificationChannel, message: str, event: AlertEvent) -> None:
        try:
            await channel.send(message, event)
            logger.debug(f"Alert {event['reason']} delivered to '{name}'.")
        except Exception as e:
            logger.error(f"Alert delivery to channel '{name}' failed: {e}", exc_info=True)
