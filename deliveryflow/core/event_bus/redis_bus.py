# ==============================================================
# 📁 core/event_bus/redis_bus.py
# ==============================================================
import json
import logging
from typing import Any, Dict, Optional

import redis
from opentelemetry import trace

from deliveryflow.interfaces.types.events import PipelineStateChangeEvent
from deliveryflow.shared.utils import message_summary

logger = logging.getLogger(__name__)
tracer = trace.get_tracer("deliveryflow.event_bus")


def state_change_channel(pipeline_name: str) -> str:
    return f"events.pipeline.{pipeline_name}.execution.state"


class EventBus:
    """
    Redis pub/sub publisher. Publishing is best effort: a missing or failing
    Redis connection is logged and never breaks the caller.
    """

    def __init__(self, redis_url: Optional[str] = None, client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.redis_client: Optional[redis.Redis] = client
        if self.redis_client is not None:
            return
        if not self.redis_url:
            logger.error("EventBus: REDIS_URL not configured. EventBus will not connect.")
            return
        try:
            self.redis_client = redis.from_url(self.redis_url, decode_responses=True)
            self.redis_client.ping()
            logger.info(f"EventBus connected to Redis at {self.redis_url}")
        except redis.exceptions.ConnectionError as e:
            logger.error(f"EventBus failed to connect to Redis at {self.redis_url}: {e}")
            self.redis_client = None

    @property
    def connected(self) -> bool:
        return self.redis_client is not None

    def publish(self, channel: str, event_data: Dict[str, Any]) -> bool:
        with tracer.start_as_current_span("event_bus.publish") as span:
            span.set_attribute("messaging.system", "redis")
            span.set_attribute("messaging.destination.name", channel)
            span.set_attribute("event.type", str(event_data.get("event_type")))
            if not self.redis_client:
                logger.error(f"Cannot publish to '{channel}': EventBus Redis client not connected.")
                span.set_status(trace.Status(trace.StatusCode.ERROR, "Redis client not connected"))
                return False
            try:
                self.redis_client.publish(channel, json.dumps(event_data))
            except TypeError as te:
                logger.error(f"TypeError publishing to channel '{channel}': Data not JSON serializable. Error: {te}")
                span.record_exception(te)
                span.set_status(trace.Status(trace.StatusCode.ERROR, "JSON serialization error"))
                return False
            except redis.exceptions.RedisError as e:
                logger.error(f"RedisError publishing to channel '{channel}': {e}", exc_info=True)
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, "Redis publish error"))
                return False
            logger.info(f"EventBus: Published to channel '{channel}': {message_summary(event_data)}")
            return True

    def publish_state_change(self, event: PipelineStateChangeEvent) -> bool:
        return self.publish(state_change_channel(event["pipeline_name"]), dict(event))
