from .redis_bus import EventBus, state_change_channel

__all__ = ["EventBus", "state_change_channel"]
