from src.channels.base import CHANNEL_REGISTRY, NotificationChannel, get_channel, register_channel

# Import channel modules for registration side effects.
import src.channels.telegram  # noqa: F401

__all__ = ["CHANNEL_REGISTRY", "NotificationChannel", "get_channel", "register_channel"]
