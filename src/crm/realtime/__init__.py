"""
Real-time synchronization of connected clients.
"""

from crm.realtime.broadcaster import (
    ChannelMessage,
    ConnectionHub,
    EventBroadcaster,
    Subscription,
    channel_name,
    contact_event_name,
)

__all__ = [
    "ChannelMessage",
    "ConnectionHub",
    "EventBroadcaster",
    "Subscription",
    "channel_name",
    "contact_event_name",
]
