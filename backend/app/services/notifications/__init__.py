"""
Notifications: outbox-driven fan-out with a paired audit trail.
"""
from .fanout import STATUS_MESSAGES, NotificationFanout
from .outbox import MAX_ATTEMPTS, NotificationOutbox

__all__ = [
    "MAX_ATTEMPTS",
    "NotificationFanout",
    "NotificationOutbox",
    "STATUS_MESSAGES",
]
