"""
Notification delivery for risk events.

Provides per-user queues for Greeks updates and risk alerts.
"""

from derivrisk.services.notifications.hub import (
    NotificationChannel,
    NotificationHub,
)

__all__ = [
    "NotificationChannel",
    "NotificationHub",
]
