"""Notification channel abstraction layer."""

from rotabot.notifications.channels import NotificationChannel, NotificationMessage
from rotabot.notifications.slack_channel import SlackChannel

__all__ = [
    "NotificationChannel",
    "NotificationMessage",
    "SlackChannel",
]
