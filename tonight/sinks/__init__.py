"""
Alert sinks for source health notifications.
"""

from .base import CooldownAlertSink, format_alert
from .email import EmailAlertSink
from .telegram import TelegramAlertSink

__all__ = ["CooldownAlertSink", "EmailAlertSink", "TelegramAlertSink", "format_alert"]
