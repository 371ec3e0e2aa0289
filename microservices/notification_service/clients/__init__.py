"""
Notification Service Clients

HTTP clients for services the notification dispatcher talks to
"""

from .push_client import PushClient

__all__ = ["PushClient"]
