"""
Order Service Clients Module

HTTP clients for synchronous communication with other services
"""

from .account_client import AccountClient

__all__ = [
    "AccountClient",
]
