#!/usr/bin/env python3
"""Service configuration for peer services

Endpoints of the services the fulfillment core talks to over HTTP
(account lookups, push delivery, QR image rendering).
"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _float(val: str, default: float) -> float:
    try:
        return float(val) if val else default
    except ValueError:
        return default


@dataclass
class ServiceConfig:
    """Peer service endpoints"""

    # Account service - user roles and contact info
    account_service_url: str = "http://localhost:8202"

    # Expo-compatible push gateway
    push_service_url: str = "https://exp.host/--/api/v2/push/send"
    push_enabled: bool = True

    # QR image rendering for clients
    qr_image_base_url: str = "https://api.qrserver.com/v1/create-qr-code/"

    http_timeout: float = 10.0

    @classmethod
    def from_env(cls) -> 'ServiceConfig':
        """Load service configuration from environment variables"""
        return cls(
            account_service_url=os.getenv("ACCOUNT_SERVICE_URL", "http://localhost:8202"),
            push_service_url=os.getenv("PUSH_SERVICE_URL", "https://exp.host/--/api/v2/push/send"),
            push_enabled=_bool(os.getenv("PUSH_ENABLED", "true")),
            qr_image_base_url=os.getenv("QR_IMAGE_BASE_URL", "https://api.qrserver.com/v1/create-qr-code/"),
            http_timeout=_float(os.getenv("HTTP_TIMEOUT", "10"), 10.0),
        )
