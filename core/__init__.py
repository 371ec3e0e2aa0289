"""
Core Module for the marketplace services

Shared infrastructure used by every service.

COMPONENTS:
    - config/: Environment-driven configuration (dataclasses + python-dotenv)
    - logger.py: Service logger setup
    - postgres_client.py: asyncpg pool wrapper
    - nats_client.py: NATS event bus for event-driven architecture

USAGE:
    from core.config import get_settings
    from core.logger import setup_service_logger

    settings = get_settings()
    logger = setup_service_logger("order_service")
"""

__version__ = "1.0.0"
