#!/usr/bin/env python3
"""Modular configuration system for the marketplace backend

Configuration hierarchy:
- infra_config: Infrastructure services (PostgreSQL, NATS)
- service_config: Peer services (account, push gateway, QR renderer)
- logging_config: Logging configuration
- market_config: Top-level settings combining the above
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig
from .infra_config import InfraConfig
from .service_config import ServiceConfig
from .market_config import MarketConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = MarketConfig.from_env()

def get_settings() -> MarketConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> MarketConfig:
    """Reload settings from environment"""
    global settings
    settings = MarketConfig.from_env()
    return settings

__all__ = [
    'MarketConfig',
    'get_settings',
    'reload_settings',
    'settings',
    'LoggingConfig',
    'InfraConfig',
    'ServiceConfig',
]
