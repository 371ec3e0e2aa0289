"""
Component Test Layer Configuration

Structure:
    tests/component/
    ├── inventory_service/      StockGuard with in-memory repository
    ├── notification_service/   NotificationService with in-memory repository
    ├── order_service/          OrderService end to end with mocked I/O
    └── mocks/                  Shared mock implementations

Usage:
    pytest tests/component -v
    pytest tests/component/order_service -v
"""
import os
import sys

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["NATS_ENABLED"] = "false"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from tests.component.mocks import MockEventBus


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom markers"""
    config.addinivalue_line(
        "markers", "component: marks tests as component tests"
    )


# =============================================================================
# Event Bus Mocks
# =============================================================================

@pytest.fixture
def mock_event_bus() -> MockEventBus:
    """Mock NATS event bus"""
    return MockEventBus()
