"""
PostgreSQL Client Registry Unit Tests

No database is needed: pools are only opened on first query.
"""
import pytest

from core.config import InfraConfig
from core import postgres_client
from core.postgres_client import close_all_clients, get_postgres_client

pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def empty_registry(monkeypatch):
    monkeypatch.setattr(postgres_client, "_postgres_clients", {})


class TestRegistry:

    def test_same_client_per_service_name(self):
        first = get_postgres_client("order_service", config=InfraConfig())
        second = get_postgres_client("order_service")

        assert first is second
        assert first.connected is False

    def test_separate_clients_per_service_name(self):
        orders = get_postgres_client("order_service", config=InfraConfig())
        inventory = get_postgres_client("inventory_service", config=InfraConfig())

        assert orders is not inventory

    @pytest.mark.asyncio
    async def test_close_all_clients_empties_registry(self):
        before = get_postgres_client("order_service", config=InfraConfig())

        await close_all_clients()

        assert get_postgres_client("order_service", config=InfraConfig()) is not before

    @pytest.mark.asyncio
    async def test_health_check_without_pool(self):
        client = get_postgres_client("order_service", config=InfraConfig())

        assert await client.health_check() is False
