"""
Order Service HTTP Component Tests

FastAPI routes with dependencies overridden by in-memory services;
checks request validation and error code to HTTP status mapping.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from microservices.inventory_service.stock_guard import StockGuard
from microservices.notification_service.notification_service import NotificationService
from microservices.order_service import main
from microservices.order_service.models import OrderStatus, UserRole
from microservices.order_service.order_service import OrderService

from tests.component.inventory_service.mocks import MockNotificationDispatcher, MockProductStockRepository
from tests.component.notification_service.mocks import MockNotificationRepository
from .mocks import MockAccountClient, MockOrderRepository, make_order

pytestmark = pytest.mark.component

SELLER = "usr_seller"
BUYER = "usr_buyer"
ADMIN = "usr_admin"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def product_repo():
    repo = MockProductStockRepository()
    repo.set_product("prd_1", seller_id=SELLER, title="Desk Lamp", price=Decimal("25.00"), stock=3)
    return repo


@pytest.fixture
def stock_guard(product_repo):
    return StockGuard(product_repo, notification_dispatcher=MockNotificationDispatcher())


@pytest.fixture
def order_service(stock_guard):
    repo = MockOrderRepository()
    repo.set_branch("br_1")
    accounts = MockAccountClient()
    accounts.set_user(ADMIN, role=UserRole.ADMIN)
    return OrderService(
        repository=repo,
        stock_guard=stock_guard,
        notification_dispatcher=MockNotificationDispatcher(),
        account_client=accounts,
    )


@pytest.fixture
def notification_service():
    return NotificationService(MockNotificationRepository())


@pytest.fixture
def client(order_service, stock_guard, notification_service):
    main.app.dependency_overrides[main.get_order_service] = lambda: order_service
    main.app.dependency_overrides[main.get_stock_guard] = lambda: stock_guard
    main.app.dependency_overrides[main.get_notification_service] = lambda: notification_service
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


def create_order(client, quantity: int = 1):
    response = client.post("/api/v1/orders", json={
        "buyer_id": BUYER, "product_id": "prd_1", "quantity": quantity,
    })
    assert response.status_code == 201, response.text
    return response.json()["order"]


class TestErrorStatusMapping:

    @pytest.mark.parametrize("error_code,status_code", [
        ("NOT_FOUND", 404),
        ("FORBIDDEN", 403),
        ("INSUFFICIENT_STOCK", 409),
        ("INVALID_TRANSITION", 409),
        ("INVALID_STATE", 400),
        ("INVALID_TOKEN", 400),
        ("INVALID_CODE", 400),
        ("VALIDATION_ERROR", 400),
        ("INTERNAL_ERROR", 500),
        (None, 500),
    ])
    def test_http_status_for(self, error_code, status_code):
        assert main.http_status_for(error_code) == status_code


class TestOrderRoutes:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["service"] == "order_service"

    def test_create_order(self, client):
        order = create_order(client, quantity=2)

        assert order["status"] == "PENDING"
        assert Decimal(order["total"]) == Decimal("50.00")
        assert "qr_secret_token" not in order

    def test_create_order_insufficient_stock(self, client):
        response = client.post("/api/v1/orders", json={
            "buyer_id": BUYER, "product_id": "prd_1", "quantity": 4,
        })

        assert response.status_code == 409
        assert response.json()["error_code"] == "INSUFFICIENT_STOCK"

    def test_create_order_rejects_zero_quantity(self, client):
        response = client.post("/api/v1/orders", json={
            "buyer_id": BUYER, "product_id": "prd_1", "quantity": 0,
        })

        assert response.status_code == 422

    def test_get_missing_order(self, client):
        response = client.get("/api/v1/orders/ord_missing")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_FOUND"

    def test_list_orders_by_status(self, client):
        create_order(client)

        response = client.get("/api/v1/orders", params={"buyer_id": BUYER, "status": "PENDING"})

        assert response.status_code == 200
        assert response.json()["count"] == 1

    def test_confirm_payment_by_other_seller(self, client):
        order = create_order(client)

        response = client.post(
            f"/api/v1/orders/{order['order_id']}/confirm-payment",
            json={"seller_id": "usr_intruder"},
        )

        assert response.status_code == 403

    def test_full_pickup_flow(self, client):
        order = create_order(client)
        order_id = order["order_id"]

        delivered = client.post(f"/api/v1/orders/{order_id}/deliver-to-branch", json={"seller_id": SELLER})
        assert delivered.status_code == 200
        qr_payload = delivered.json()["order"]["qr_code"]

        scanned = client.post("/api/v1/orders/scan-qr", json={"qr_payload": qr_payload, "admin_id": ADMIN})
        assert scanned.status_code == 200
        pickup_code = scanned.json()["order"]["pickup_code"]

        rescanned = client.post("/api/v1/orders/scan-qr", json={"qr_payload": qr_payload, "admin_id": ADMIN})
        assert rescanned.status_code == 409

        wrong = "000000" if pickup_code != "000000" else "111111"
        rejected = client.post(
            f"/api/v1/orders/{order_id}/confirm-pickup",
            json={"pickup_code": wrong, "admin_id": ADMIN},
        )
        assert rejected.status_code == 400
        assert rejected.json()["error_code"] == "INVALID_CODE"

        picked = client.post(
            f"/api/v1/orders/{order_id}/confirm-pickup",
            json={"pickup_code": pickup_code, "admin_id": ADMIN},
        )
        assert picked.status_code == 200
        assert picked.json()["order"]["status"] == "PICKED_UP"

        done = client.put(f"/api/v1/orders/{order_id}/status", json={"status": "DELIVERED", "actor_id": SELLER})
        assert done.status_code == 200

        stats = client.get(f"/api/v1/sellers/{SELLER}/stats")
        assert stats.json()["total_sales"] == 1

    def test_malformed_scan(self, client):
        response = client.post("/api/v1/orders/scan-qr", json={"qr_payload": "garbage", "admin_id": ADMIN})

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_TOKEN"

    def test_cancel_restores_stock(self, client, product_repo):
        order = create_order(client)

        response = client.put(
            f"/api/v1/orders/{order['order_id']}/status",
            json={"status": "CANCELLED", "actor_id": BUYER},
        )

        assert response.status_code == 200
        assert product_repo.stock_of("prd_1") == 3


class TestStockRoutes:

    def test_check_stock(self, client):
        response = client.get("/api/v1/products/prd_1/stock/check", params={"quantity": 2})

        assert response.status_code == 200
        assert response.json()["available"] is True

    def test_set_stock_by_owner(self, client):
        response = client.put("/api/v1/products/prd_1/stock", json={"seller_id": SELLER, "stock": 9})

        assert response.status_code == 200
        assert response.json()["new_stock"] == 9

    def test_set_stock_by_other_user(self, client):
        response = client.put("/api/v1/products/prd_1/stock", json={"seller_id": BUYER, "stock": 9})

        assert response.status_code == 403
        assert response.json()["error_code"] == "FORBIDDEN"

    def test_set_negative_stock(self, client):
        response = client.put("/api/v1/products/prd_1/stock", json={"seller_id": SELLER, "stock": -1})

        assert response.status_code == 400

    def test_low_stock_listing(self, client):
        response = client.get(f"/api/v1/sellers/{SELLER}/products/low-stock")

        assert [p["product_id"] for p in response.json()] == ["prd_1"]

    def test_stock_analytics(self, client, product_repo):
        product_repo.set_sales("prd_1", 4)

        response = client.get(f"/api/v1/sellers/{SELLER}/stock/analytics", params={"period": "week"})

        assert response.status_code == 200
        body = response.json()
        assert body["period"] == "week"
        assert body["low_stock"] == 1
        assert body["total_orders_sold"] == 4

    def test_stock_analytics_rejects_unknown_period(self, client):
        response = client.get(f"/api/v1/sellers/{SELLER}/stock/analytics", params={"period": "decade"})

        assert response.status_code == 422

    def test_reorder_suggestions(self, client, product_repo):
        product_repo.set_sales("prd_1", 15)

        response = client.get(f"/api/v1/sellers/{SELLER}/stock/reorder-suggestions")

        assert response.status_code == 200
        suggestion = response.json()[0]
        assert suggestion["suggestion"] == "REORDER_SOON"
        assert suggestion["urgency"] == "MEDIUM"

    def test_reorder_suggestions_rejects_zero_lookback(self, client):
        response = client.get(
            f"/api/v1/sellers/{SELLER}/stock/reorder-suggestions", params={"lookback_days": 0}
        )

        assert response.status_code == 422


class TestBranchRoutes:

    def test_list_branches(self, client):
        create_order(client)

        response = client.get("/api/v1/branches")

        assert response.status_code == 200
        body = response.json()
        assert body["count"] == 1
        assert body["branches"][0]["order_count"] == 1

    def test_admin_creates_branch(self, client):
        response = client.post("/api/v1/branches", json={
            "admin_id": ADMIN, "name": "North Branch", "address": "Calle 1", "email": "north@example.com",
        })

        assert response.status_code == 201
        assert response.json()["branch"]["email"] == "north@example.com"
        assert client.get("/api/v1/branches").json()["count"] == 2

    def test_non_admin_cannot_create_branch(self, client):
        response = client.post("/api/v1/branches", json={
            "admin_id": SELLER, "name": "North Branch", "address": "Calle 1",
        })

        assert response.status_code == 403

    def test_address_required(self, client):
        response = client.post("/api/v1/branches", json={"admin_id": ADMIN, "name": "North Branch"})

        assert response.status_code == 422

    def test_ready_orders(self, client, order_service):
        order_service.repository.set_order(make_order("ord_ready", status=OrderStatus.READY_FOR_PICKUP))

        response = client.get("/api/v1/branches/br_1/orders-ready", params={"admin_id": ADMIN})

        assert response.status_code == 200
        assert [o["order_id"] for o in response.json()["orders"]] == ["ord_ready"]

    def test_ready_orders_unknown_branch(self, client):
        response = client.get("/api/v1/branches/br_missing/orders-ready", params={"admin_id": ADMIN})

        assert response.status_code == 404

    def test_ready_orders_non_admin(self, client):
        response = client.get("/api/v1/branches/br_1/orders-ready", params={"admin_id": BUYER})

        assert response.status_code == 403


class TestNotificationRoutes:

    def test_settings_roundtrip(self, client):
        updated = client.put(
            f"/api/v1/users/{SELLER}/notification-settings",
            json={"stock_alerts_enabled": False},
        )
        assert updated.status_code == 200

        fetched = client.get(f"/api/v1/users/{SELLER}/notification-settings")
        assert fetched.json()["stock_alerts_enabled"] is False

    def test_mark_missing_notification(self, client):
        response = client.post(f"/api/v1/users/{SELLER}/notifications/ntf_missing/read")

        assert response.status_code == 404

    def test_register_push_token(self, client):
        response = client.post("/api/v1/push-tokens", json={"user_id": SELLER, "push_token": "tok"})

        assert response.status_code == 204


class TestNotInitialized:

    def test_routes_unavailable_without_service(self):
        main.app.dependency_overrides.clear()
        client = TestClient(main.app)

        response = client.get("/api/v1/orders/ord_1")

        assert response.status_code == 503


class FakeDatabase:
    def __init__(self, healthy: bool):
        self.healthy = healthy

    async def health_check(self) -> bool:
        return self.healthy


class ClosableClient:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class TestLifecycle:

    @pytest.mark.parametrize("healthy,service_status", [(True, "operational"), (False, "degraded")])
    def test_detailed_health_reports_database(self, client, monkeypatch, healthy, service_status):
        monkeypatch.setattr(main.order_microservice, "db", FakeDatabase(healthy))

        response = client.get("/health/detailed")

        assert response.status_code == 200
        assert response.json()["database_connected"] is healthy
        assert response.json()["status"] == service_status

    def test_detailed_health_without_database(self, client, monkeypatch):
        monkeypatch.setattr(main.order_microservice, "db", None)

        response = client.get("/health/detailed")

        assert response.json()["database_connected"] is False

    @pytest.mark.asyncio
    async def test_shutdown_releases_clients_and_pools(self, stock_guard, monkeypatch):
        account_client = ClosableClient()
        push_client = ClosableClient()
        event_bus = ClosableClient()
        pools_closed = []

        async def fake_close_all_clients():
            pools_closed.append(True)

        monkeypatch.setattr(main, "close_all_clients", fake_close_all_clients)
        microservice = main.OrderMicroservice()
        microservice.order_service = OrderService(
            repository=MockOrderRepository(),
            stock_guard=stock_guard,
            account_client=account_client,
        )
        microservice.notification_service = NotificationService(
            MockNotificationRepository(), push_client=push_client
        )
        microservice.event_bus = event_bus

        await microservice.shutdown()

        assert account_client.closed is True
        assert push_client.closed is True
        assert event_bus.closed is True
        assert pools_closed == [True]
