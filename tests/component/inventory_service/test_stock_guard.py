"""
Stock Guard Component Tests

StockGuard with an in-memory repository, recording notifications and event bus.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from microservices.inventory_service.models import (
    AnalyticsPeriod, BulkStockUpdateItem, ReorderAction, ReorderUrgency,
    StockSignal, StockUnavailableReason,
)
from microservices.inventory_service.protocols import (
    InsufficientStockError,
    ProductInactiveError,
    ProductNotFoundError,
    StockForbiddenError,
    StockValidationError,
)
from microservices.inventory_service.stock_guard import StockGuard, stock_signal_for
from microservices.notification_service.models import NotificationKind

from .mocks import MockNotificationDispatcher, MockProductStockRepository

pytestmark = [pytest.mark.component, pytest.mark.asyncio]

SELLER = "usr_seller"


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def repo():
    repo = MockProductStockRepository()
    repo.set_product("prd_1", seller_id=SELLER, title="Desk Lamp", stock=10)
    return repo


@pytest.fixture
def dispatcher():
    return MockNotificationDispatcher()


@pytest.fixture
def guard(repo, dispatcher, mock_event_bus):
    return StockGuard(repo, notification_dispatcher=dispatcher, event_bus=mock_event_bus)


class TestStockSignalFor:

    @pytest.mark.parametrize("stock,signal", [
        (0, StockSignal.STOCK_OUT),
        (1, StockSignal.STOCK_LOW),
        (5, StockSignal.STOCK_LOW),
        (6, None),
        (100, None),
    ])
    def test_thresholds(self, stock, signal):
        assert stock_signal_for(stock) == signal


class TestCheckAvailable:

    async def test_available(self, guard):
        result = await guard.check_available("prd_1", 10)

        assert result.available is True
        assert result.reason is None
        assert result.current_stock == 10
        assert result.product.title == "Desk Lamp"

    async def test_insufficient(self, guard):
        result = await guard.check_available("prd_1", 11)

        assert result.available is False
        assert result.reason == StockUnavailableReason.INSUFFICIENT

    async def test_missing(self, guard):
        result = await guard.check_available("prd_missing", 1)

        assert result.reason == StockUnavailableReason.NOT_FOUND

    async def test_inactive(self, guard, repo):
        repo.set_product("prd_off", is_active=False)

        result = await guard.check_available("prd_off", 1)

        assert result.reason == StockUnavailableReason.INACTIVE

    async def test_check_is_read_only(self, guard, repo):
        await guard.check_available("prd_1", 3)

        assert repo.stock_of("prd_1") == 10


class TestReserve:

    async def test_reserve_decrements(self, guard, repo):
        change = await guard.reserve("prd_1", 4)

        assert change.previous_stock == 10
        assert change.new_stock == 6
        assert change.signal is None
        assert repo.stock_of("prd_1") == 6

    async def test_reserve_classifies_but_does_not_signal(self, guard, dispatcher, mock_event_bus):
        change = await guard.reserve("prd_1", 10)

        assert change.signal == StockSignal.STOCK_OUT
        assert dispatcher.sent == []
        mock_event_bus.assert_no_events_published()

    async def test_insufficient(self, guard, repo):
        with pytest.raises(InsufficientStockError) as exc_info:
            await guard.reserve("prd_1", 11)

        assert exc_info.value.available == 10
        assert exc_info.value.requested == 11
        assert exc_info.value.error_code == "INSUFFICIENT_STOCK"
        assert repo.stock_of("prd_1") == 10

    async def test_missing(self, guard):
        with pytest.raises(ProductNotFoundError):
            await guard.reserve("prd_missing", 1)

    async def test_inactive(self, guard, repo):
        repo.set_product("prd_off", is_active=False, stock=3)

        with pytest.raises(ProductInactiveError):
            await guard.reserve("prd_off", 1)
        assert repo.stock_of("prd_off") == 3

    async def test_zero_quantity(self, guard):
        with pytest.raises(StockValidationError):
            await guard.reserve("prd_1", 0)

    async def test_concurrent_reservations_never_oversell(self, guard, repo, dispatcher):
        repo.set_product("prd_1", seller_id=SELLER, stock=3)

        results = await asyncio.gather(
            *[guard.reserve("prd_1", 1) for _ in range(5)],
            return_exceptions=True,
        )

        successes = [r for r in results if not isinstance(r, Exception)]
        failures = [r for r in results if isinstance(r, InsufficientStockError)]
        assert len(successes) == 3
        assert len(failures) == 2
        assert repo.stock_of("prd_1") == 0
        assert [c.signal for c in successes].count(StockSignal.STOCK_OUT) == 1


class TestEmitSignal:

    async def test_low_stock(self, guard, dispatcher, mock_event_bus):
        change = await guard.reserve("prd_1", 7)

        await guard.emit_signal(change)

        low = dispatcher.of_kind(NotificationKind.STOCK_LOW)
        assert low[0]["user_id"] == SELLER
        assert low[0]["payload"] == {
            "product_id": "prd_1",
            "product_title": "Desk Lamp",
            "current_stock": 3,
            "threshold": 5,
        }
        mock_event_bus.assert_event_published("stock.low", {"product_id": "prd_1", "current_stock": 3})

    async def test_out_of_stock(self, guard, dispatcher, mock_event_bus):
        change = await guard.reserve("prd_1", 10)

        await guard.emit_signal(change)

        assert len(dispatcher.of_kind(NotificationKind.STOCK_OUT)) == 1
        assert dispatcher.of_kind(NotificationKind.STOCK_LOW) == []
        mock_event_bus.assert_event_published("stock.out", {"product_id": "prd_1", "seller_id": SELLER})

    async def test_no_signal_no_side_effects(self, guard, dispatcher, mock_event_bus):
        change = await guard.reserve("prd_1", 1)

        await guard.emit_signal(change)

        assert dispatcher.sent == []
        mock_event_bus.assert_no_events_published()

    async def test_event_published_when_notification_fails(self, guard, repo, dispatcher, mock_event_bus):
        dispatcher.set_error(RuntimeError("notification store down"))
        change = await guard.reserve("prd_1", 10)

        await guard.emit_signal(change)

        assert repo.stock_of("prd_1") == 0
        assert len(mock_event_bus.get_published("stock.out")) == 1

    async def test_notification_sent_when_event_bus_fails(self, guard, dispatcher, mock_event_bus):
        mock_event_bus.set_error(RuntimeError("nats down"))
        change = await guard.reserve("prd_1", 10)

        await guard.emit_signal(change)

        assert len(dispatcher.of_kind(NotificationKind.STOCK_OUT)) == 1

    async def test_lookup_failure_is_swallowed(self, guard, repo, dispatcher):
        change = await guard.reserve("prd_1", 10)
        repo.set_error(RuntimeError("db down"))

        await guard.emit_signal(change)

        assert dispatcher.sent == []


class TestRestore:

    async def test_restore_increments(self, guard, repo):
        change = await guard.restore("prd_1", 5)

        assert change.new_stock == 15
        assert repo.stock_of("prd_1") == 15

    async def test_restore_emits_no_signal(self, guard, repo, dispatcher, mock_event_bus):
        repo.set_product("prd_1", seller_id=SELLER, stock=0)

        await guard.restore("prd_1", 1)

        assert dispatcher.sent == []
        mock_event_bus.assert_no_events_published()

    async def test_restore_missing(self, guard):
        with pytest.raises(ProductNotFoundError):
            await guard.restore("prd_missing", 1)


class TestManualSet:

    async def test_owner_sets_stock(self, guard, repo):
        change = await guard.manual_set("prd_1", 42, SELLER)

        assert change.previous_stock == 10
        assert change.new_stock == 42
        assert repo.stock_of("prd_1") == 42

    async def test_non_owner_forbidden(self, guard, repo):
        with pytest.raises(StockForbiddenError):
            await guard.manual_set("prd_1", 1, "usr_other")
        assert repo.stock_of("prd_1") == 10

    async def test_negative_rejected(self, guard):
        with pytest.raises(StockValidationError):
            await guard.manual_set("prd_1", -1, SELLER)

    async def test_missing(self, guard):
        with pytest.raises(ProductNotFoundError):
            await guard.manual_set("prd_missing", 1, SELLER)

    async def test_set_to_zero_signals_out_of_stock(self, guard, dispatcher):
        change = await guard.manual_set("prd_1", 0, SELLER)

        assert change.signal == StockSignal.STOCK_OUT
        assert len(dispatcher.of_kind(NotificationKind.STOCK_OUT)) == 1

    async def test_inactive_product_raises_no_signal(self, guard, repo, dispatcher):
        repo.set_product("prd_off", seller_id=SELLER, is_active=False, stock=10)

        change = await guard.manual_set("prd_off", 2, SELLER)

        assert change.signal == StockSignal.STOCK_LOW
        assert dispatcher.sent == []


class TestBulkAndQueries:

    async def test_bulk_update_reports_each_item(self, guard, repo):
        repo.set_product("prd_2", seller_id="usr_other", stock=4)

        results = await guard.bulk_update_stock(SELLER, [
            BulkStockUpdateItem(product_id="prd_1", stock=3),
            BulkStockUpdateItem(product_id="prd_2", stock=9),
            BulkStockUpdateItem(product_id="prd_missing", stock=1),
        ])

        assert [r.success for r in results] == [True, False, False]
        assert results[0].change.new_stock == 3
        assert results[1].error_code == "FORBIDDEN"
        assert results[2].error_code == "NOT_FOUND"
        assert repo.stock_of("prd_2") == 4

    async def test_low_stock_listing(self, guard, repo):
        repo.set_product("prd_2", seller_id=SELLER, stock=2)
        repo.set_product("prd_3", seller_id=SELLER, stock=5)
        repo.set_product("prd_4", seller_id=SELLER, stock=0)
        repo.set_product("prd_5", seller_id=SELLER, stock=1, is_active=False)

        products = await guard.get_low_stock_products(SELLER)

        assert [p.product_id for p in products] == ["prd_2", "prd_3"]

    async def test_out_of_stock_listing(self, guard, repo):
        repo.set_product("prd_2", seller_id=SELLER, stock=0)
        repo.set_product("prd_3", seller_id="usr_other", stock=0)

        products = await guard.get_out_of_stock_products(SELLER)

        assert [p.product_id for p in products] == ["prd_2"]


# =============================================================================
# Analytics
# =============================================================================

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clocked_guard(repo):
    return StockGuard(repo, clock=lambda: NOW)


class TestStockAnalytics:

    async def test_bands_average_and_top_sellers(self, clocked_guard, repo):
        repo.set_product("prd_2", seller_id=SELLER, title="Bulb", stock=3)
        repo.set_product("prd_3", seller_id=SELLER, title="Cable", stock=0)
        repo.set_product("prd_4", seller_id=SELLER, title="Old", stock=50, is_active=False)
        repo.set_sales("prd_1", 4)
        repo.set_sales("prd_2", 6)
        repo.set_sales("prd_3", 1)

        analytics = await clocked_guard.get_stock_analytics(SELLER)

        assert analytics.period == AnalyticsPeriod.MONTH
        assert analytics.total_products == 3
        assert (analytics.out_of_stock, analytics.low_stock, analytics.in_stock) == (1, 1, 1)
        assert analytics.total_orders_sold == 11
        assert analytics.average_stock_level == 4.33
        assert [p.product_id for p in analytics.top_selling_products] == ["prd_2", "prd_1", "prd_3"]
        assert analytics.stock_distribution.low_stock == 33.33
        assert repo.sales_since == NOW - timedelta(days=30)

    async def test_week_window(self, clocked_guard, repo):
        await clocked_guard.get_stock_analytics(SELLER, AnalyticsPeriod.WEEK)

        assert repo.sales_since == NOW - timedelta(days=7)

    async def test_seller_without_products(self, clocked_guard):
        analytics = await clocked_guard.get_stock_analytics("usr_nobody", AnalyticsPeriod.YEAR)

        assert analytics.total_products == 0
        assert analytics.average_stock_level == 0.0
        assert analytics.top_selling_products == []
        assert analytics.stock_distribution.in_stock == 0.0


class TestReorderSuggestions:

    async def test_suggestions_by_days_of_stock_left(self, clocked_guard, repo):
        repo.set_product("prd_2", seller_id=SELLER, title="Bulb", stock=3)
        repo.set_product("prd_3", seller_id=SELLER, title="Cable", stock=0)
        repo.set_product("prd_5", seller_id=SELLER, title="Extension", stock=100)
        repo.set_product("prd_6", seller_id=SELLER, title="Fan", stock=4)
        repo.set_sales("prd_1", 30)
        repo.set_sales("prd_2", 15)
        repo.set_sales("prd_5", 3)

        suggestions = await clocked_guard.get_reorder_suggestions(SELLER)

        by_id = {s.product_id: s for s in suggestions}
        assert [s.product_id for s in suggestions] == ["prd_2", "prd_3", "prd_1"]

        assert by_id["prd_3"].suggestion == ReorderAction.REORDER_NOW
        assert by_id["prd_3"].urgency == ReorderUrgency.HIGH
        assert by_id["prd_3"].days_of_stock_remaining is None

        assert by_id["prd_2"].suggestion == ReorderAction.REORDER_SOON
        assert by_id["prd_2"].urgency == ReorderUrgency.MEDIUM
        assert by_id["prd_2"].daily_sales_rate == 0.5
        assert by_id["prd_2"].days_of_stock_remaining == 6.0
        assert by_id["prd_2"].suggested_quantity == 15

        assert by_id["prd_1"].suggestion == ReorderAction.PLAN_REORDER
        assert by_id["prd_1"].urgency == ReorderUrgency.LOW
        assert by_id["prd_1"].suggested_quantity == 30

    async def test_lookback_window(self, clocked_guard, repo):
        await clocked_guard.get_reorder_suggestions(SELLER, lookback_days=10)

        assert repo.sales_since == NOW - timedelta(days=10)

    async def test_invalid_lookback(self, clocked_guard):
        with pytest.raises(StockValidationError):
            await clocked_guard.get_reorder_suggestions(SELLER, lookback_days=0)
