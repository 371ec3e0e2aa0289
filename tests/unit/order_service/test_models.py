"""
Order Service Model Unit Tests
"""
from decimal import Decimal

import pytest
from pydantic import ValidationError

from microservices.order_service.models import (
    Order,
    OrderCreateRequest,
    OrderFilter,
    DeliveryMode,
    UserRole,
    UserSummary,
)

pytestmark = pytest.mark.unit


def make_order(**overrides) -> Order:
    fields = dict(
        order_id="ord_1",
        buyer_id="usr_buyer",
        seller_id="usr_seller",
        product_id="prd_1",
        product_title="Lamp",
        quantity=2,
        unit_price=Decimal("10.50"),
        total=Decimal("21.00"),
        qr_code="payload",
        qr_secret_token="a" * 64,
    )
    fields.update(overrides)
    return Order(**fields)


class TestOrder:

    def test_secret_is_never_serialized(self):
        order = make_order()

        assert "qr_secret_token" not in order.model_dump()
        assert "qr_secret_token" not in order.model_dump_json()
        assert "a" * 64 not in repr(order)
        assert order.qr_secret_token == "a" * 64

    def test_quantity_must_be_positive(self):
        with pytest.raises(ValidationError):
            make_order(quantity=0)


class TestOrderCreateRequest:

    def test_defaults(self):
        request = OrderCreateRequest(buyer_id="usr_1", product_id="prd_1")

        assert request.quantity == 1
        assert request.delivery_mode == DeliveryMode.PICKUP

    def test_delivery_requires_address(self):
        with pytest.raises(ValidationError):
            OrderCreateRequest(buyer_id="usr_1", product_id="prd_1", delivery_mode=DeliveryMode.DELIVERY)

    def test_delivery_with_address(self):
        request = OrderCreateRequest(
            buyer_id="usr_1",
            product_id="prd_1",
            delivery_mode=DeliveryMode.DELIVERY,
            delivery_address="Main St 1",
        )
        assert request.delivery_address == "Main St 1"

    def test_zero_quantity_rejected(self):
        with pytest.raises(ValidationError):
            OrderCreateRequest(buyer_id="usr_1", product_id="prd_1", quantity=0)

    def test_filter_limit_bounds(self):
        with pytest.raises(ValidationError):
            OrderFilter(limit=101)


class TestUserSummary:

    def test_active_admin(self):
        assert UserSummary(user_id="usr_1", role=UserRole.ADMIN).is_admin

    def test_inactive_admin_is_not_admin(self):
        assert not UserSummary(user_id="usr_1", role=UserRole.ADMIN, is_active=False).is_admin

    def test_contact_info(self):
        user = UserSummary(user_id="usr_1", display_name="Ana", whatsapp="+100")

        assert user.contact_info()["whatsapp"] == "+100"
        assert user.contact_info()["display_name"] == "Ana"
