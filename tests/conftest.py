"""Pytest fixtures for the grocery backend tests."""

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.core.auth import mock_token
from app.main import create_app
from app.repositories.memory import (
    MemoryCartRepository,
    MemoryOrderRepository,
    MemoryProductRepository,
    MemoryPromoRepository,
)
from app.schemas.discount import PromoCode
from app.schemas.order import Order, OrderItem, OrderStatus
from app.schemas.product import Product
from app.services.cart_engine import CartEngine
from app.services.cart_service import CartService
from app.services.container import build_memory_services
from app.services.promo_service import PromoService

DELIVERY_FEE = 2000


class RecordingNotifier:
    """Collects published order events."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)


class FailingNotifier:
    def publish(self, event):
        raise RuntimeError("push channel down")


class RecordingSms:
    def __init__(self):
        self.sent = []

    def send_otp(self, phone, code):
        self.sent.append((phone, code))


@pytest.fixture
def cfg():
    return Settings(
        _env_file=None,
        storage_backend="memory",
        debug=True,
        otp_secret="test-secret",
        delivery_fee=DELIVERY_FEE,
    )


@pytest.fixture
def products():
    """Small catalogue: A is the price 10000 / stock 5 product used throughout."""
    return MemoryProductRepository([
        Product(id="A", name="Basmati Rice", price=10000, stock=5),
        Product(id="B", name="Paneer", price=5000, discount_price=4000, stock=10),
        Product(id="C", name="Old Stock", price=3000, stock=8, is_active=False),
        Product(id="D", name="Sold Out", price=2500, stock=0),
        Product(id="E", name="Ghee", price=60000, stock=3),
    ])


@pytest.fixture
def promos():
    now = datetime.now(timezone.utc)
    return PromoService(MemoryPromoRepository([
        PromoCode(code="FIRST10", discount=10, max_discount=10000, min_order=20000),
        PromoCode(code="HALF", discount=50, max_discount=10000),
        PromoCode(code="FLAT50", discount_type="flat", discount=5000),
        PromoCode(code="HUGE", discount_type="flat", discount=1000000),
        PromoCode(code="OLD", discount=20, expires_at=now - timedelta(days=1)),
        PromoCode(code="OFF", discount=20, is_active=False),
    ]))


@pytest.fixture
def engine(products, promos):
    return CartEngine(products, promos, delivery_fee=DELIVERY_FEE)


@pytest.fixture
def cart_repo():
    return MemoryCartRepository()


@pytest.fixture
def carts(cart_repo, products, promos):
    return CartService(cart_repo, products, promos, delivery_fee=DELIVERY_FEE)


@pytest.fixture
def orders():
    return MemoryOrderRepository()


@pytest.fixture
def notifier():
    return RecordingNotifier()


_ids = count(1)


@pytest.fixture
def make_order(orders):
    """Stores an order directly in a given state."""

    def _make(status=OrderStatus.PENDING, partner=None, user_id="cust-1"):
        order = Order(
            id=f"ORD-{next(_ids)}",
            user_id=user_id,
            items=(OrderItem(product_id="A", name="Basmati Rice", quantity=2, unit_price=10000),),
            status=status,
            delivery_address="12 MG Road, Bengaluru",
            delivery_partner_id=partner,
            subtotal=20000,
            delivery_fee=DELIVERY_FEE,
            total=22000,
        )
        return orders.create(order)

    return _make


# ---------- API ----------
@pytest.fixture
def sms():
    return RecordingSms()


@pytest.fixture
def services(cfg, sms):
    return build_memory_services(cfg, seed=True, sms=sms)


@pytest.fixture
def client(cfg, services):
    return TestClient(create_app(cfg, services))


def auth_headers(role, uid):
    return {"Authorization": f"Bearer {mock_token(role, uid)}"}


@pytest.fixture
def customer():
    return auth_headers("customer", "cust-1")


@pytest.fixture
def admin():
    return auth_headers("admin", "admin-1")


@pytest.fixture
def rider():
    return auth_headers("delivery", "rider-1")


@pytest.fixture
def other_rider():
    return auth_headers("delivery", "rider-2")


@pytest.fixture
def failing_notifier():
    return FailingNotifier()
