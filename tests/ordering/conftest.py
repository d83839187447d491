import json

import pytest
from shared.auth import Principal, Role
from shared.domain import persist

from ordering.domain import ordering as ordering_domain
from ordering.order.creation import CreateOrder
from ordering.order.history import OrderHistory
from ordering.service import OrderingService

ITEMS = [
    {"product_id": "prod-001", "product_name": "Widget", "quantity": 2, "price_snapshot": 25.0},
    {"product_id": "prod-002", "product_name": "Gadget", "quantity": 1, "price_snapshot": 10.0},
]


@pytest.fixture
def customer():
    return Principal(user_id="user-001")


@pytest.fixture
def admin():
    return Principal(user_id="admin-001", role=Role.ADMIN)


@pytest.fixture
async def make_ordering(broker, make_settings):
    services = []

    async def _make(**kwargs):
        service = OrderingService(make_settings("ordering"), broker, **kwargs)
        await service.start()
        services.append(service)
        return service

    yield _make
    for service in services:
        await service.close()


@pytest.fixture
async def ordering(make_ordering):
    return await make_ordering()


@pytest.fixture
def items():
    return [dict(item) for item in ITEMS]


@pytest.fixture(autouse=True)
def _ctx():
    with ordering_domain.domain_context():
        yield


@pytest.fixture
def place_order(ordering, items):
    """Create an order for ``user-001`` with the standard items."""

    async def _place(**overrides):
        values = {"user_id": "user-001", "items": json.dumps(items), **overrides}
        return await ordering.create_order(CreateOrder(**values))

    return _place


@pytest.fixture
def store(ordering):
    """Write an aggregate straight to the ordering repositories."""

    def _store(aggregate):
        with ordering.repository(type(aggregate)) as repo:
            return persist(repo, aggregate)

    return _store


@pytest.fixture
def history_of(ordering):
    def _history(order_id):
        with ordering.repository(OrderHistory) as repo:
            return repo.find_by_order_id(str(order_id))

    return _history
