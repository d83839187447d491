import pytest
from shared.auth import Principal, Role

from inventory.domain import inventory as inventory_domain
from inventory.service import InventoryService


@pytest.fixture
def admin():
    return Principal(user_id="admin-001", role=Role.ADMIN)


@pytest.fixture
def customer():
    return Principal(user_id="user-001")


@pytest.fixture
async def inventory(broker, make_settings):
    service = InventoryService(make_settings("inventory"), broker)
    await service.start()
    yield service
    await service.close()


@pytest.fixture(autouse=True)
def _ctx():
    with inventory_domain.domain_context():
        yield
