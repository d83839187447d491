import pytest
from shared.auth import Principal, Role
from shared.domain import persist

from payments.domain import payments as payments_domain
from payments.payment.payment import Payment
from payments.processor.fake_adapter import FakePaymentProcessor
from payments.service import PaymentsService


@pytest.fixture
def customer():
    return Principal(user_id="user-001")


@pytest.fixture
def admin():
    return Principal(user_id="admin-001", role=Role.ADMIN)


@pytest.fixture
def processor():
    return FakePaymentProcessor()


@pytest.fixture
async def make_payments(broker, make_settings, processor):
    services = []

    async def _make(**overrides):
        service = PaymentsService(make_settings("payments", **overrides), broker, processor=processor)
        await service.start()
        services.append(service)
        return service

    yield _make
    for service in services:
        await service.close()


@pytest.fixture
async def payments(make_payments):
    return await make_payments()


@pytest.fixture
def store(payments):
    """Write a payment straight to the repository."""

    def _store(payment):
        with payments.repository(Payment) as repo:
            return persist(repo, payment)

    return _store


@pytest.fixture(autouse=True)
def _ctx():
    with payments_domain.domain_context():
        yield
