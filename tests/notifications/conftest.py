import pytest
from shared.auth import Principal, Role

from notifications.channel.fake import FakeNotificationProvider
from notifications.channel.registry import ProviderRegistry
from notifications.domain import notifications as notifications_domain
from notifications.notification.notification import Notification, NotificationChannel
from notifications.service import NotificationsService


@pytest.fixture
def email_provider():
    return FakeNotificationProvider(NotificationChannel.EMAIL)


@pytest.fixture
def webhook_provider():
    return FakeNotificationProvider(NotificationChannel.WEBHOOK)


@pytest.fixture
async def notifications(broker, make_settings, email_provider, webhook_provider):
    service = NotificationsService(
        make_settings("notifications"),
        broker,
        providers=ProviderRegistry([email_provider, webhook_provider]),
    )
    await service.start()
    yield service
    await service.close()


@pytest.fixture(autouse=True)
def _ctx():
    with notifications_domain.domain_context():
        yield


@pytest.fixture
def admin():
    return Principal(user_id="admin-001", role=Role.ADMIN)


@pytest.fixture
def customer():
    return Principal(user_id="user-001")


@pytest.fixture
def stored(notifications):
    """Notifications stored for a correlation id."""

    def _stored(correlation_id: str) -> list[Notification]:
        with notifications.repository(Notification) as repo:
            return repo.find_by_correlation_id(correlation_id)

    return _stored

