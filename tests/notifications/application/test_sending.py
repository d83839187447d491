"""Application tests for sending and retrying notifications.

Covers:
- delivery through the channel's provider marks the notification SENT
- provider rejection and unavailability mark it FAILED
- an already SENT notification for the same correlation id, event type and channel is not sent again
- retry up to three times, with the attempt number in the error message
"""

import json

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from shared.exceptions import ForbiddenError

from notifications.notification.sending import CreateNotification
from notifications.notification.status import NotificationStatus


def _command(**overrides):
    kwargs = {
        "user_id": "user-001",
        "channel": "email",
        "recipient": "jane@example.com",
        "subject": "Order Confirmation",
        "body": "Your order has been received.",
        "event_type": "order.created",
        "correlation_id": "req-1",
    }
    kwargs.update(overrides)
    return CreateNotification(**kwargs)


class TestSend:
    async def test_sent_through_provider(self, notifications, email_provider, admin):
        notification = await notifications.send_notification(_command())

        assert notification.status == NotificationStatus.SENT.value
        assert notification.provider_response["provider"] == "fake-email"
        assert [n.id for n in email_provider.sent] == [notification.id]
        assert notifications.get_notification(admin, notification.id).status == NotificationStatus.SENT.value

    async def test_metadata_is_kept(self, notifications):
        notification = await notifications.send_notification(_command(metadata=json.dumps({"order_id": "ord-001"})))
        assert notification.metadata == {"order_id": "ord-001"}

    async def test_provider_rejection(self, notifications, email_provider):
        email_provider.configure(should_succeed=False, failure_reason="Mailbox unavailable")
        notification = await notifications.send_notification(_command())

        assert notification.status == NotificationStatus.FAILED.value
        assert notification.error_message == "Mailbox unavailable"

    async def test_unavailable_provider(self, notifications, email_provider):
        email_provider.configure(available=False)
        notification = await notifications.send_notification(_command())

        assert notification.status == NotificationStatus.FAILED.value
        assert "not available" in notification.error_message
        assert email_provider.sent == []

    async def test_channel_without_provider(self, notifications):
        notification = await notifications.send_notification(_command(channel="sms", recipient="+14155550100"))
        assert notification.status == NotificationStatus.FAILED.value
        assert "No provider registered" in notification.error_message

    async def test_invalid_recipient(self, notifications):
        with pytest.raises(ValidationError):
            await notifications.send_notification(_command(recipient="nobody"))

    async def test_unknown_channel(self, notifications):
        with pytest.raises(ValidationError) as exc_info:
            await notifications.send_notification(_command(channel="pigeon"))
        assert "channel" in exc_info.value.messages


class TestDeduplication:
    async def test_sent_notification_is_not_repeated(self, notifications, email_provider, stored):
        first = await notifications.send_notification(_command())
        second = await notifications.send_notification(_command())

        assert second.id == first.id
        assert len(email_provider.sent) == 1
        assert len(stored("req-1")) == 1

    async def test_failed_notification_is_attempted_again(self, notifications, email_provider, stored):
        email_provider.configure(should_succeed=False)
        await notifications.send_notification(_command())
        email_provider.configure()

        second = await notifications.send_notification(_command())

        assert second.status == NotificationStatus.SENT.value
        assert len(stored("req-1")) == 2

    @pytest.mark.parametrize(
        "overrides",
        [
            {"event_type": "order.paid"},
            {"correlation_id": "req-2"},
            {"channel": "webhook", "recipient": "https://merchant.example.com/hooks"},
        ],
    )
    async def test_different_key_is_sent(self, notifications, admin, overrides):
        first = await notifications.send_notification(_command())
        second = await notifications.send_notification(_command(**overrides))

        assert second.id != first.id
        assert second.status == NotificationStatus.SENT.value
        assert len(notifications.list_user_notifications(admin, "user-001")) == 2


class TestRetry:
    async def test_retry_failed_notification(self, notifications, email_provider, admin):
        email_provider.configure(should_succeed=False)
        failed = await notifications.send_notification(_command())
        email_provider.configure()

        sent = await notifications.retry_notification(admin, failed.id)

        assert sent.status == NotificationStatus.SENT.value
        assert sent.retries == 1
        assert sent.provider_response["retry_attempt"] == 1

    async def test_failed_retry_prefixes_attempt(self, notifications, email_provider, admin):
        email_provider.configure(should_succeed=False, failure_reason="Mailbox full")
        failed = await notifications.send_notification(_command())

        retried = await notifications.retry_notification(admin, failed.id)

        assert retried.status == NotificationStatus.FAILED.value
        assert retried.error_message == "Retry 1/3 failed: Mailbox full"

    async def test_retry_limit(self, notifications, email_provider, admin):
        email_provider.configure(should_succeed=False)
        notification = await notifications.send_notification(_command())
        for _ in range(3):
            notification = await notifications.retry_notification(admin, notification.id)
        assert notification.error_message.startswith("Retry 3/3 failed:")

        with pytest.raises(ValidationError):
            await notifications.retry_notification(admin, notification.id)

    async def test_sent_notification_cannot_be_retried(self, notifications, admin):
        sent = await notifications.send_notification(_command())
        with pytest.raises(ValidationError):
            await notifications.retry_notification(admin, sent.id)

    async def test_unknown_notification(self, notifications, admin):
        with pytest.raises(ObjectNotFoundError):
            await notifications.retry_notification(admin, "missing")

    async def test_retry_requires_admin(self, notifications, email_provider, customer):
        email_provider.configure(should_succeed=False)
        failed = await notifications.send_notification(_command())
        with pytest.raises(ForbiddenError):
            await notifications.retry_notification(customer, failed.id)


class TestReads:
    async def test_owner_reads_own_notification(self, notifications, customer):
        notification = await notifications.send_notification(_command())
        assert notifications.get_notification(customer, notification.id).id == notification.id

    async def test_other_user_is_forbidden(self, notifications, customer):
        notification = await notifications.send_notification(_command(user_id="user-002"))
        with pytest.raises(ForbiddenError):
            notifications.get_notification(customer, notification.id)

    async def test_listing_is_in_creation_order(self, notifications, customer):
        await notifications.send_notification(_command())
        await notifications.send_notification(_command(event_type="order.paid"))
        await notifications.send_notification(_command(user_id="user-002", correlation_id="req-3"))

        listed = notifications.list_user_notifications(customer, "user-001")
        assert [n.event_type for n in listed] == ["order.created", "order.paid"]
