"""Integration tests for Notification API endpoints via TestClient."""

import pytest

from notifications.notification.sending import CreateNotification

OWNER = {"X-User-Id": "user-001"}
ADMIN = {"X-User-Id": "admin-001", "X-User-Role": "admin"}


def _send(client, **overrides):
    """Helper: create a notification inside the running service."""
    service = client.app.state.services["notifications"]
    command = CreateNotification(
        **{
            "user_id": "user-001",
            "channel": "email",
            "recipient": "jane@example.com",
            "subject": "Order Confirmation",
            "body": "Your order has been received.",
            "event_type": "order.created",
            **overrides,
        }
    )
    return client.portal.call(service.send_notification, command)


@pytest.fixture()
def client(make_client):
    return make_client("notifications")


class TestGetNotification:
    def test_owner_reads_notification(self, client):
        notification = _send(client)
        response = client.get(f"/notifications/{notification.id}", headers=OWNER)
        assert response.status_code == 200
        assert response.json()["status"] == "sent"
        assert response.json()["channel"] == "email"

    def test_admin_reads_any_notification(self, client):
        notification = _send(client)
        assert client.get(f"/notifications/{notification.id}", headers=ADMIN).status_code == 200

    def test_other_user_is_forbidden(self, client):
        notification = _send(client)
        response = client.get(f"/notifications/{notification.id}", headers={"X-User-Id": "user-002"})
        assert response.status_code == 403

    def test_unknown_notification(self, client):
        assert client.get("/notifications/missing", headers=ADMIN).status_code == 404


class TestRetryNotification:
    def test_admin_retries_failed_notification(self, make_client):
        client = make_client("notifications", notification_success_rate=0.0)
        failed = _send(client)
        assert failed.status == "failed"

        response = client.post(f"/notifications/{failed.id}/retry", headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["retries"] == 1
        assert response.json()["error_message"].startswith("Retry 1/3 failed:")

    def test_sent_notification_cannot_be_retried(self, client):
        notification = _send(client)
        response = client.post(f"/notifications/{notification.id}/retry", headers=ADMIN)
        assert response.status_code == 400

    def test_retry_requires_admin(self, client):
        notification = _send(client)
        response = client.post(f"/notifications/{notification.id}/retry", headers=OWNER)
        assert response.status_code == 403


class TestListNotifications:
    def test_lists_own_notifications(self, client):
        _send(client)
        _send(client, event_type="order.paid", correlation_id="req-2")
        _send(client, user_id="user-002")

        response = client.get("/notifications", headers=OWNER)
        assert [n["event_type"] for n in response.json()] == ["order.created", "order.paid"]

    def test_admin_lists_other_user(self, client):
        _send(client, user_id="user-002")
        response = client.get("/notifications", params={"user_id": "user-002"}, headers=ADMIN)
        assert len(response.json()) == 1

    def test_customer_cannot_list_other_user(self, client):
        response = client.get("/notifications", params={"user_id": "user-002"}, headers=OWNER)
        assert response.status_code == 403
