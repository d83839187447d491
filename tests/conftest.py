import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from shared.config import ServiceSettings
from shared.events.envelope import EventEnvelope
from shared.messaging.memory import InMemoryBroker

from app import create_app
from runtime import build_runtime

EXCHANGE = "ecommerce.events"


def _domains():
    from inventory.domain import inventory
    from notifications.domain import notifications
    from ordering.domain import ordering
    from payments.domain import payments

    return [ordering, payments, inventory, notifications]


def pytest_sessionstart(session):
    """Register every domain element, then initialize the domains once.

    Importing the services pulls in the handler and repository modules of
    each bounded context.
    """
    import inventory.service  # noqa: F401
    import notifications.service  # noqa: F401
    import ordering.service  # noqa: F401
    import payments.service  # noqa: F401
    from shared.domain import initialize

    for domain in _domains():
        initialize(domain)


@pytest.fixture(autouse=True)
def run_around_tests():
    """Clear every domain's stores after each test."""
    yield

    from shared.domain import reset

    for domain in _domains():
        reset(domain)


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        # Get the test file path relative to the tests directory
        test_path = Path(item.fspath)

        # Mark tests based on their directory
        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


# Delays short enough for tests, deterministic simulators
TEST_OVERRIDES = {
    "broker_url": "memory://",
    "retry_delay": 0,
    "reconnect_delay": 0.01,
    "reconnect_max_delay": 0.05,
    "publish_timeout": 0.2,
    "max_publish_attempts": 2,
    "payment_timeout": 1.0,
    "payment_success_rate": 1.0,
    "payment_min_latency": 0,
    "payment_max_latency": 0,
    "notification_success_rate": 1.0,
    "notification_min_latency": 0,
    "notification_max_latency": 0,
}


def build_settings(service_name: str = "ordering", **overrides) -> ServiceSettings:
    return ServiceSettings(**{**TEST_OVERRIDES, **overrides, "service_name": service_name})


@pytest.fixture
def make_settings():
    return build_settings


@pytest.fixture
async def broker():
    broker = InMemoryBroker()
    yield broker
    await broker.close()


@pytest.fixture
def published(broker):
    """Envelopes published to the events exchange, optionally filtered by type."""

    def _published(event_type: str | None = None) -> list[EventEnvelope]:
        envelopes = [EventEnvelope.from_bytes(m.body) for m in broker.published if m.exchange == EXCHANGE]
        if event_type is None:
            return envelopes
        return [e for e in envelopes if e.event_type == event_type]

    return _published


@pytest.fixture
def eventually():
    """Poll a (sync or async) predicate until it is truthy or the timeout expires."""

    async def _eventually(predicate, timeout: float = 2.0, interval: float = 0.01):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            result = predicate()
            if asyncio.iscoroutine(result):
                result = await result
            if result:
                return result
            if loop.time() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(interval)

    return _eventually


@pytest.fixture
async def make_runtime():
    """Start the named services in-process on one shared in-memory broker."""
    runtimes = []

    async def _make(*names: str, **overrides):
        runtime = build_runtime(names, **{**TEST_OVERRIDES, **overrides})
        await runtime.start()
        runtimes.append(runtime)
        return runtime

    yield _make
    for runtime in runtimes:
        await runtime.close()


@pytest.fixture
def make_client():
    """HTTP client for an app hosting the named services; the app's lifespan runs them."""
    clients = []

    def _make(*names: str, **overrides) -> TestClient:
        runtime = build_runtime(names, **{**TEST_OVERRIDES, **overrides})
        client = TestClient(create_app(runtime, relay_interval=None))
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)
