"""Shopflow FastAPI application factory.

One app per service, or one app hosting several services in-process:

    uvicorn app:ordering_app --factory --port 8001
    uvicorn app:all_in_one_app --factory --port 8000

The app's lifespan starts each service's publisher and consumer and
closes them again on shutdown.
"""

from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from shared.api import correlation_id_middleware, register_error_handlers
from shared.messaging.outbox import OutboxStatus
from shared.utils.logging import configure_logging

from runtime import SERVICE_NAMES, Runtime, build_runtime


def _routers(name: str) -> list[APIRouter]:
    if name == "ordering":
        from ordering.api import order_router

        return [order_router]
    elif name == "payments":
        from payments.api import payment_router

        return [payment_router]
    elif name == "inventory":
        from inventory.api import inventory_router

        return [inventory_router]
    elif name == "notifications":
        from notifications.api import notification_router

        return [notification_router]
    else:
        raise ValueError(f"Unknown service: {name}")


def create_app(runtime: Runtime, manage_lifecycle: bool = True, relay_interval: float | None = 5.0) -> FastAPI:
    """Build the HTTP app for the services in ``runtime``.

    With ``manage_lifecycle=False`` the caller starts and closes the
    runtime itself, as tests that drive several services do.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if manage_lifecycle:
            await runtime.start(relay_interval)
        try:
            yield
        finally:
            if manage_lifecycle:
                await runtime.close()

    names = [service.name for service in runtime.services]
    app = FastAPI(
        title="Shopflow API",
        description=f"E-commerce order and payment services: {', '.join(names)}",
        lifespan=lifespan,
    )
    app.state.services = {service.name: service for service in runtime.services}

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(correlation_id_middleware)
    register_error_handlers(app)

    for name in names:
        for router in _routers(name):
            app.include_router(router)

    @app.get("/health")
    async def health():
        return JSONResponse(
            content={
                "status": "ok",
                "services": {
                    service.name: {
                        "publisher_connected": service.publisher.is_connected,
                        "consuming": service.consumer is not None,
                        "pending_outbox": service.outbox.count_by_status()[OutboxStatus.PENDING.value],
                    }
                    for service in runtime.services
                },
            }
        )

    return app


def _app_for(*names: str) -> FastAPI:
    configure_logging(names[0] if len(names) == 1 else "shopflow")
    return create_app(build_runtime(names))


def ordering_app() -> FastAPI:
    return _app_for("ordering")


def payments_app() -> FastAPI:
    return _app_for("payments")


def inventory_app() -> FastAPI:
    return _app_for("inventory")


def notifications_app() -> FastAPI:
    return _app_for("notifications")


def all_in_one_app() -> FastAPI:
    return _app_for(*SERVICE_NAMES)
