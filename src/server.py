"""Shopflow worker runner.

Starts the publisher and event consumer of each selected service and
runs until SIGINT / SIGTERM, then shuts them down cleanly:

    python src/server.py                        # all services in one process
    python src/server.py --service payments     # only the payments worker
"""

import argparse
import asyncio
import signal

import structlog
from shared.utils.logging import configure_logging

from runtime import SERVICE_NAMES, build_runtime

logger = structlog.get_logger(__name__)


async def run(service_names: list[str], relay_interval: float = 5.0) -> None:
    runtime = build_runtime(service_names)
    stop = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    await runtime.start(relay_interval)
    logger.info("Workers running", services=service_names)

    try:
        await stop.wait()
    finally:
        logger.info("Shutting down workers", services=service_names)
        await runtime.close()


def main():
    parser = argparse.ArgumentParser(description="Shopflow worker runner")
    parser.add_argument(
        "--service",
        choices=[*SERVICE_NAMES, "all"],
        default="all",
        help="Run a single service worker (default: run all)",
    )
    parser.add_argument("--relay-interval", type=float, default=5.0, help="Outbox relay interval in seconds")
    args = parser.parse_args()

    service_names = list(SERVICE_NAMES) if args.service == "all" else [args.service]
    configure_logging(args.service if args.service != "all" else "shopflow")

    asyncio.run(run(service_names, args.relay_interval))


if __name__ == "__main__":
    main()
