"""
Temporal worker for background jobs. Runs as its own process.

    uv run python -m src.careteam.temporal.worker
    uv run python -m src.careteam.temporal.worker --migrate --schedule-sweep
"""

import argparse
import asyncio

import uvicorn
from fastapi import FastAPI
from temporalio.client import Client
from temporalio.worker import Worker

from src.careteam.core.config import get_settings
from src.careteam.core.db import dispose_engine, upgrade_database_async
from src.careteam.core.logging import get_logger, setup_logging
from src.careteam.temporal.activities import expire_stale_invitations
from src.careteam.temporal.client import start_invitation_sweep
from src.careteam.temporal.workflows import InvitationExpirySweepWorkflow

logger = get_logger(__name__)

WORKER_HEALTH_PORT = 8001


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Care team background worker")
    parser.add_argument(
        "--migrate",
        action="store_true",
        help="Upgrade the database schema to head before polling",
    )
    parser.add_argument(
        "--schedule-sweep",
        action="store_true",
        help="Start (or re-attach to) the invitation expiry sweep workflow",
    )
    return parser.parse_args(argv)


def create_worker(client: Client, task_queue: str) -> Worker:
    return Worker(
        client,
        task_queue=task_queue,
        workflows=[InvitationExpirySweepWorkflow],
        activities=[expire_stale_invitations],
        max_concurrent_activities=10,
    )


def create_health_app(task_queue: str) -> FastAPI:
    """Probe endpoints for the orchestrator; the worker has no other HTTP surface."""
    health_app = FastAPI(title="Care team worker health", docs_url=None, redoc_url=None)

    @health_app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "healthy", "service": "temporal-worker", "task_queue": task_queue}

    @health_app.get("/ready")
    async def ready() -> dict[str, str]:
        return {"status": "ready"}

    return health_app


async def run_health_server(task_queue: str, port: int = WORKER_HEALTH_PORT) -> None:
    config = uvicorn.Config(
        create_health_app(task_queue), host="0.0.0.0", port=port, log_level="warning"
    )
    logger.info("Worker health server starting", port=port)
    await uvicorn.Server(config).serve()


async def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings.debug, service="careteam-worker")

    if args.migrate:
        await upgrade_database_async()

    client = await Client.connect(settings.temporal_host, namespace=settings.temporal_namespace)
    if args.schedule_sweep:
        await start_invitation_sweep(client)

    worker = create_worker(client, settings.temporal_task_queue)
    logger.info("Worker polling task queue", task_queue=settings.temporal_task_queue)
    try:
        await asyncio.gather(run_health_server(settings.temporal_task_queue), worker.run())
    finally:
        await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
