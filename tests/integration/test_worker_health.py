"""Worker probe endpoints and command line."""

import pytest
from httpx import ASGITransport, AsyncClient

from src.careteam.temporal.worker import create_health_app, parse_args

pytestmark = pytest.mark.integration


@pytest.fixture
async def probe_client():
    app = create_health_app("careteam-jobs")
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://worker") as client:
        yield client


async def test_health_reports_task_queue(probe_client):
    response = await probe_client.get("/health")

    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "service": "temporal-worker",
        "task_queue": "careteam-jobs",
    }


async def test_ready(probe_client):
    response = await probe_client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {"status": "ready"}


async def test_no_docs_on_probe_port(probe_client):
    assert (await probe_client.get("/docs")).status_code == 404


@pytest.mark.parametrize(
    ("argv", "migrate", "sweep"),
    [
        ([], False, False),
        (["--migrate"], True, False),
        (["--migrate", "--schedule-sweep"], True, True),
    ],
)
def test_parse_args(argv, migrate, sweep):
    args = parse_args(argv)

    assert args.migrate is migrate
    assert args.schedule_sweep is sweep
