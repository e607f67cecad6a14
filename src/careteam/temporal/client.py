"""Temporal Client - For starting workflows from the API or the CLI."""

from temporalio.client import Client, WorkflowHandle

from src.careteam.core.config import get_settings
from src.careteam.core.logging import get_logger
from src.careteam.temporal.workflows import InvitationExpirySweepWorkflow

logger = get_logger(__name__)

INVITATION_SWEEP_WORKFLOW_ID = "invitation-expiry-sweep"

_client: Client | None = None


async def get_temporal_client() -> Client:
    """Get or create Temporal client."""
    global _client
    if _client is None:
        settings = get_settings()
        _client = await Client.connect(
            settings.temporal_host,
            namespace=settings.temporal_namespace,
        )
    return _client


async def close_temporal_client() -> None:
    """Drop the cached client. Call during shutdown."""
    global _client
    _client = None


async def start_invitation_sweep(client: Client | None = None) -> WorkflowHandle:
    """Start the expiry sweep, on the configured cron schedule if one is set."""
    settings = get_settings()
    client = client or await get_temporal_client()
    handle = await client.start_workflow(
        InvitationExpirySweepWorkflow.run,
        id=INVITATION_SWEEP_WORKFLOW_ID,
        task_queue=settings.temporal_task_queue,
        cron_schedule=settings.invitation_sweep_schedule or "",
    )
    logger.info(
        "Invitation sweep started",
        workflow_id=INVITATION_SWEEP_WORKFLOW_ID,
        schedule=settings.invitation_sweep_schedule,
    )
    return handle
