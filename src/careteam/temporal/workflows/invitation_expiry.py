"""
Invitation Expiry Sweep Workflow.

Marks lapsed pending invitations as EXPIRED so listings and reports show
the true state. Acceptance never depends on this having run: an expired
token is rejected at accept time regardless of its stored status.

Designed to be run on a schedule (e.g. every 15 minutes via Temporal cron).
"""

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from src.careteam.temporal.activities import expire_stale_invitations


@workflow.defn
class InvitationExpirySweepWorkflow:
    @workflow.run
    async def run(self) -> dict[str, int]:
        workflow.logger.info("Starting invitation expiry sweep")

        expired = await workflow.execute_activity(
            expire_stale_invitations,
            start_to_close_timeout=timedelta(minutes=5),
            retry_policy=RetryPolicy(
                maximum_attempts=3,
                initial_interval=timedelta(seconds=2),
            ),
        )

        workflow.logger.info(f"Invitation expiry sweep complete: {expired} expired")
        return {"expired": expired}
