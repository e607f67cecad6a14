"""Temporal Workflows - Re-exports for worker registration."""

from src.careteam.temporal.workflows.invitation_expiry import InvitationExpirySweepWorkflow

__all__ = ["InvitationExpirySweepWorkflow"]
