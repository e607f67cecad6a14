"""Typed, versioned shapes for the JSON settings columns.

Unknown keys are preserved so newer writers do not lose data through older
readers.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from src.careteam.models.enums import MANAGER_ACCESS_LEVEL, ROLE_ACCESS_LEVELS, TeamRole

COMPLIANCE_SETTINGS_VERSION = 1
MEMBER_PERMISSIONS_VERSION = 1


class ComplianceSettings(BaseModel):
    model_config = ConfigDict(extra="allow")

    schema_version: int = COMPLIANCE_SETTINGS_VERSION
    mfa_required_roles: list[TeamRole] = Field(
        default_factory=lambda: [
            TeamRole.OWNER,
            TeamRole.MANAGER,
            TeamRole.PRACTITIONER,
            TeamRole.COMPLIANCE,
        ]
    )
    require_ahpra_verification: bool = True
    require_background_check: bool = False
    audit_retention_days: int = 2555  # 7 years

    def role_requires_mfa(self, role: TeamRole | str) -> bool:
        return TeamRole(role) in self.mfa_required_roles


class MemberPermissions(BaseModel):
    model_config = ConfigDict(extra="allow")

    schema_version: int = MEMBER_PERMISSIONS_VERSION
    manage_team: bool = False
    invite_members: bool = False
    view_audit_log: bool = False
    manage_content: bool = False
    view_analytics: bool = False


def default_permissions(role: TeamRole | str) -> MemberPermissions:
    """Permissions granted to a new member of `role`."""
    role = TeamRole(role)
    level = ROLE_ACCESS_LEVELS[role]
    is_manager = level >= MANAGER_ACCESS_LEVEL
    return MemberPermissions(
        manage_team=is_manager,
        invite_members=is_manager,
        view_audit_log=is_manager or role == TeamRole.COMPLIANCE,
        manage_content=role in (TeamRole.OWNER, TeamRole.MANAGER, TeamRole.MARKETING),
        view_analytics=is_manager or role == TeamRole.MARKETING,
    )


def dump_settings(model: BaseModel) -> dict[str, Any]:
    """JSON-safe dict for storage in a JSON column."""
    return model.model_dump(mode="json")
