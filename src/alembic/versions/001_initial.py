"""Initial migration: care teams, invitations, MFA and the audit log

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
import sqlmodel
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    # 1. Care teams
    op.create_table(
        "care_teams",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("owner_id", sa.Uuid(), nullable=False),
        sa.Column("team_name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("practice_name", sqlmodel.sql.sqltypes.AutoString(length=200), nullable=True),
        sa.Column(
            "team_description", sqlmodel.sql.sqltypes.AutoString(length=1000), nullable=True
        ),
        sa.Column(
            "ahpra_practice_number", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=True
        ),
        sa.Column("max_team_size", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("current_team_size", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("compliance_settings", JSONType, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_care_teams_owner_id", "care_teams", ["owner_id"])
    op.create_index("ix_care_teams_owner_active", "care_teams", ["owner_id", "is_active"])

    # 2. Memberships (soft-deleted, one active row per team and user)
    op.create_table(
        "care_team_members",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("team_id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("invited_email", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("invited_by", sa.Uuid(), nullable=True),
        sa.Column("team_role", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=False),
        sa.Column("display_name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column(
            "ahpra_registration", sqlmodel.sql.sqltypes.AutoString(length=50), nullable=True
        ),
        sa.Column(
            "profession_type", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True
        ),
        sa.Column("department", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column("permissions", JSONType, nullable=False),
        sa.Column("access_level", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
        sa.Column("invitation_accepted_at", sa.DateTime(), nullable=True),
        sa.Column("notes", sqlmodel.sql.sqltypes.AutoString(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["team_id"], ["care_teams.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_care_team_members_team_id", "care_team_members", ["team_id"])
    op.create_index("ix_care_team_members_user_id", "care_team_members", ["user_id"])
    op.create_index("ix_care_team_members_invited_email", "care_team_members", ["invited_email"])
    op.create_index(
        "ix_care_team_members_team_active", "care_team_members", ["team_id", "is_active"]
    )
    op.create_index(
        "uq_care_team_members_active_user",
        "care_team_members",
        ["team_id", "user_id"],
        unique=True,
        postgresql_where=sa.text("is_active"),
        sqlite_where=sa.text("is_active"),
    )

    # 3. Invitations (token stored as SHA-256 hash only)
    op.create_table(
        "care_team_invitations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("team_id", sa.Uuid(), nullable=False),
        sa.Column("invited_by", sa.Uuid(), nullable=False),
        sa.Column("invited_email", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=False),
        sa.Column("invited_name", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=False),
        sa.Column("team_role", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=False),
        sa.Column("department", sqlmodel.sql.sqltypes.AutoString(length=100), nullable=True),
        sa.Column(
            "personal_message", sqlmodel.sql.sqltypes.AutoString(length=1000), nullable=True
        ),
        sa.Column("token_hash", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column(
            "status",
            sqlmodel.sql.sqltypes.AutoString(length=20),
            nullable=False,
            server_default="pending",
        ),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("accepted_by", sa.Uuid(), nullable=True),
        sa.Column("declined_at", sa.DateTime(), nullable=True),
        sa.Column(
            "declined_reason", sqlmodel.sql.sqltypes.AutoString(length=500), nullable=True
        ),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("reminder_sent_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_reminder_sent_at", sa.DateTime(), nullable=True),
        sa.Column(
            "compliance_acknowledgment_required",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("true"),
        ),
        sa.Column(
            "ahpra_verification_required",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column(
            "background_check_required",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["team_id"], ["care_teams.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_care_team_invitations_team_id", "care_team_invitations", ["team_id"])
    op.create_index(
        "ix_care_team_invitations_token_hash",
        "care_team_invitations",
        ["token_hash"],
        unique=True,
    )
    op.create_index(
        "ix_care_team_invitations_team_status", "care_team_invitations", ["team_id", "status"]
    )
    op.create_index(
        "ix_care_team_invitations_status_expires",
        "care_team_invitations",
        ["status", "expires_at"],
    )
    op.create_index(
        "uq_care_team_invitations_pending_email",
        "care_team_invitations",
        ["team_id", "invited_email"],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
        sqlite_where=sa.text("status = 'pending'"),
    )

    # 4. MFA credentials (one row per principal)
    op.create_table(
        "mfa_credentials",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column(
            "totp_secret_encrypted", sqlmodel.sql.sqltypes.AutoString(length=255), nullable=True
        ),
        sa.Column("totp_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("enrollment_started_at", sa.DateTime(), nullable=True),
        sa.Column("enrolled_at", sa.DateTime(), nullable=True),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # 5. Backup codes (hashes only, consumed by DELETE)
    op.create_table(
        "mfa_backup_codes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("code_hash", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "code_hash", name="uq_mfa_backup_codes_hash"),
    )
    op.create_index("ix_mfa_backup_codes_user_id", "mfa_backup_codes", ["user_id"])

    # 6. SMS backup factor
    op.create_table(
        "mfa_sms_backups",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("phone_number", sqlmodel.sql.sqltypes.AutoString(length=32), nullable=False),
        sa.Column(
            "country_code",
            sqlmodel.sql.sqltypes.AutoString(length=6),
            nullable=False,
            server_default="+61",
        ),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("user_id"),
    )

    # 7. Verification attempts (drive the lockout policy)
    op.create_table(
        "mfa_verification_attempts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("method", sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False),
        sa.Column("purpose", sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False),
        sa.Column("success", sa.Boolean(), nullable=False),
        sa.Column("ip_address", sqlmodel.sql.sqltypes.AutoString(length=45), nullable=True),
        sa.Column("user_agent", sqlmodel.sql.sqltypes.AutoString(length=500), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_mfa_verification_attempts_user_created",
        "mfa_verification_attempts",
        ["user_id", "created_at"],
    )

    # 8. Audit log (append-only)
    op.create_table(
        "care_team_audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("team_id", sa.Uuid(), nullable=True),
        sa.Column("performed_by", sa.Uuid(), nullable=True),
        sa.Column("target_member_id", sa.Uuid(), nullable=True),
        sa.Column("action", sqlmodel.sql.sqltypes.AutoString(length=200), nullable=False),
        sa.Column("action_type", sqlmodel.sql.sqltypes.AutoString(length=30), nullable=False),
        sa.Column("details", JSONType, nullable=True),
        sa.Column(
            "compliance_impact", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "status",
            sqlmodel.sql.sqltypes.AutoString(length=20),
            nullable=False,
            server_default="success",
        ),
        sa.Column("error_message", sqlmodel.sql.sqltypes.AutoString(length=1000), nullable=True),
        sa.Column("ip_address", sqlmodel.sql.sqltypes.AutoString(length=45), nullable=True),
        sa.Column("user_agent", sqlmodel.sql.sqltypes.AutoString(length=500), nullable=True),
        sa.Column("request_id", sqlmodel.sql.sqltypes.AutoString(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_care_team_audit_log_team_created", "care_team_audit_log", ["team_id", "created_at"]
    )
    op.create_index(
        "ix_care_team_audit_log_actor_created",
        "care_team_audit_log",
        ["performed_by", "created_at"],
    )
    op.create_index(
        "ix_care_team_audit_log_type_created",
        "care_team_audit_log",
        ["action_type", "created_at"],
    )


def downgrade() -> None:
    op.drop_table("care_team_audit_log")
    op.drop_table("mfa_verification_attempts")
    op.drop_table("mfa_sms_backups")
    op.drop_table("mfa_backup_codes")
    op.drop_table("mfa_credentials")
    op.drop_table("care_team_invitations")
    op.drop_table("care_team_members")
    op.drop_table("care_teams")
