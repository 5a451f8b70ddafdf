"""create release check tables

Revision ID: aa10001bcD01
Revises:
Create Date: 2026-09-28 09:00:00.000000

Hey future me - INITIAL SCHEMA for the release check!

TABLES:
- users              owned by the dashboard, read by the release check
- contacts           fan mailing list per user (subscribed flag + unsubscribe token)
- notified_releases  the Track Ledger - one row per (platform, track, user)
- execution_logs     one row per cron run, append-only

KEY DESIGN DECISIONS:
1. uq_notified_releases_platform_track_user is THE idempotency guarantee across cron runs.
   The repository upserts against it (sent_count += n on conflict).
2. platform_results / errors are JSON - the history endpoint reads them back as-is.
3. monthly_quota >= 999999999 means unlimited, no separate flag.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "aa10001bcD01"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users, contacts, notified_releases and execution_logs."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("soundcloud_id", sa.String(length=64), nullable=True),
        sa.Column("spotify_id", sa.String(length=64), nullable=True),
        sa.Column("monthly_quota", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("emails_sent_this_month", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sender_email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )
    op.create_index("ix_users_active", "users", ["active"])

    op.create_table(
        "contacts",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("subscribed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("unsubscribe_token", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("unsubscribe_token"),
        sa.UniqueConstraint("user_id", "email", name="uq_contacts_user_email"),
    )
    op.create_index("ix_contacts_user_subscribed", "contacts", ["user_id", "subscribed"])

    op.create_table(
        "notified_releases",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("platform", sa.String(length=20), nullable=False),
        sa.Column("external_track_id", sa.String(length=255), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=True),
        sa.Column("sent_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "platform",
            "external_track_id",
            "user_id",
            name="uq_notified_releases_platform_track_user",
        ),
    )
    op.create_index("ix_notified_releases_user", "notified_releases", ["user_id"])

    op.create_table(
        "execution_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("run_id", sa.String(length=36), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("users_processed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_new_tracks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_emails_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("timed_out", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("units_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("platform_results", sa.JSON(), nullable=False),
        sa.Column("errors", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("run_id"),
    )
    op.create_index("ix_execution_logs_started_at", "execution_logs", ["started_at"])


def downgrade() -> None:
    """Drop all release check tables."""
    op.drop_index("ix_execution_logs_started_at", table_name="execution_logs")
    op.drop_table("execution_logs")
    op.drop_index("ix_notified_releases_user", table_name="notified_releases")
    op.drop_table("notified_releases")
    op.drop_index("ix_contacts_user_subscribed", table_name="contacts")
    op.drop_table("contacts")
    op.drop_index("ix_users_active", table_name="users")
    op.drop_table("users")
