"""Initial schema: users, garmin_data, garmin_activities, garmin_imports, protocols, dose_logs, ai_insights

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _user_fk() -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "garmin_data",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("data_date", sa.Date(), nullable=False),
        sa.Column("sleep_score", sa.Float(), nullable=True),
        sa.Column("sleep_duration_hours", sa.Float(), nullable=True),
        sa.Column("deep_sleep_hours", sa.Float(), nullable=True),
        sa.Column("light_sleep_hours", sa.Float(), nullable=True),
        sa.Column("rem_sleep_hours", sa.Float(), nullable=True),
        sa.Column("awake_hours", sa.Float(), nullable=True),
        sa.Column("hrv_avg", sa.Float(), nullable=True),
        sa.Column("resting_heart_rate", sa.Float(), nullable=True),
        sa.Column("stress_avg", sa.Float(), nullable=True),
        sa.Column("body_battery_high", sa.Float(), nullable=True),
        sa.Column("body_battery_low", sa.Float(), nullable=True),
        sa.Column("steps", sa.Integer(), nullable=True),
        sa.Column("active_minutes", sa.Integer(), nullable=True),
        sa.Column("calories_total", sa.Float(), nullable=True),
        sa.Column("calories_active", sa.Float(), nullable=True),
        sa.Column("distance_meters", sa.Float(), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "data_date", name="uq_garmin_data_user_id_date"),
    )
    op.create_index("ix_garmin_data_user_id", "garmin_data", ["user_id"], unique=False)
    op.create_index("ix_garmin_data_data_date", "garmin_data", ["data_date"], unique=False)

    op.create_table(
        "garmin_activities",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("activity_type", sa.String(128), nullable=False),
        sa.Column("activity_name", sa.String(512), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("distance_meters", sa.Float(), nullable=True),
        sa.Column("calories", sa.Float(), nullable=True),
        sa.Column("avg_heart_rate", sa.Float(), nullable=True),
        sa.Column("max_heart_rate", sa.Float(), nullable=True),
        sa.Column("avg_speed_mps", sa.Float(), nullable=True),
        sa.Column("elevation_gain_meters", sa.Float(), nullable=True),
        sa.Column("raw_data", sa.JSON(), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_garmin_activities_user_id", "garmin_activities", ["user_id"], unique=False)
    op.create_index("ix_garmin_activities_start_time", "garmin_activities", ["start_time"], unique=False)

    op.create_table(
        "garmin_imports",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("import_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("file_name", sa.String(512), nullable=True),
        sa.Column("file_type", sa.String(32), nullable=False),
        sa.Column("records_imported", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_skipped", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("records_updated", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("date_range_start", sa.Date(), nullable=True),
        sa.Column("date_range_end", sa.Date(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="completed"),
        sa.Column("error_message", sa.Text(), nullable=True),
        _user_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_garmin_imports_user_id", "garmin_imports", ["user_id"], unique=False)
    op.create_index("ix_garmin_imports_import_date", "garmin_imports", ["import_date"], unique=False)

    op.create_table(
        "protocols",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("peptide_name", sa.String(255), nullable=False),
        sa.Column("dose", sa.String(64), nullable=False),
        sa.Column("frequency_type", sa.String(32), nullable=False),
        sa.Column("specific_days", sa.JSON(), nullable=True),
        sa.Column("interval_days", sa.Integer(), nullable=True),
        sa.Column("cycle_on_days", sa.Integer(), nullable=True),
        sa.Column("cycle_off_days", sa.Integer(), nullable=True),
        sa.Column("cycle_start_date", sa.Date(), nullable=True),
        sa.Column("timing_preference", sa.String(32), nullable=False, server_default="any-time"),
        sa.Column("preferred_time", sa.String(8), nullable=True),
        sa.Column("doses_per_day", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", sa.String(16), nullable=False, server_default="active"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_protocols_user_id", "protocols", ["user_id"], unique=False)

    op.create_table(
        "dose_logs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("protocol_id", sa.Integer(), nullable=False),
        sa.Column("peptide_name", sa.String(255), nullable=False),
        sa.Column("dose", sa.String(64), nullable=False),
        sa.Column("dose_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=False),
        sa.Column("taken_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk(),
        sa.ForeignKeyConstraint(["protocol_id"], ["protocols.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("protocol_id", "scheduled_for", "dose_number", name="uq_dose_logs_protocol_slot"),
    )
    op.create_index("ix_dose_logs_user_id", "dose_logs", ["user_id"], unique=False)
    op.create_index("ix_dose_logs_protocol_id", "dose_logs", ["protocol_id"], unique=False)
    op.create_index("ix_dose_logs_scheduled_for", "dose_logs", ["scheduled_for"], unique=False)

    op.create_table(
        "ai_insights",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("week_start", sa.Date(), nullable=False),
        sa.Column("week_end", sa.Date(), nullable=False),
        sa.Column("metrics_summary", sa.JSON(), nullable=True),
        sa.Column("protocol_summary", sa.JSON(), nullable=True),
        sa.Column("correlation_data", sa.JSON(), nullable=True),
        sa.Column("insights", sa.JSON(), nullable=True),
        sa.Column("weekly_summary", sa.Text(), nullable=True),
        sa.Column("recommendations", sa.JSON(), nullable=True),
        sa.Column("generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("model_version", sa.String(64), nullable=True),
        sa.Column("input_tokens", sa.Integer(), nullable=True),
        sa.Column("output_tokens", sa.Integer(), nullable=True),
        _user_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "week_start", name="uq_ai_insights_user_id_week_start"),
    )
    op.create_index("ix_ai_insights_user_id", "ai_insights", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_table("ai_insights")
    op.drop_table("dose_logs")
    op.drop_table("protocols")
    op.drop_table("garmin_imports")
    op.drop_table("garmin_activities")
    op.drop_table("garmin_data")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
