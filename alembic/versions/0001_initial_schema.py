"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-03-01 09:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TZ = sa.DateTime(timezone=True)


# ---------- helpers ----------
def _has_table(name: str) -> bool:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    return insp.has_table(name)


def _has_index(table: str, name: str) -> bool:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    try:
        return any(ix.get("name") == name for ix in insp.get_indexes(table))
    except Exception:
        return False


def _ensure_index(name: str, table: str, cols, unique: bool = False):
    if not _has_index(table, name):
        op.create_index(name, table, cols, unique=unique)


def upgrade() -> None:
    # -----------------------------
    # users
    # -----------------------------
    if not _has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("email", sa.String(), nullable=False),
            sa.Column("hashed_password", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("phone", sa.String(), nullable=True),
            sa.Column("role", sa.String(length=16), nullable=False),
            sa.Column("approval_status", sa.String(length=16), nullable=False),
            sa.Column("rejection_reason", sa.String(), nullable=True),
            sa.Column("approved_by", sa.Integer(), nullable=True),
            sa.Column("approved_at", TZ, nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("company_name", sa.String(), nullable=True),
            sa.Column("pickup_company_name", sa.String(), nullable=True),
            sa.Column("pickup_phone", sa.String(), nullable=True),
            sa.Column("pickup_address", sa.String(), nullable=True),
            sa.Column("business_name", sa.String(), nullable=True),
            sa.Column("business_number", sa.String(), nullable=True),
            sa.Column("business_address", sa.String(), nullable=True),
            sa.Column("service_areas", sa.JSON(), nullable=True),
            sa.Column("bank_name", sa.String(), nullable=True),
            sa.Column("bank_account", sa.String(), nullable=True),
            sa.Column("account_holder", sa.String(), nullable=True),
            sa.Column("level", sa.Integer(), nullable=False),
            sa.Column("rating", sa.Float(), nullable=False),
            sa.Column("rating_count", sa.Integer(), nullable=False),
            sa.Column("completed_jobs", sa.Integer(), nullable=False),
            sa.Column("suspended_until", TZ, nullable=True),
            sa.Column("permanently_suspended", sa.Boolean(), nullable=False),
            sa.Column("created_at", TZ, nullable=True),
            sa.Column("updated_at", TZ, nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_users_id", "users", ["id"])
    _ensure_index("ix_users_email", "users", ["email"], unique=True)
    _ensure_index("ix_users_role", "users", ["role"])

    # -----------------------------
    # jobs / job_items / job_progress_steps
    # -----------------------------
    if not _has_table("jobs"):
        op.create_table(
            "jobs",
            sa.Column("id", sa.String(length=6), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("address", sa.String(), nullable=False),
            sa.Column("scheduled_at", TZ, nullable=True),
            sa.Column("seller_id", sa.Integer(), nullable=False),
            sa.Column("contractor_id", sa.Integer(), nullable=True),
            sa.Column("customer_name", sa.String(), nullable=True),
            sa.Column("customer_phone", sa.String(), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=False),
            sa.Column("travel_fee", sa.Integer(), nullable=False),
            sa.Column("urgent_fee", sa.Integer(), nullable=False),
            sa.Column("urgent_fee_percent", sa.Float(), nullable=False),
            sa.Column("escrow_amount", sa.Integer(), nullable=False),
            sa.Column("final_amount", sa.Integer(), nullable=True),
            sa.Column("pickup_company_name", sa.String(), nullable=True),
            sa.Column("pickup_phone", sa.String(), nullable=True),
            sa.Column("pickup_address", sa.String(), nullable=True),
            sa.Column("requirements", sa.Text(), nullable=True),
            sa.Column("accepted_at", TZ, nullable=True),
            sa.Column("completed_at", TZ, nullable=True),
            sa.Column("cancelled_at", TZ, nullable=True),
            sa.Column("cancellation_reason", sa.String(), nullable=True),
            sa.Column("customer_satisfaction", sa.Integer(), nullable=True),
            sa.Column("created_at", TZ, nullable=True),
            sa.Column("updated_at", TZ, nullable=True),
            sa.CheckConstraint("escrow_amount >= 0", name="ck_job_escrow_nonneg"),
            sa.ForeignKeyConstraint(["seller_id"], ["users.id"]),
            sa.ForeignKeyConstraint(["contractor_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_jobs_seller_id", "jobs", ["seller_id"])
    _ensure_index("ix_jobs_contractor_id", "jobs", ["contractor_id"])
    _ensure_index("ix_jobs_status", "jobs", ["status"])
    _ensure_index("ix_job_contractor_scheduled", "jobs", ["contractor_id", "scheduled_at"])

    if not _has_table("job_items"):
        op.create_table(
            "job_items",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_id", sa.String(length=6), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("quantity", sa.Integer(), nullable=False),
            sa.Column("unit_price", sa.Integer(), nullable=False),
            sa.Column("total_price", sa.Integer(), nullable=False),
            sa.ForeignKeyConstraint(["job_id"], ["jobs.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_job_items_id", "job_items", ["id"])
    _ensure_index("ix_job_items_job_id", "job_items", ["job_id"])

    if not _has_table("job_progress_steps"):
        op.create_table(
            "job_progress_steps",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_id", sa.String(length=6), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=False),
            sa.Column("actor_id", sa.Integer(), nullable=True),
            sa.Column("note", sa.String(), nullable=True),
            sa.Column("created_at", TZ, nullable=False),
            sa.ForeignKeyConstraint(["job_id"], ["jobs.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_job_progress_steps_id", "job_progress_steps", ["id"])
    _ensure_index("ix_job_progress_steps_job_id", "job_progress_steps", ["job_id"])

    # -----------------------------
    # point_balances / point_transactions / point_escrows
    # -----------------------------
    if not _has_table("point_balances"):
        op.create_table(
            "point_balances",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=16), nullable=False),
            sa.Column("balance", sa.Integer(), nullable=False),
            sa.Column("total_charged", sa.Integer(), nullable=False),
            sa.Column("total_withdrawn", sa.Integer(), nullable=False),
            sa.Column("updated_at", TZ, nullable=True),
            sa.CheckConstraint("balance >= 0", name="ck_point_balance_nonneg"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "role", name="uq_point_balance_user_role"),
        )
    _ensure_index("ix_point_balances_id", "point_balances", ["id"])
    _ensure_index("ix_point_balances_user_id", "point_balances", ["user_id"])

    if not _has_table("point_transactions"):
        op.create_table(
            "point_transactions",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("role", sa.String(length=16), nullable=False),
            sa.Column("type", sa.String(length=16), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("balance_after", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False),
            sa.Column("description", sa.String(), nullable=True),
            sa.Column("job_id", sa.String(length=6), nullable=True),
            sa.Column("deduction_type", sa.String(), nullable=True),
            sa.Column("compensation_type", sa.String(), nullable=True),
            sa.Column("admin_id", sa.Integer(), nullable=True),
            sa.Column("admin_note", sa.String(), nullable=True),
            sa.Column("bank_name", sa.String(), nullable=True),
            sa.Column("bank_account", sa.String(), nullable=True),
            sa.Column("account_holder", sa.String(), nullable=True),
            sa.Column("related_transaction_id", sa.Integer(), nullable=True),
            sa.Column("idempotency_key", sa.String(), nullable=True),
            sa.Column("created_at", TZ, nullable=True),
            sa.Column("completed_at", TZ, nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_point_transactions_id", "point_transactions", ["id"])
    _ensure_index("ix_point_transactions_job_id", "point_transactions", ["job_id"])
    _ensure_index("ix_point_transactions_idempotency_key", "point_transactions", ["idempotency_key"], unique=True)
    _ensure_index("ix_point_user_created", "point_transactions", ["user_id", "role", "created_at"])

    if not _has_table("point_escrows"):
        op.create_table(
            "point_escrows",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_id", sa.String(length=6), nullable=False),
            sa.Column("seller_id", sa.Integer(), nullable=False),
            sa.Column("contractor_id", sa.Integer(), nullable=True),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("original_amount", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False),
            sa.Column("release_due_at", TZ, nullable=True),
            sa.Column("released_at", TZ, nullable=True),
            sa.Column("refunded_at", TZ, nullable=True),
            sa.Column("notes", sa.String(), nullable=True),
            sa.Column("created_at", TZ, nullable=True),
            sa.CheckConstraint("amount >= 0", name="ck_escrow_amount_nonneg"),
            sa.ForeignKeyConstraint(["seller_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_point_escrows_id", "point_escrows", ["id"])
    _ensure_index("ix_point_escrows_job_id", "point_escrows", ["job_id"], unique=True)
    _ensure_index("ix_point_escrows_status", "point_escrows", ["status"])
    _ensure_index("ix_point_escrows_release_due_at", "point_escrows", ["release_due_at"])

    # -----------------------------
    # system_settings
    # -----------------------------
    if not _has_table("system_settings"):
        op.create_table(
            "system_settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("escrow_auto_release_hours", sa.Integer(), nullable=False),
            sa.Column("max_cancellation_hours", sa.Integer(), nullable=False),
            sa.Column("max_daily_cancellations", sa.Integer(), nullable=False),
            sa.Column("cancellation_fee_rate", sa.Float(), nullable=False),
            sa.Column("product_not_ready_rate", sa.Float(), nullable=False),
            sa.Column("customer_absent_rate", sa.Float(), nullable=False),
            sa.Column("schedule_change_fee_rate", sa.Float(), nullable=False),
            sa.Column("seller_commission_rate", sa.Float(), nullable=False),
            sa.Column("contractor_commission_rate", sa.Float(), nullable=False),
            sa.Column("travel_fee", sa.Integer(), nullable=False),
            sa.Column("updated_by", sa.Integer(), nullable=True),
            sa.Column("updated_at", TZ, nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )

    # -----------------------------
    # job_cancellations / job_compensations / job_schedule_changes
    # -----------------------------
    if not _has_table("job_cancellations"):
        op.create_table(
            "job_cancellations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_id", sa.String(length=6), nullable=False),
            sa.Column("contractor_id", sa.Integer(), nullable=False),
            sa.Column("reason", sa.String(), nullable=True),
            sa.Column("cancellation_number", sa.Integer(), nullable=False),
            sa.Column("total_cancellations_today", sa.Integer(), nullable=False),
            sa.Column("fee_amount", sa.Integer(), nullable=False),
            sa.Column("fee_rate", sa.Float(), nullable=False),
            sa.Column("cancelled_at", TZ, nullable=False),
            sa.ForeignKeyConstraint(["contractor_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_job_cancellations_id", "job_cancellations", ["id"])
    _ensure_index("ix_job_cancellations_job_id", "job_cancellations", ["job_id"])
    _ensure_index("ix_job_cancellations_contractor_id", "job_cancellations", ["contractor_id"])
    _ensure_index("ix_job_cancellations_cancelled_at", "job_cancellations", ["cancelled_at"])

    if not _has_table("job_compensations"):
        op.create_table(
            "job_compensations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_id", sa.String(length=6), nullable=False),
            sa.Column("contractor_id", sa.Integer(), nullable=False),
            sa.Column("seller_id", sa.Integer(), nullable=False),
            sa.Column("compensation_type", sa.String(length=32), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("rate", sa.Float(), nullable=False),
            sa.Column("reason", sa.String(), nullable=True),
            sa.Column("processed_by", sa.Integer(), nullable=True),
            sa.Column("created_at", TZ, nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_job_compensations_id", "job_compensations", ["id"])
    _ensure_index("ix_job_compensations_job_id", "job_compensations", ["job_id"])
    _ensure_index("ix_job_compensations_contractor_id", "job_compensations", ["contractor_id"])

    if not _has_table("job_schedule_changes"):
        op.create_table(
            "job_schedule_changes",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_id", sa.String(length=6), nullable=False),
            sa.Column("contractor_id", sa.Integer(), nullable=False),
            sa.Column("old_date", TZ, nullable=False),
            sa.Column("new_date", TZ, nullable=False),
            sa.Column("reason", sa.String(), nullable=True),
            sa.Column("fee_amount", sa.Integer(), nullable=False),
            sa.Column("fee_rate", sa.Float(), nullable=False),
            sa.Column("created_at", TZ, nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_job_schedule_changes_id", "job_schedule_changes", ["id"])
    _ensure_index("ix_job_schedule_changes_job_id", "job_schedule_changes", ["job_id"])

    # -----------------------------
    # contractor_levels / rating policies
    # -----------------------------
    if not _has_table("contractor_levels"):
        op.create_table(
            "contractor_levels",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("level", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("completed_jobs_count", sa.Integer(), nullable=False),
            sa.Column("benefits", sa.JSON(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("created_at", TZ, nullable=True),
            sa.Column("updated_at", TZ, nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("level"),
        )
    _ensure_index("ix_contractor_levels_id", "contractor_levels", ["id"])

    if not _has_table("rating_commission_policies"):
        op.create_table(
            "rating_commission_policies",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("min_rating", sa.Float(), nullable=False),
            sa.Column("max_rating", sa.Float(), nullable=True),
            sa.Column("commission_rate", sa.Float(), nullable=False),
            sa.Column("description", sa.String(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("created_at", TZ, nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_rating_commission_policies_id", "rating_commission_policies", ["id"])

    if not _has_table("rating_suspension_policies"):
        op.create_table(
            "rating_suspension_policies",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("min_rating", sa.Float(), nullable=False),
            sa.Column("max_rating", sa.Float(), nullable=True),
            sa.Column("suspension_days", sa.Integer(), nullable=False),
            sa.Column("description", sa.String(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("created_at", TZ, nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_rating_suspension_policies_id", "rating_suspension_policies", ["id"])

    # -----------------------------
    # satisfaction_surveys
    # -----------------------------
    if not _has_table("satisfaction_surveys"):
        op.create_table(
            "satisfaction_surveys",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_id", sa.String(length=6), nullable=False),
            sa.Column("contractor_id", sa.Integer(), nullable=True),
            sa.Column("customer_name", sa.String(), nullable=True),
            sa.Column("customer_phone", sa.String(), nullable=True),
            sa.Column("access_token", sa.String(), nullable=False),
            sa.Column("responses", sa.JSON(), nullable=True),
            sa.Column("overall_rating", sa.Integer(), nullable=True),
            sa.Column("comment", sa.Text(), nullable=True),
            sa.Column("is_completed", sa.Boolean(), nullable=False),
            sa.Column("created_at", TZ, nullable=True),
            sa.Column("completed_at", TZ, nullable=True),
            sa.ForeignKeyConstraint(["job_id"], ["jobs.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_id"),
        )
    _ensure_index("ix_satisfaction_surveys_id", "satisfaction_surveys", ["id"])
    _ensure_index("ix_satisfaction_surveys_contractor_id", "satisfaction_surveys", ["contractor_id"])
    _ensure_index("ix_satisfaction_surveys_access_token", "satisfaction_surveys", ["access_token"], unique=True)

    # -----------------------------
    # chat_rooms / chat_messages
    # -----------------------------
    if not _has_table("chat_rooms"):
        op.create_table(
            "chat_rooms",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("job_id", sa.String(length=6), nullable=False),
            sa.Column("participants", sa.JSON(), nullable=False),
            sa.Column("last_message", sa.String(), nullable=True),
            sa.Column("last_message_at", TZ, nullable=True),
            sa.Column("created_at", TZ, nullable=True),
            sa.ForeignKeyConstraint(["job_id"], ["jobs.id"]),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("job_id"),
        )
    _ensure_index("ix_chat_rooms_id", "chat_rooms", ["id"])

    if not _has_table("chat_messages"):
        op.create_table(
            "chat_messages",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("room_id", sa.Integer(), nullable=False),
            sa.Column("sender_id", sa.Integer(), nullable=False),
            sa.Column("sender_name", sa.String(), nullable=True),
            sa.Column("sender_role", sa.String(length=16), nullable=True),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("message_type", sa.String(length=8), nullable=False),
            sa.Column("image_url", sa.String(), nullable=True),
            sa.Column("read_by", sa.JSON(), nullable=False),
            sa.Column("created_at", TZ, nullable=True),
            sa.ForeignKeyConstraint(["room_id"], ["chat_rooms.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_chat_messages_id", "chat_messages", ["id"])
    _ensure_index("ix_chat_messages_room_id", "chat_messages", ["room_id"])

    # -----------------------------
    # notifications / admin_notifications
    # -----------------------------
    if not _has_table("notifications"):
        op.create_table(
            "notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("message", sa.String(), nullable=False),
            sa.Column("type", sa.String(length=16), nullable=False),
            sa.Column("is_read", sa.Boolean(), nullable=False),
            sa.Column("action_url", sa.String(), nullable=True),
            sa.Column("created_at", TZ, nullable=True),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_notifications_id", "notifications", ["id"])
    _ensure_index("ix_notifications_user_id", "notifications", ["user_id"])

    if not _has_table("admin_notifications"):
        op.create_table(
            "admin_notifications",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("type", sa.String(length=32), nullable=False),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("message", sa.String(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("user_name", sa.String(), nullable=True),
            sa.Column("amount", sa.Integer(), nullable=True),
            sa.Column("is_read", sa.Boolean(), nullable=False),
            sa.Column("read_by", sa.Integer(), nullable=True),
            sa.Column("read_at", TZ, nullable=True),
            sa.Column("action_url", sa.String(), nullable=True),
            sa.Column("created_at", TZ, nullable=True),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_admin_notifications_id", "admin_notifications", ["id"])

    # -----------------------------
    # manual_charge_requests
    # -----------------------------
    if not _has_table("manual_charge_requests"):
        op.create_table(
            "manual_charge_requests",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("user_name", sa.String(), nullable=True),
            sa.Column("user_email", sa.String(), nullable=True),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=16), nullable=False),
            sa.Column("deposit_name", sa.String(), nullable=True),
            sa.Column("deposit_amount", sa.Integer(), nullable=True),
            sa.Column("deposit_date", TZ, nullable=True),
            sa.Column("admin_note", sa.String(), nullable=True),
            sa.Column("cancel_reason", sa.String(), nullable=True),
            sa.Column("processed_by", sa.Integer(), nullable=True),
            sa.Column("processed_at", TZ, nullable=True),
            sa.Column("created_at", TZ, nullable=True),
            sa.CheckConstraint("amount > 0", name="ck_manual_charge_amount_positive"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
            sa.PrimaryKeyConstraint("id"),
        )
    _ensure_index("ix_manual_charge_requests_id", "manual_charge_requests", ["id"])
    _ensure_index("ix_manual_charge_requests_user_id", "manual_charge_requests", ["user_id"])

    # -----------------------------
    # emergency_settings
    # -----------------------------
    if not _has_table("emergency_settings"):
        op.create_table(
            "emergency_settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("hours_within", sa.Integer(), nullable=False),
            sa.Column("additional_percentage", sa.Float(), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False),
            sa.Column("created_at", TZ, nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("hours_within"),
        )
    _ensure_index("ix_emergency_settings_id", "emergency_settings", ["id"])


# 의존 역순
_DROP_ORDER = (
    "emergency_settings",
    "manual_charge_requests",
    "admin_notifications",
    "notifications",
    "chat_messages",
    "chat_rooms",
    "satisfaction_surveys",
    "rating_suspension_policies",
    "rating_commission_policies",
    "contractor_levels",
    "job_schedule_changes",
    "job_compensations",
    "job_cancellations",
    "system_settings",
    "point_escrows",
    "point_transactions",
    "point_balances",
    "job_progress_steps",
    "job_items",
    "jobs",
    "users",
)


def downgrade() -> None:
    for name in _DROP_ORDER:
        if _has_table(name):
            op.drop_table(name)
