"""initial_schema

Create vessels, work orders, work details, progress, permits, BASTP,
work verification and activity log tables.

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f1c9a2b7d10"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    op.create_table(
        "vessels",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("type", sa.String(length=100), nullable=True),
        sa.Column("company", sa.String(length=200), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_vessels_deleted_at", "vessels", ["deleted_at"])

    op.create_table(
        "work_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("vessel_id", sa.Integer(), nullable=True),
        sa.Column("customer_wo_number", sa.String(length=100), nullable=True),
        sa.Column("customer_wo_date", sa.Date(), nullable=True),
        sa.Column("shipyard_wo_number", sa.String(length=100), nullable=True),
        sa.Column("shipyard_wo_date", sa.Date(), nullable=True),
        sa.Column("wo_document_delivery_date", sa.Date(), nullable=True),
        sa.Column("wo_document_status", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("planned_start_date", sa.Date(), nullable=True),
        sa.Column("target_close_date", sa.Date(), nullable=True),
        sa.Column("actual_start_date", sa.Date(), nullable=True),
        sa.Column("actual_close_date", sa.Date(), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["vessel_id"], ["vessels.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_orders_vessel_id", "work_orders", ["vessel_id"])
    op.create_index("ix_work_orders_shipyard_wo_number", "work_orders", ["shipyard_wo_number"])
    op.create_index("ix_work_orders_deleted_at", "work_orders", ["deleted_at"])

    op.create_table(
        "bastps",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("number", sa.String(length=100), nullable=False),
        sa.Column("date", sa.Date(), nullable=True),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="DRAFT"),
        sa.Column("vessel_id", sa.Integer(), nullable=True),
        sa.Column("document_url", sa.String(length=500), nullable=True),
        sa.Column("storage_path", sa.String(length=500), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["vessel_id"], ["vessels.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bastps_number", "bastps", ["number"])
    op.create_index("ix_bastps_vessel_id", "bastps", ["vessel_id"])
    op.create_index("ix_bastps_deleted_at", "bastps", ["deleted_at"])

    op.create_table(
        "work_details",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("work_order_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=200), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=True),
        sa.Column("uom", sa.String(length=30), nullable=True),
        sa.Column("pic", sa.String(length=150), nullable=True),
        sa.Column("planned_start_date", sa.Date(), nullable=True),
        sa.Column("target_close_date", sa.Date(), nullable=True),
        sa.Column("period_close_target", sa.String(length=50), nullable=True),
        sa.Column("actual_start_date", sa.Date(), nullable=True),
        sa.Column("actual_close_date", sa.Date(), nullable=True),
        sa.Column("is_bastp", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("bastp_id", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["bastp_id"], ["bastps.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_details_work_order_id", "work_details", ["work_order_id"])
    op.create_index("ix_work_details_bastp_id", "work_details", ["bastp_id"])
    op.create_index("ix_work_details_deleted_at", "work_details", ["deleted_at"])

    op.create_table(
        "work_progress",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("work_details_id", sa.Integer(), nullable=True),
        sa.Column("work_order_id", sa.Integer(), nullable=True),
        sa.Column("progress_percentage", sa.Float(), nullable=False),
        sa.Column("report_date", sa.Date(), nullable=False),
        sa.Column("evidence_url", sa.String(length=500), nullable=True),
        sa.Column("storage_path", sa.String(length=500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "work_details_id IS NOT NULL OR work_order_id IS NOT NULL",
            name="ck_work_progress_parent",
        ),
        sa.ForeignKeyConstraint(["work_details_id"], ["work_details.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_progress_work_details_id", "work_progress", ["work_details_id"])
    op.create_index("ix_work_progress_work_order_id", "work_progress", ["work_order_id"])
    op.create_index("ix_work_progress_report_date", "work_progress", ["report_date"])
    op.create_index("ix_work_progress_deleted_at", "work_progress", ["deleted_at"])

    op.create_table(
        "permits_to_work",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("work_order_id", sa.Integer(), nullable=False),
        sa.Column("is_uploaded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("document_url", sa.String(length=500), nullable=True),
        sa.Column("storage_path", sa.String(length=500), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["work_order_id"], ["work_orders.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_permits_to_work_work_order_id", "permits_to_work", ["work_order_id"])
    op.create_index("ix_permits_to_work_deleted_at", "permits_to_work", ["deleted_at"])

    op.create_table(
        "work_verifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("work_details_id", sa.Integer(), nullable=False),
        sa.Column("verification_date", sa.Date(), nullable=False),
        sa.Column("verified_by", sa.String(length=64), nullable=True),
        sa.Column("verified_by_email", sa.String(length=255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["work_details_id"], ["work_details.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_work_verifications_work_details_id", "work_verifications", ["work_details_id"])
    op.create_index("ix_work_verifications_deleted_at", "work_verifications", ["deleted_at"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=20), nullable=False),
        sa.Column("table_name", sa.String(length=64), nullable=False),
        sa.Column("record_id", sa.Integer(), nullable=True),
        sa.Column("old_data", sa.Text(), nullable=True),
        sa.Column("new_data", sa.Text(), nullable=True),
        sa.Column("description", sa.String(length=500), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        sa.Column("user_email", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_activity_record", "activity_logs", ["table_name", "record_id"])
    op.create_index("idx_activity_ts", "activity_logs", ["created_at"])


def downgrade():
    op.drop_table("activity_logs")
    op.drop_table("work_verifications")
    op.drop_table("permits_to_work")
    op.drop_table("work_progress")
    op.drop_table("work_details")
    op.drop_table("bastps")
    op.drop_table("work_orders")
    op.drop_table("vessels")
