"""invoices_and_materials

Add invoice header/line tables, the material catalogue and material control,
and the invoiced flag/date on BASTP.

Revision ID: 8b2e4d61c0a5
Revises: 3f1c9a2b7d10
Create Date: 2026-10-19 15:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "8b2e4d61c0a5"
down_revision = "3f1c9a2b7d10"
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    with op.batch_alter_table("bastps") as batch_op:
        batch_op.add_column(
            sa.Column("is_invoiced", sa.Boolean(), nullable=False, server_default=sa.false())
        )
        batch_op.add_column(sa.Column("invoiced_date", sa.DateTime(timezone=True), nullable=True))

    op.create_table(
        "invoice_details",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bastp_id", sa.Integer(), nullable=True),
        sa.Column("invoice_number", sa.String(length=100), nullable=True),
        sa.Column("faktur_number", sa.String(length=100), nullable=True),
        sa.Column("company", sa.String(length=200), nullable=True),
        sa.Column("receiver_name", sa.String(length=200), nullable=True),
        sa.Column("bastp_collection_date", sa.Date(), nullable=True),
        sa.Column("delivery_date", sa.Date(), nullable=True),
        sa.Column("collection_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("payment_status", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("payment_date", sa.Date(), nullable=True),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["bastp_id"], ["bastps.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoice_details_bastp_id", "invoice_details", ["bastp_id"])
    op.create_index("ix_invoice_details_invoice_number", "invoice_details", ["invoice_number"])
    op.create_index("ix_invoice_details_deleted_at", "invoice_details", ["deleted_at"])

    op.create_table(
        "invoice_work_details",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("invoice_details_id", sa.Integer(), nullable=False),
        sa.Column("work_details_id", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Float(), nullable=False),
        sa.Column("payment_price", sa.Float(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["invoice_details_id"], ["invoice_details.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["work_details_id"], ["work_details.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_invoice_work_details_invoice_details_id", "invoice_work_details",
                    ["invoice_details_id"])
    op.create_index("ix_invoice_work_details_work_details_id", "invoice_work_details",
                    ["work_details_id"])
    op.create_index("ix_invoice_work_details_deleted_at", "invoice_work_details", ["deleted_at"])

    op.create_table(
        "material_list",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("material", sa.String(length=200), nullable=False),
        sa.Column("specification", sa.String(length=300), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_material_list_category", "material_list", ["category"])
    op.create_index("ix_material_list_deleted_at", "material_list", ["deleted_at"])

    op.create_table(
        "material_control",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("material_id", sa.Integer(), nullable=False),
        sa.Column("bastp_id", sa.Integer(), nullable=False),
        sa.Column("work_details_id", sa.Integer(), nullable=True),
        sa.Column("size", sa.String(length=100), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("uom", sa.String(length=30), nullable=True),
        sa.Column("user_id", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["material_id"], ["material_list.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["bastp_id"], ["bastps.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["work_details_id"], ["work_details.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_material_control_material_id", "material_control", ["material_id"])
    op.create_index("ix_material_control_bastp_id", "material_control", ["bastp_id"])
    op.create_index("ix_material_control_work_details_id", "material_control", ["work_details_id"])
    op.create_index("ix_material_control_deleted_at", "material_control", ["deleted_at"])


def downgrade():
    op.drop_table("material_control")
    op.drop_table("material_list")
    op.drop_table("invoice_work_details")
    op.drop_table("invoice_details")
    with op.batch_alter_table("bastps") as batch_op:
        batch_op.drop_column("invoiced_date")
        batch_op.drop_column("is_invoiced")
