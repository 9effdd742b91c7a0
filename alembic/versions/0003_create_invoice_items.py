"""create invoice items table"""

from alembic import op
import sqlalchemy as sa

revision = "0003_create_invoice_items"
down_revision = "0002_create_invoices"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "invoice_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "invoice_id",
            sa.Integer(),
            sa.ForeignKey("invoices.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("description", sa.String(length=1000), nullable=False),
        sa.Column("quantity", sa.String(length=32), nullable=False, server_default="1"),
        sa.Column("unit_price", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vat_rate_id", sa.String(length=20), nullable=False, server_default="standard"),
        sa.Column("vat_rate_percent", sa.Numeric(5, 2), nullable=False, server_default="20"),
        sa.Column("net_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("vat_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("line_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index("ix_invoice_items_id", "invoice_items", ["id"])
    op.create_index("ix_invoice_items_invoice_id", "invoice_items", ["invoice_id"])
    op.create_index("ix_invoice_items_vat_rate_id", "invoice_items", ["vat_rate_id"])


def downgrade():
    op.drop_index("ix_invoice_items_vat_rate_id", table_name="invoice_items")
    op.drop_index("ix_invoice_items_invoice_id", table_name="invoice_items")
    op.drop_index("ix_invoice_items_id", table_name="invoice_items")
    op.drop_table("invoice_items")
