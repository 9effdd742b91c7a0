"""create invoice number sequences"""

from alembic import op
import sqlalchemy as sa

revision = "0004_create_invoice_sequences"
down_revision = "0003_create_invoice_items"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "invoice_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("year_full", sa.Integer(), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("year_full"),
    )
    op.create_index("ix_invoice_sequences_id", "invoice_sequences", ["id"])


def downgrade():
    op.drop_index("ix_invoice_sequences_id", table_name="invoice_sequences")
    op.drop_table("invoice_sequences")
