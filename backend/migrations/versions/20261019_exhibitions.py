"""Exhibition sessions

Revision ID: 20261019_exhibitions
Revises: 20261019_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_exhibitions"
down_revision = "20261019_initial"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "exhibitions",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.String(64), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("exhibitions", schema=None) as batch_op:
        batch_op.create_index("ix_exhibitions_created_by_active", ["created_by", "active"], unique=False)


def downgrade():
    with op.batch_alter_table("exhibitions", schema=None) as batch_op:
        batch_op.drop_index("ix_exhibitions_created_by_active")

    op.drop_table("exhibitions")
