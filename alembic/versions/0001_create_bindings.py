"""create bindings

Revision ID: 0001_create_bindings
Revises:
Create Date: 2026-10-17

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_create_bindings"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "bindings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("platform_user_id", sa.BigInteger, nullable=False),
        sa.Column("game_account_name", sa.String(64), nullable=False),
        sa.Column("registered_at_millis", sa.BigInteger, nullable=False),
    )
    op.create_index("ix_bindings_platform_user_id", "bindings", ["platform_user_id"], unique=True)
    op.create_index("ix_bindings_game_account_name", "bindings", ["game_account_name"], unique=True)


def downgrade():
    op.drop_index("ix_bindings_game_account_name", table_name="bindings")
    op.drop_index("ix_bindings_platform_user_id", table_name="bindings")
    op.drop_table("bindings")
