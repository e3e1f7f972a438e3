"""create users, oauth accounts and movements tables

Revision ID: 3f1a2b4c5d6e
Revises:
Create Date: 2026-10-18 09:12:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "3f1a2b4c5d6e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create users, oauth_accounts and movements tables."""
    # Check if tables already exist (idempotent)
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(255), nullable=False),
            sa.Column("email", sa.String(320), nullable=False, unique=True),
            sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("image", sa.String(1024), nullable=True),
            sa.Column("role", sa.String(16), nullable=False, server_default="ADMIN"),
            sa.Column("phone", sa.String(64), nullable=False, server_default=""),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_users_role", "users", ["role"])
        op.create_index("idx_users_created_at", "users", ["created_at"])

    if "oauth_accounts" not in existing_tables:
        op.create_table(
            "oauth_accounts",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("provider", sa.String(32), nullable=False),
            sa.Column("provider_account_id", sa.String(128), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("provider", "provider_account_id", name="uq_oauth_accounts_provider_account"),
        )

    if "movements" not in existing_tables:
        op.create_table(
            "movements",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("concept", sa.String(255), nullable=False),
            sa.Column("amount", sa.Numeric(14, 2), nullable=False),
            sa.Column("date", sa.Date(), nullable=False),
            sa.Column("type", sa.String(16), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(128), nullable=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.CheckConstraint("amount > 0", name="ck_movements_amount_positive"),
            sa.CheckConstraint("type IN ('INCOME', 'EXPENSE')", name="ck_movements_type"),
        )
        op.create_index("idx_movements_date", "movements", ["date"])
        op.create_index("idx_movements_type", "movements", ["type"])
        op.create_index("idx_movements_user_id", "movements", ["user_id"])


def downgrade() -> None:
    op.drop_index("idx_movements_user_id", table_name="movements")
    op.drop_index("idx_movements_type", table_name="movements")
    op.drop_index("idx_movements_date", table_name="movements")
    op.drop_table("movements")
    op.drop_table("oauth_accounts")
    op.drop_index("idx_users_created_at", table_name="users")
    op.drop_index("idx_users_role", table_name="users")
    op.drop_table("users")
