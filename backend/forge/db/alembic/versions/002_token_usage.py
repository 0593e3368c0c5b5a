"""Token usage

Revision ID: 002
Revises: 001
Create Date: 2026-10-16

Creates:
- token_usage (one row per tracked AI call)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the token_usage table."""
    op.create_table(
        "token_usage",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("operation", sa.Text(), nullable=False),
        sa.Column("model", sa.Text(), nullable=False),
        sa.Column("input_tokens", sa.Integer(), nullable=False),
        sa.Column("output_tokens", sa.Integer(), nullable=False),
        sa.Column("total_tokens", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "input_tokens >= 0 AND output_tokens >= 0 AND total_tokens >= 0",
            name="ck_token_usage_non_negative",
        ),
    )
    op.create_index("idx_token_usage_user", "token_usage", ["user_id", "created_at"])


def downgrade() -> None:
    """Drop the token_usage table."""
    op.drop_index("idx_token_usage_user", table_name="token_usage")
    op.drop_table("token_usage")
