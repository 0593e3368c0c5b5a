"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-16

Creates:
- document
- diagram (unique per document chunk)
- moderation_log
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all tables."""
    # document table
    op.create_table(
        "document",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("source_type", sa.Text(), nullable=False, server_default="text"),
        sa.Column("path", sa.Text(), nullable=True),
        sa.Column("raw_text", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="uploaded"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('uploaded', 'processing', 'ready', 'error')", name="ck_document_status"
        ),
        sa.CheckConstraint(
            "source_type IN ('pdf', 'markdown', 'text')", name="ck_document_source_type"
        ),
    )
    op.create_index("idx_document_user", "document", ["user_id", "created_at"])

    # diagram table
    op.create_table(
        "diagram",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("document_id", sa.Uuid(), sa.ForeignKey("document.id"), nullable=True),
        sa.Column("chunk_index", sa.Integer(), nullable=True),
        sa.Column("user_id", sa.Uuid(), nullable=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.Text(), nullable=False),
        sa.Column("tags", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("diagram_source", sa.Text(), nullable=False),
        sa.Column("format", sa.Text(), nullable=False, server_default="mermaid"),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("notes_md", sa.Text(), nullable=True),
        sa.Column("visibility", sa.Text(), nullable=False, server_default="unlisted"),
        sa.Column("moderation_status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("moderation_reason", sa.Text(), nullable=True),
        sa.Column("moderated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.UniqueConstraint("document_id", "chunk_index", name="uq_diagram_document_chunk"),
        sa.CheckConstraint(
            "visibility IN ('private', 'unlisted', 'public')", name="ck_diagram_visibility"
        ),
        sa.CheckConstraint(
            "moderation_status IN ('pending', 'approved', 'rejected', 'manual_review')",
            name="ck_diagram_moderation_status",
        ),
    )
    op.create_index("idx_diagram_moderation", "diagram", ["moderation_status", "visibility"])

    # moderation_log table (append-only)
    op.create_table(
        "moderation_log",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("diagram_id", sa.Uuid(), sa.ForeignKey("diagram.id"), nullable=False),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("previous_status", sa.Text(), nullable=True),
        sa.Column("new_status", sa.Text(), nullable=False),
        sa.Column("ai_confidence", sa.Float(), nullable=True),
        sa.Column("ai_flags", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.Uuid(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("idx_moderation_log_diagram", "moderation_log", ["diagram_id", "created_at"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index("idx_moderation_log_diagram", table_name="moderation_log")
    op.drop_table("moderation_log")
    op.drop_index("idx_diagram_moderation", table_name="diagram")
    op.drop_table("diagram")
    op.drop_index("idx_document_user", table_name="document")
    op.drop_table("document")
