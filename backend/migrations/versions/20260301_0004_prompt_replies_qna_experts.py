from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20260301_0004"
down_revision = "20260301_0003"
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)

def upgrade() -> None:
    op.add_column("prompt_submissions", sa.Column("reply_count", sa.Integer(), nullable=False, server_default="0"))

    op.create_table(
        "prompt_replies",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("submission_id", UUID, sa.ForeignKey("prompt_submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("parent_reply_id", UUID, sa.ForeignKey("prompt_replies.id", ondelete="CASCADE"), nullable=True),
        sa.Column("author_id", sa.BigInteger(), nullable=False),
        sa.Column("author_type", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("reply_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("hidden_by", sa.BigInteger(), nullable=True),
        sa.Column("hidden_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_prompt_replies_submission_id", "prompt_replies", ["submission_id"])
    op.create_index("ix_prompt_replies_parent_reply_id", "prompt_replies", ["parent_reply_id"])

    op.create_table(
        "qna_experts",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("post_id", UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("expert_id", sa.BigInteger(), nullable=False),
        sa.Column("expert_type", sa.String(length=16), nullable=False),
        sa.Column("added_by_id", sa.BigInteger(), nullable=False),
        sa.Column("added_by_type", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_qna_experts_post_id", "qna_experts", ["post_id"])
    op.create_unique_constraint("uq_qna_expert", "qna_experts", ["post_id", "expert_id", "expert_type"])

def downgrade() -> None:
    op.drop_constraint("uq_qna_expert", "qna_experts", type_="unique")
    op.drop_index("ix_qna_experts_post_id", table_name="qna_experts")
    op.drop_table("qna_experts")
    op.drop_index("ix_prompt_replies_parent_reply_id", table_name="prompt_replies")
    op.drop_index("ix_prompt_replies_submission_id", table_name="prompt_replies")
    op.drop_table("prompt_replies")
    op.drop_column("prompt_submissions", "reply_count")
