from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "posts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("post_type", sa.String(length=16), nullable=False, server_default="media"),
        sa.Column("author_id", sa.BigInteger(), nullable=False),
        sa.Column("author_type", sa.String(length=16), nullable=False),
        sa.Column("caption", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="active"),
        sa.Column("media_urls", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("tagged_entities", postgresql.JSONB(), nullable=True),
        sa.Column("type_data", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("closed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("closure_type", sa.String(length=16), nullable=True),
        sa.Column("extension_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("original_end_time", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("extended_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("linked_challenge_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("posts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "post_type IN ('media','poll','prompt','qna','challenge','opportunity')", name="ck_posts_post_type"
        ),
        sa.CheckConstraint("closure_type IS NULL OR closure_type IN ('manual','automatic')", name="ck_posts_closure_type"),
    )
    op.create_index("ix_posts_post_type", "posts", ["post_type"])
    op.create_index("ix_posts_author_id", "posts", ["author_id"])
    op.create_index("ix_posts_linked_challenge_id", "posts", ["linked_challenge_id"])

    op.create_table(
        "card_extensions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("card_type", sa.String(length=16), nullable=False),
        sa.Column("card_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("original_end_time", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("new_end_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("extended_by_id", sa.BigInteger(), nullable=False),
        sa.Column("extended_by_type", sa.String(length=16), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_card_extensions_card_id", "card_extensions", ["card_id"])

    op.create_table(
        "poll_votes",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("post_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("voter_id", sa.BigInteger(), nullable=False),
        sa.Column("voter_type", sa.String(length=16), nullable=False),
        sa.Column("option_index", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("option_index >= 0", name="ck_poll_votes_option_index"),
    )
    op.create_index("ix_poll_votes_post_id", "poll_votes", ["post_id"])
    op.create_unique_constraint(
        "uq_poll_vote_per_option", "poll_votes", ["post_id", "voter_id", "voter_type", "option_index"]
    )

def downgrade() -> None:
    op.drop_constraint("uq_poll_vote_per_option", "poll_votes", type_="unique")
    op.drop_index("ix_poll_votes_post_id", table_name="poll_votes")
    op.drop_table("poll_votes")
    op.drop_index("ix_card_extensions_card_id", table_name="card_extensions")
    op.drop_table("card_extensions")
    op.drop_index("ix_posts_linked_challenge_id", table_name="posts")
    op.drop_index("ix_posts_author_id", table_name="posts")
    op.drop_index("ix_posts_post_type", table_name="posts")
    op.drop_table("posts")
