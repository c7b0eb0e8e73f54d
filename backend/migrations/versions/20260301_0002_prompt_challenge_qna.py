from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20260301_0002"
down_revision = "20260301_0001"
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)

def _created_at():
    return sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False)

def upgrade() -> None:
    op.create_table(
        "prompt_submissions",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("post_id", UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.BigInteger(), nullable=False),
        sa.Column("author_type", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("media_urls", postgresql.JSONB(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("moderated_by", sa.BigInteger(), nullable=True),
        sa.Column("moderated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint("status IN ('pending','approved','featured','rejected')", name="ck_prompt_submissions_status"),
    )
    op.create_index("ix_prompt_submissions_post_id", "prompt_submissions", ["post_id"])

    op.create_table(
        "challenge_participations",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("post_id", UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("participant_id", sa.BigInteger(), nullable=False),
        sa.Column("participant_type", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="joined"),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_highlighted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("completed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint("progress BETWEEN 0 AND 100", name="ck_challenge_participations_progress"),
        sa.CheckConstraint("status IN ('joined','in_progress','completed')", name="ck_challenge_participations_status"),
    )
    op.create_index("ix_challenge_participations_post_id", "challenge_participations", ["post_id"])
    op.create_unique_constraint(
        "uq_challenge_participation", "challenge_participations", ["post_id", "participant_id", "participant_type"]
    )

    op.create_table(
        "challenge_submissions",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("post_id", UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("participation_id", UUID, sa.ForeignKey("challenge_participations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("submission_type", sa.String(length=16), nullable=False, server_default="text"),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("media_urls", postgresql.JSONB(), nullable=True),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("video_thumbnail", sa.Text(), nullable=True),
        sa.Column("is_featured", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("moderated_by", sa.BigInteger(), nullable=True),
        sa.Column("moderated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.CheckConstraint("like_count >= 0", name="ck_challenge_submissions_like_count"),
    )
    op.create_index("ix_challenge_submissions_post_id", "challenge_submissions", ["post_id"])
    op.create_index("ix_challenge_submissions_participation_id", "challenge_submissions", ["participation_id"])

    op.create_table(
        "challenge_submission_sources",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("submission_id", UUID, sa.ForeignKey("challenge_submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("source_post_id", UUID, sa.ForeignKey("posts.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_from_tagged_post", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created_at(),
    )
    op.create_index("ix_challenge_submission_sources_submission_id", "challenge_submission_sources", ["submission_id"])
    op.create_index("ix_challenge_submission_sources_source_post_id", "challenge_submission_sources", ["source_post_id"])

    op.create_table(
        "challenge_submission_likes",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("submission_id", UUID, sa.ForeignKey("challenge_submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.BigInteger(), nullable=False),
        sa.Column("user_type", sa.String(length=16), nullable=False),
        _created_at(),
    )
    op.create_index("ix_challenge_submission_likes_submission_id", "challenge_submission_likes", ["submission_id"])
    op.create_unique_constraint(
        "uq_submission_like_once", "challenge_submission_likes", ["submission_id", "user_id", "user_type"]
    )

    op.create_table(
        "submission_removal_requests",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("post_id", UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("submission_id", UUID, sa.ForeignKey("challenge_submissions.id", ondelete="SET NULL"), nullable=True),
        sa.Column("requester_id", sa.BigInteger(), nullable=False),
        sa.Column("requester_type", sa.String(length=16), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("reviewed_by", sa.BigInteger(), nullable=True),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_submission_removal_requests_post_id", "submission_removal_requests", ["post_id"])
    op.create_index("ix_submission_removal_requests_submission_id", "submission_removal_requests", ["submission_id"])
    op.create_index("ix_submission_removal_requests_status", "submission_removal_requests", ["status"])

    op.create_table(
        "qna_questions",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("post_id", UUID, sa.ForeignKey("posts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.BigInteger(), nullable=False),
        sa.Column("author_type", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_pinned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_locked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_hidden", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("upvote_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("answered_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("resolved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("resolved_by", sa.BigInteger(), nullable=True),
        sa.Column("best_answer_id", UUID, nullable=True),
        _created_at(),
    )
    op.create_index("ix_qna_questions_post_id", "qna_questions", ["post_id"])

    op.create_table(
        "qna_answers",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("question_id", UUID, sa.ForeignKey("qna_questions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_id", sa.BigInteger(), nullable=False),
        sa.Column("author_type", sa.String(length=16), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("is_best_answer", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
    )
    op.create_index("ix_qna_answers_question_id", "qna_answers", ["question_id"])
    # at most one best answer per question
    op.create_index(
        "uq_qna_one_best_answer", "qna_answers", ["question_id"],
        unique=True, postgresql_where=sa.text("is_best_answer")
    )

    op.create_table(
        "qna_question_upvotes",
        sa.Column("id", UUID, primary_key=True, nullable=False),
        sa.Column("question_id", UUID, sa.ForeignKey("qna_questions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("voter_id", sa.BigInteger(), nullable=False),
        sa.Column("voter_type", sa.String(length=16), nullable=False),
        _created_at(),
    )
    op.create_index("ix_qna_question_upvotes_question_id", "qna_question_upvotes", ["question_id"])
    op.create_unique_constraint("uq_qna_upvote_once", "qna_question_upvotes", ["question_id", "voter_id", "voter_type"])

def downgrade() -> None:
    op.drop_table("qna_question_upvotes")
    op.drop_index("uq_qna_one_best_answer", table_name="qna_answers")
    op.drop_table("qna_answers")
    op.drop_table("qna_questions")
    op.drop_table("submission_removal_requests")
    op.drop_table("challenge_submission_likes")
    op.drop_table("challenge_submission_sources")
    op.drop_table("challenge_submissions")
    op.drop_table("challenge_participations")
    op.drop_table("prompt_submissions")
