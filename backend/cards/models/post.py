from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, BigInteger, DateTime, ForeignKey, Text, func
from sqlalchemy.dialects.postgresql import UUID, JSONB
from cards.db import Base, utcnow

class Post(Base):
    """A feed post. ``post_type`` picks the card subtype and never changes after insert."""
    __tablename__ = "posts"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    post_type: Mapped[str] = mapped_column(String(16), nullable=False, default="media", index=True)
    author_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    author_type: Mapped[str] = mapped_column(String(16), nullable=False)
    caption: Mapped[str | None] = mapped_column(Text())
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")  # active|draft|hidden|expired
    media_urls: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    video_url: Mapped[str | None] = mapped_column(Text())
    tagged_entities: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    type_data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    # Deadline & closure
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closure_type: Mapped[str | None] = mapped_column(String(16), nullable=True)  # manual|automatic
    extension_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    original_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    extended_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Set on media posts tagged to a challenge
    linked_challenge_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("posts.id", ondelete="SET NULL"), index=True, nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)


class CardExtension(Base):
    """Append-only audit trail of deadline extensions."""
    __tablename__ = "card_extensions"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    card_type: Mapped[str] = mapped_column(String(16), nullable=False)
    card_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("posts.id", ondelete="CASCADE"), index=True, nullable=False)
    original_end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    new_end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    extended_by_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    extended_by_type: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
