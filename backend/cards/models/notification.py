from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, BigInteger, DateTime, Text, func
from sqlalchemy.dialects.postgresql import UUID, JSONB
from cards.db import Base, utcnow

class NotificationOutbox(Base):
    """
    Notifications written in the same transaction as the change that caused them.
    Delivery happens after commit; a failed delivery only ever touches this row.
      - pending  => not yet handed to the gateway
      - sent     => gateway accepted it
      - failed   => gateway/queue error, see last_error (retryable)
      - skipped  => delivery disabled or gateway not configured
    """
    __tablename__ = "notification_outbox"
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    recipient_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    recipient_type: Mapped[str] = mapped_column(String(16), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text(), nullable=False)
    data: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending", index=True)
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text(), nullable=True)
    sent_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
