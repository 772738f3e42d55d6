"""Mention model for the mention processing queue."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase


class MentionStatus(str, enum.Enum):
    """Lifecycle of a mention: UNPROCESSED -> ANALYZING -> DONE."""

    UNPROCESSED = "UNPROCESSED"
    ANALYZING = "ANALYZING"
    DONE = "DONE"


class Mention(SqlalchemyBase):
    """An inbound mention that needs a reply."""

    __tablename__ = "mentions"
    __table_args__ = (
        Index("idx_mentions_post_url", "post_url", unique=True),
        Index("idx_mentions_status_created_at", "status", "created_at"),
        Index("idx_mentions_subject_handle", "subject_handle"),
    )

    # Account whose posts get analyzed (author, or parent author for replies)
    subject_handle: Mapped[str] = mapped_column(String, nullable=False)
    author_did: Mapped[str] = mapped_column(String, nullable=False)
    author_handle: Mapped[str] = mapped_column(String, nullable=False)

    # Source post
    post_id: Mapped[str] = mapped_column(String, nullable=False)
    post_url: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    is_reply: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    root_uri: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    root_cid: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    # Processing state
    status: Mapped[MentionStatus] = mapped_column(
        Enum(MentionStatus, native_enum=False, length=16),
        nullable=False,
        default=MentionStatus.UNPROCESSED,
    )
    claimed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Outcome
    reply_post_id: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    reply_url: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    analysis_id: Mapped[Optional[str]] = mapped_column(
        String, ForeignKey("analyses.id", ondelete="SET NULL"), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Mention(id={self.id}, subject={self.subject_handle}, "
            f"status={self.status.value if self.status else None}, post_url={self.post_url})>"
        )
