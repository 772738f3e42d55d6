"""Analysis model for cached per-subject results."""

from datetime import datetime

from sqlalchemy import JSON, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ..aggregator import RankedTerm
from .base import SqlalchemyBase


class Analysis(SqlalchemyBase):
    """Flagged term counts for one subject, recomputed once stale."""

    __tablename__ = "analyses"
    __table_args__ = (
        Index("idx_analyses_subject_handle", "subject_handle", unique=True),
        Index("idx_analyses_last_computed_at", "last_computed_at"),
    )

    subject_handle: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    term_counts: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    # [{"term": ..., "count": ...}] in rank order
    top_terms: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    unit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def ranked_terms(self) -> list[RankedTerm]:
        """Top terms as RankedTerm objects."""
        return [
            RankedTerm(term=entry["term"], count=entry["count"], rank=index + 1)
            for index, entry in enumerate(self.top_terms or [])
        ]

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Analysis(id={self.id}, subject={self.subject_handle}, "
            f"total_count={self.total_count}, unit_count={self.unit_count})>"
        )
