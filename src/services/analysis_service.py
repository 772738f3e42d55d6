"""Service for cached per-subject analyses."""

import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from ..aggregator import ContentAggregate, aggregate
from ..atproto_client import Profile
from ..lexicon import LexiconMatcher
from ..orm.analysis import Analysis
from ..orm.base import utc_now
from ..retriever import HistoryRetriever
from .database import get_db_service

logger = logging.getLogger(__name__)


class ProfileSource(Protocol):
    """Resolves a handle to a profile (ATProtoClient in production)."""

    def get_profile(self, actor: str) -> Profile: ...


class AnalysisService:
    """Serve analyses from the database, recomputing them once they go stale."""

    def __init__(
        self,
        profiles: ProfileSource,
        retriever: HistoryRetriever,
        matcher: LexiconMatcher,
        freshness: timedelta = timedelta(hours=24),
    ):
        self.profiles = profiles
        self.retriever = retriever
        self.matcher = matcher
        self.freshness = freshness

    async def find_fresh(
        self, subject_handle: str, now: Optional[datetime] = None
    ) -> Optional[Analysis]:
        """Return the stored analysis if it was computed within the freshness window."""
        db = get_db_service()
        cutoff = (now or utc_now()) - self.freshness

        async with db.session() as session:
            result = await session.execute(
                select(Analysis).where(
                    Analysis.subject_handle == subject_handle,
                    Analysis.last_computed_at > cutoff,
                    Analysis.is_deleted == False,  # noqa: E712
                )
            )
            return result.scalar_one_or_none()

    async def upsert(
        self, subject_handle: str, result: ContentAggregate, now: Optional[datetime] = None
    ) -> Analysis:
        """Insert or replace the analysis for a subject."""
        db = get_db_service()
        now = now or utc_now()
        values = {
            "total_count": result.total_count,
            "term_counts": dict(result.term_counts),
            "top_terms": [{"term": item.term, "count": item.count} for item in result.top_ranked],
            "unit_count": result.unit_count,
            "last_computed_at": now,
            "is_deleted": False,
        }

        stmt = sqlite_insert(Analysis).values(
            id=str(uuid4()), subject_handle=subject_handle, created_at=now, updated_at=now, **values
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["subject_handle"],
            set_={**values, "updated_at": now},
        )

        async with db.session() as session:
            await session.execute(stmt)
            stored = await session.execute(
                select(Analysis)
                .where(Analysis.subject_handle == subject_handle)
                .execution_options(populate_existing=True)
            )
            return stored.scalar_one()

    async def get_or_compute(self, subject_handle: str) -> Analysis:
        """
        Get a fresh analysis for a subject, computing it if needed.

        A subject with no retrievable posts still gets a zero-count analysis,
        so it is not re-fetched until that record goes stale.

        Args:
            subject_handle: Handle of the account to analyze.

        Returns:
            The cached or newly stored Analysis.
        """
        cached = await self.find_fresh(subject_handle)
        if cached is not None:
            logger.info("Using cached analysis for %s", subject_handle)
            return cached

        logger.info("No fresh analysis for %s, fetching posts...", subject_handle)
        profile = self.profiles.get_profile(subject_handle)
        units = self.retriever.retrieve(profile.did)

        if not units:
            logger.warning("No posts found for %s", subject_handle)

        result = aggregate(units, self.matcher)
        analysis = await self.upsert(subject_handle, result)

        logger.info(
            "Analysis for %s: %d flagged term(s) across %d post(s)",
            subject_handle,
            result.total_count,
            result.unit_count,
        )
        return analysis

    async def total_flagged_count(self, exclude_handle: Optional[str] = None) -> int:
        """Sum of flagged term counts over every analyzed subject."""
        db = get_db_service()
        query = select(func.coalesce(func.sum(Analysis.total_count), 0)).where(
            Analysis.is_deleted == False  # noqa: E712
        )
        if exclude_handle:
            query = query.where(Analysis.subject_handle != exclude_handle)

        async with db.session() as session:
            result = await session.execute(query)
            return int(result.scalar_one())
