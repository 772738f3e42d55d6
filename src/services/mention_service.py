"""Service for the mention processing queue."""

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import aliased

from ..orm.base import utc_now
from ..orm.mention import Mention, MentionStatus
from .database import get_db_service

logger = logging.getLogger(__name__)


class MentionService:
    """Claim-based queue over Mention rows.

    Every mention moves UNPROCESSED -> ANALYZING -> DONE. Claiming is a single
    conditional UPDATE, so two workers can never both own the same mention.
    A worker that dies while holding a claim leaves the row ANALYZING until
    ``reset_stale`` hands it back to the queue.
    """

    async def create_mention(
        self,
        subject_handle: str,
        author_did: str,
        author_handle: str,
        post_url: str,
        is_reply: bool,
        root_uri: Optional[str] = None,
        root_cid: Optional[str] = None,
        status: MentionStatus = MentionStatus.UNPROCESSED,
    ) -> Optional[Mention]:
        """Record a mention from a notification.

        Returns:
            The new Mention, or None if this post was already recorded.
        """
        db = get_db_service()
        try:
            async with db.session() as session:
                existing = await session.execute(
                    select(Mention.id).where(Mention.post_url == post_url)
                )
                if existing.scalar_one_or_none() is not None:
                    logger.debug("Mention already recorded: %s", post_url)
                    return None

                mention = Mention(
                    subject_handle=subject_handle,
                    author_did=author_did,
                    author_handle=author_handle,
                    post_id=post_url.rsplit("/", 1)[-1],
                    post_url=post_url,
                    is_reply=is_reply,
                    root_uri=root_uri,
                    root_cid=root_cid,
                    status=status,
                    claimed_at=None,
                    reply_post_id=None,
                    reply_url=None,
                    analysis_id=None,
                )
                session.add(mention)
                await session.flush()
        except IntegrityError:
            # Another ingester inserted the same post between our check and insert
            logger.debug("Mention recorded concurrently: %s", post_url)
            return None

        return mention

    async def claim_next(self) -> Optional[Mention]:
        """Atomically claim the oldest UNPROCESSED mention.

        Returns:
            The claimed mention (now ANALYZING), or None when nothing is
            claimable or another worker won the race.
        """
        db = get_db_service()
        candidate = aliased(Mention)
        oldest_unprocessed = (
            select(candidate.id)
            .where(
                candidate.status == MentionStatus.UNPROCESSED,
                candidate.is_deleted == False,  # noqa: E712
            )
            .order_by(candidate.created_at, candidate.id)
            .limit(1)
            .scalar_subquery()
        )

        async with db.session() as session:
            result = await session.execute(
                update(Mention)
                .where(
                    Mention.id == oldest_unprocessed,
                    Mention.status == MentionStatus.UNPROCESSED,
                )
                .values(status=MentionStatus.ANALYZING, claimed_at=utc_now())
                .returning(Mention.id)
                .execution_options(synchronize_session=False)
            )
            mention_id = result.scalar_one_or_none()
            if mention_id is None:
                return None

            return await session.get(Mention, mention_id)

    async def reset_stale(self, ttl_minutes: int) -> int:
        """Return ANALYZING mentions claimed more than ``ttl_minutes`` ago to the queue.

        Returns:
            Number of mentions reset.
        """
        db = get_db_service()
        cutoff = utc_now() - timedelta(minutes=ttl_minutes)

        async with db.session() as session:
            result = await session.execute(
                update(Mention)
                .where(
                    Mention.status == MentionStatus.ANALYZING,
                    or_(Mention.claimed_at < cutoff, Mention.claimed_at.is_(None)),
                )
                .values(status=MentionStatus.UNPROCESSED, claimed_at=None)
                .execution_options(synchronize_session=False)
            )
            reset = result.rowcount or 0

        if reset:
            logger.warning("Reset %d stale claim(s) older than %d minutes", reset, ttl_minutes)
        return reset

    async def complete(
        self,
        mention_id: str,
        reply_post_id: Optional[str] = None,
        reply_url: Optional[str] = None,
        analysis_id: Optional[str] = None,
    ) -> bool:
        """Mark a claimed mention as DONE with whatever outcome is available.

        Returns:
            False if the mention was not ANALYZING (e.g. its claim was reset
            and picked up elsewhere).
        """
        db = get_db_service()
        async with db.session() as session:
            result = await session.execute(
                update(Mention)
                .where(Mention.id == mention_id, Mention.status == MentionStatus.ANALYZING)
                .values(
                    status=MentionStatus.DONE,
                    reply_post_id=reply_post_id or None,
                    reply_url=reply_url or None,
                    analysis_id=analysis_id,
                )
                .execution_options(synchronize_session=False)
            )
            completed = result.rowcount == 1

        if not completed:
            logger.warning("Mention %s was not ANALYZING, completion ignored", mention_id)
        return completed

    async def get_mention(self, mention_id: str) -> Optional[Mention]:
        """Fetch a mention by ID."""
        db = get_db_service()
        async with db.session() as session:
            return await session.get(Mention, mention_id)

    async def count_unprocessed(self) -> int:
        """Count mentions waiting to be claimed."""
        db = get_db_service()
        async with db.session() as session:
            result = await session.execute(
                select(func.count(Mention.id)).where(
                    Mention.status == MentionStatus.UNPROCESSED,
                    Mention.is_deleted == False,  # noqa: E712
                )
            )
            return result.scalar_one()

    async def cleanup_old_mentions(self, days: int = 30) -> int:
        """Soft delete DONE mentions older than N days."""
        db = get_db_service()
        cutoff = utc_now() - timedelta(days=days)

        async with db.session() as session:
            result = await session.execute(
                select(Mention).where(
                    Mention.status == MentionStatus.DONE,
                    Mention.created_at < cutoff,
                    Mention.is_deleted == False,  # noqa: E712
                )
            )
            old_mentions = result.scalars().all()
            for mention in old_mentions:
                mention.is_deleted = True
            await session.commit()

        return len(old_mentions)
