"""Bounded retrieval of a subject's post history."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Protocol

from .aggregator import ContentUnit
from .atproto_client import FeedPage

logger = logging.getLogger(__name__)


class ContentSource(Protocol):
    """Anything that serves author feed pages (ATProtoClient in production)."""

    def get_author_feed(self, actor: str, limit: int, cursor: str | None = None) -> FeedPage: ...


class HistoryRetriever:
    """Page through an author feed until a count, age or end-of-feed bound is hit."""

    def __init__(
        self,
        source: ContentSource,
        max_units: int = 100,
        max_age: timedelta = timedelta(days=365),
        page_size: int = 100,
    ):
        self.source = source
        self.max_units = max_units
        self.max_age = max_age
        self.page_size = page_size

    def retrieve(self, actor: str, now: datetime | None = None) -> list[ContentUnit]:
        """
        Collect original (non-repost) posts for an actor, newest first.

        Stops when ``max_units`` posts are collected, when a page reaches
        posts older than ``max_age`` (that page is trimmed to the posts still
        inside the window), or when the feed runs out. A failed page fetch
        ends retrieval early and whatever was collected so far is returned.

        Feeds are assumed newest first: only the oldest post of each page is
        checked against the age bound, so an old post in the middle of a page
        (a pinned post, say) is kept when the page ends inside the window.

        Args:
            actor: DID or handle of the subject.
            now: Reference time for the age bound (defaults to current UTC time).

        Returns:
            Collected content units, possibly empty.
        """
        cutoff = (now or datetime.now(timezone.utc)) - self.max_age
        units: list[ContentUnit] = []
        cursor = None
        page_number = 0

        logger.info(
            "Getting posts for %s (up to %d posts newer than %s)",
            actor,
            self.max_units,
            cutoff.isoformat(),
        )

        while len(units) < self.max_units:
            page_number += 1
            try:
                page = self.source.get_author_feed(actor, limit=self.page_size, cursor=cursor)
            except Exception as e:
                logger.warning(
                    "Error fetching page #%d for %s, keeping %d posts: %s",
                    page_number,
                    actor,
                    len(units),
                    e,
                )
                break

            if not page.units:
                logger.debug("No more posts after %d total", len(units))
                break

            originals = [unit for unit in page.units if not unit.is_repost]

            # Pages are newest first, so the last post is the oldest one
            if originals and originals[-1].created_at < cutoff:
                in_window = [unit for unit in originals if unit.created_at >= cutoff]
                units.extend(in_window)
                logger.info(
                    "Page #%d crossed the age limit, added %d posts within the window",
                    page_number,
                    len(in_window),
                )
                break

            units.extend(originals)
            logger.debug("Page #%d added %d posts (total: %d)", page_number, len(originals), len(units))

            if not page.cursor:
                logger.debug("No more pages after %d total posts", len(units))
                break
            cursor = page.cursor

        if len(units) >= self.max_units:
            logger.info("Reached maximum post limit (%d)", self.max_units)
            units = units[: self.max_units]

        logger.info("Found %d posts for %s", len(units), actor)
        return units
