"""Main bot logic: ingest mentions, drain the claim queue, reply."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Optional

from .atproto_client import ATProtoClient, MentionNotification, PostRef, ReplyMention
from .config import Config
from .lexicon import LexiconMatcher
from .messages import build_reply, random_whimsical_response
from .orm import Mention, MentionStatus
from .retriever import HistoryRetriever
from .services import AnalysisService, MentionService, ProfileService

logger = logging.getLogger(__name__)


class Bot:
    """Main bot orchestrator with database-backed mention queue."""

    def __init__(self, config: Config, atproto: Optional[ATProtoClient] = None) -> None:
        self.config = config
        self.atproto = atproto or ATProtoClient(config.bluesky)
        self.bot_handle = config.bluesky.handle.lower()

        self.matcher = LexiconMatcher(config.analysis.terms)
        self.retriever = HistoryRetriever(
            self.atproto,
            max_units=config.analysis.max_posts,
            max_age=timedelta(days=config.analysis.max_age_days),
            page_size=config.analysis.page_size,
        )

        # Use database-backed services
        self.mention_service = MentionService()
        self.analysis_service = AnalysisService(
            profiles=self.atproto,
            retriever=self.retriever,
            matcher=self.matcher,
            freshness=timedelta(hours=config.analysis.freshness_hours),
        )
        self.profile_service = ProfileService(self.atproto, self.analysis_service, self.bot_handle)

    def _resolve_subject(self, notification: MentionNotification) -> str:
        """Work out whose posts a notification asks about.

        Direct mentions analyze their author. Replies analyze the author of
        the parent post, falling back to the mention author when the parent
        can't be fetched.
        """
        if not isinstance(notification, ReplyMention):
            return notification.author_handle.lower()

        try:
            parent = self.atproto.get_post(notification.parent_uri)
            if parent is None:
                logger.warning(
                    "Parent post %s is gone, analyzing mention author instead",
                    notification.parent_uri,
                )
                return notification.author_handle.lower()

            # at://<did>/app.bsky.feed.post/<rkey>
            parent_did = parent.uri.split("/")[2]
            return self.atproto.get_profile(parent_did).handle.lower()

        except Exception as e:
            logger.warning(
                "Could not resolve parent author for %s, analyzing mention author: %s",
                notification.uri,
                e,
            )
            return notification.author_handle.lower()

    async def ingest_notification(self, notification: MentionNotification) -> Optional[Mention]:
        """Turn one notification into a queued Mention.

        Returns:
            The new Mention, or None if it was already recorded.
        """
        is_reply = isinstance(notification, ReplyMention)

        if is_reply and not notification.parent_uri:
            logger.warning("Reply mention %s has no parent URI, skipping", notification.uri)
            return await self.mention_service.create_mention(
                subject_handle=notification.author_handle.lower(),
                author_did=notification.author_did,
                author_handle=notification.author_handle,
                post_url=notification.uri,
                is_reply=True,
                status=MentionStatus.DONE,
            )

        return await self.mention_service.create_mention(
            subject_handle=self._resolve_subject(notification),
            author_did=notification.author_did,
            author_handle=notification.author_handle,
            post_url=notification.uri,
            is_reply=is_reply,
            root_uri=notification.root_uri if is_reply else None,
            root_cid=notification.root_cid if is_reply else None,
        )

    async def ingest_mentions(
        self, notifications: list[MentionNotification]
    ) -> list[MentionNotification]:
        """Store notifications in the queue.

        Returns:
            The notifications that are now recorded, including ones recorded
            in an earlier cycle. Notifications that failed to store are left
            out.
        """
        stored = []
        queued = 0
        for notification in notifications:
            try:
                mention = await self.ingest_notification(notification)
            except Exception as e:
                logger.error("Error storing mention %s: %s", notification.uri, e, exc_info=True)
                continue
            stored.append(notification)
            if mention is not None and mention.status == MentionStatus.UNPROCESSED:
                queued += 1

        if queued:
            logger.info("Queued %d new mention(s)", queued)
        return stored

    @staticmethod
    def _seen_at(
        notifications: list[MentionNotification], stored: list[MentionNotification]
    ) -> Optional[datetime]:
        """Latest ``indexed_at`` that can be acknowledged without losing a notification.

        Everything indexed at or after the oldest notification that failed to
        store must stay unread so the next cycle fetches it again.
        """
        stored_uris = {n.uri for n in stored}
        failed = [n.indexed_at for n in notifications if n.uri not in stored_uris]

        candidates = [n.indexed_at for n in stored]
        if failed:
            oldest_failed = min(failed)
            candidates = [indexed_at for indexed_at in candidates if indexed_at < oldest_failed]

        return max(candidates) if candidates else None

    def _reply_to_mention(self, mention: Mention, text: str) -> Optional[PostRef]:
        """Reply under the mention's post.

        Returns:
            The created reply, or None if the mention post no longer exists.
        """
        target = self.atproto.get_post(mention.post_url)
        if target is None:
            logger.warning(
                "Could not find mention post to reply to (likely deleted): %s", mention.post_url
            )
            return None

        root = None
        if mention.root_uri and mention.root_cid:
            root = PostRef(uri=mention.root_uri, cid=mention.root_cid)

        reply = self.atproto.reply_to_post(text=text, target=target, root=root)
        logger.debug("Sent reply to %s: %s", mention.post_url, text[:50])
        return reply

    async def process_mention(self, mention: Mention) -> bool:
        """Analyze and answer a claimed mention.

        On failure the mention stays ANALYZING so a later ``reset_stale``
        puts it back in the queue.

        Returns:
            True if the mention reached DONE.
        """
        logger.info("Processing mention %s for %s", mention.id, mention.subject_handle)

        try:
            analysis_id = None
            if mention.subject_handle == self.bot_handle:
                logger.info("Bot was asked to audit itself, responding with a whimsical message")
                text = random_whimsical_response()
            else:
                analysis = await self.analysis_service.get_or_compute(mention.subject_handle)
                analysis_id = analysis.id
                text = build_reply(
                    mention.subject_handle,
                    analysis.total_count,
                    analysis.unit_count,
                    analysis.ranked_terms(),
                )

            reply = self._reply_to_mention(mention, text)
            reply_uri = reply.uri if reply else None
            completed = await self.mention_service.complete(
                mention.id,
                reply_post_id=reply_uri.rsplit("/", 1)[-1] if reply_uri else None,
                reply_url=reply_uri,
                analysis_id=analysis_id,
            )

            if completed:
                logger.info("Finished mention %s for %s", mention.id, mention.subject_handle)
            return completed

        except Exception as e:
            logger.error("Error processing mention %s: %s", mention.id, e, exc_info=True)
            return False

    async def drain_queue(self) -> int:
        """Claim and process mentions until the queue is empty.

        Returns:
            Number of mentions completed.
        """
        ttl = self.config.bot.stale_claim_minutes
        completed = 0

        while True:
            await self.mention_service.reset_stale(ttl)
            mention = await self.mention_service.claim_next()
            if mention is None:
                break
            if await self.process_mention(mention):
                completed += 1

        logger.debug("No more unprocessed mentions to analyze")
        return completed

    async def run_once(self) -> int:
        """Run a single polling cycle.

        Returns:
            Number of mentions completed.
        """
        logger.debug("Checking for new mentions...")

        try:
            notifications = self.atproto.get_unread_mentions()
            stored: list[MentionNotification] = []
            if notifications:
                logger.info("Found %d unread mention(s)", len(notifications))
                stored = await self.ingest_mentions(notifications)

            pending = await self.mention_service.count_unprocessed()
            if pending:
                logger.info("Found %d unprocessed mention(s) to analyze", pending)

            completed = await self.drain_queue()

            # Acknowledge only once the queue has handled everything it claimed
            seen_at = self._seen_at(notifications, stored)
            if seen_at is not None:
                self.atproto.mark_notifications_read(seen_at)
            elif notifications:
                logger.warning("Leaving notifications unread until failed mentions are stored")

            return completed

        except Exception as e:
            logger.error("Error in polling cycle: %s", e, exc_info=True)
            return 0

    async def run_housekeeping(self) -> None:
        """Soft delete old completed mentions."""
        removed = await self.mention_service.cleanup_old_mentions(
            self.config.bot.cleanup_old_data_days
        )
        if removed:
            logger.info("Cleaned up %d old mention(s)", removed)

    async def run(self) -> None:
        """Run the bot in a continuous polling loop."""
        logger.info("Starting bot for @%s", self.config.bluesky.handle)
        logger.info("Poll interval: %d seconds", self.config.bot.poll_interval)

        # Initial login
        self.atproto.login()
        await self.run_housekeeping()

        try:
            while True:
                await self.run_once()
                await asyncio.sleep(self.config.bot.poll_interval)

        except KeyboardInterrupt:
            logger.info("Received shutdown signal, exiting...")
        except Exception as e:
            logger.error("Unexpected error in main loop: %s", e, exc_info=True)
            raise
