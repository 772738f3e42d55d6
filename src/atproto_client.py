"""ATproto client wrapper for Bluesky interactions."""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from atproto import Client, models

from .aggregator import ContentUnit
from .config import BlueskyConfig

logger = logging.getLogger(__name__)

PROFILE_COLLECTION = "app.bsky.actor.profile"

# Handles in outgoing text, e.g. "@alice.bsky.social"
HANDLE_PATTERN = re.compile(r"@([a-zA-Z0-9.-]+[a-zA-Z0-9])")


def parse_timestamp(value: str) -> datetime:
    """Parse an ATproto ISO timestamp into an aware datetime."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class PostRef:
    """Strong reference to a post."""

    uri: str
    cid: str


@dataclass
class Profile:
    """Minimal actor profile."""

    did: str
    handle: str


@dataclass
class FeedPage:
    """One page of an author feed."""

    units: list[ContentUnit]
    cursor: str | None = None


@dataclass
class MentionNotification:
    """Fields shared by every mention notification."""

    uri: str
    cid: str
    author_did: str
    author_handle: str
    text: str
    indexed_at: datetime


@dataclass
class DirectMention(MentionNotification):
    """The bot was tagged in a top-level post; the author is the subject."""


@dataclass
class ReplyMention(MentionNotification):
    """The bot was tagged in a reply; the parent post's author is the subject."""

    parent_uri: str | None = None
    root_uri: str | None = None
    root_cid: str | None = None


class ATProtoClient:
    """Wrapper around the ATproto client for bot operations."""

    def __init__(self, config: BlueskyConfig) -> None:
        self.config = config
        self.client = Client(base_url=config.service_url)
        self._logged_in = False

    def login(self) -> None:
        """Authenticate with Bluesky."""
        if self._logged_in:
            return

        logger.info("Logging in as %s", self.config.handle)
        self.client.login(
            self.config.handle,
            self.config.app_password.get_secret_value(),
        )
        self._logged_in = True
        logger.info("Successfully logged in")

    def get_unread_mentions(self) -> list[MentionNotification]:
        """Fetch all unread mention notifications.

        Notifications come back newest first, so paging stops at the first
        one that is already read.

        Returns:
            DirectMention or ReplyMention objects, newest first.
        """
        self.login()

        mentions: list[MentionNotification] = []
        cursor = None
        reached_read = False

        while not reached_read:
            response = self.client.app.bsky.notification.list_notifications(
                params={"limit": 100, "cursor": cursor}
            )

            for notif in response.notifications:
                if notif.is_read:
                    reached_read = True
                    break
                if notif.reason != "mention":
                    continue

                common = dict(
                    uri=notif.uri,
                    cid=notif.cid,
                    author_did=notif.author.did,
                    author_handle=notif.author.handle,
                    text=getattr(notif.record, "text", "") or "",
                    indexed_at=parse_timestamp(notif.indexed_at),
                )

                reply = getattr(notif.record, "reply", None)
                if reply:
                    parent = getattr(reply, "parent", None)
                    root = getattr(reply, "root", None)
                    mentions.append(
                        ReplyMention(
                            **common,
                            parent_uri=parent.uri if parent else None,
                            root_uri=root.uri if root else None,
                            root_cid=root.cid if root else None,
                        )
                    )
                else:
                    mentions.append(DirectMention(**common))

            cursor = response.cursor
            if not cursor:
                break

        logger.debug("Fetched %d unread mention(s)", len(mentions))
        return mentions

    def mark_notifications_read(self, seen_at: datetime | None = None) -> None:
        """Mark notifications as read up to ``seen_at`` (defaults to now)."""
        self.login()
        seen_at = seen_at or datetime.now(timezone.utc)
        self.client.app.bsky.notification.update_seen(data={"seen_at": seen_at.isoformat()})
        logger.info("Marked notifications as read up to %s", seen_at.isoformat())

    def get_profile(self, actor: str) -> Profile:
        """Look up a profile by handle or DID."""
        self.login()
        response = self.client.get_profile(actor=actor)
        return Profile(did=response.did, handle=response.handle)

    def get_author_feed(self, actor: str, limit: int, cursor: str | None = None) -> FeedPage:
        """Fetch one page of an author's feed, newest first.

        Reposts are returned flagged with ``is_repost`` so the caller decides
        whether to keep them.
        """
        self.login()

        response = self.client.get_author_feed(actor=actor, limit=limit, cursor=cursor)

        units = []
        for item in response.feed:
            post = item.post
            created = getattr(post.record, "created_at", None) or post.indexed_at
            try:
                created_at = parse_timestamp(created)
            except ValueError:
                created_at = parse_timestamp(post.indexed_at)

            units.append(
                ContentUnit(
                    uri=post.uri,
                    text=getattr(post.record, "text", "") or "",
                    created_at=created_at,
                    is_repost=item.reason is not None,
                )
            )

        return FeedPage(units=units, cursor=response.cursor)

    def get_post(self, uri: str) -> PostRef | None:
        """Fetch a single post by URI.

        Args:
            uri: The AT URI of the post.

        Returns:
            PostRef, or None when the post no longer exists.
        """
        self.login()

        response = self.client.app.bsky.feed.get_posts(params={"uris": [uri]})
        if not response.posts:
            return None

        post = response.posts[0]
        return PostRef(uri=post.uri, cid=post.cid)

    def _build_mention_facets(self, text: str) -> list:
        """Turn @handles in text into mention facets with resolved DIDs."""
        facets = []
        for match in HANDLE_PATTERN.finditer(text):
            handle = match.group(1)
            try:
                resolved = self.client.com.atproto.identity.resolve_handle(
                    params={"handle": handle}
                )
            except Exception as e:
                logger.warning("Could not resolve handle %s: %s", handle, e)
                continue

            # Facet indices are UTF-8 byte offsets
            byte_start = len(text[: match.start()].encode("utf-8"))
            byte_end = len(text[: match.end()].encode("utf-8"))
            facets.append(
                models.AppBskyRichtextFacet.Main(
                    index=models.AppBskyRichtextFacet.ByteSlice(
                        byte_start=byte_start, byte_end=byte_end
                    ),
                    features=[models.AppBskyRichtextFacet.Mention(did=resolved.did)],
                )
            )
        return facets

    def reply_to_post(self, text: str, target: PostRef, root: PostRef | None = None) -> PostRef:
        """Post a reply.

        Args:
            text: The reply text.
            target: Post being replied to.
            root: Thread root (defaults to target).

        Returns:
            Reference to the created post.
        """
        self.login()

        root = root or target
        reply_ref = models.AppBskyFeedPost.ReplyRef(
            root=models.ComAtprotoRepoStrongRef.Main(uri=root.uri, cid=root.cid),
            parent=models.ComAtprotoRepoStrongRef.Main(uri=target.uri, cid=target.cid),
        )

        facets = self._build_mention_facets(text)
        response = self.client.send_post(text=text, reply_to=reply_ref, facets=facets or None)
        logger.info("Posted reply: %s", response.uri)
        return PostRef(uri=response.uri, cid=response.cid)

    def update_profile_description(self, description: str) -> None:
        """Replace the bot's profile description, keeping other profile fields."""
        self.login()

        repo = self.client.me.did
        current = self.client.com.atproto.repo.get_record(
            params={"repo": repo, "collection": PROFILE_COLLECTION, "rkey": "self"}
        )
        record = current.value
        record.description = description

        self.client.com.atproto.repo.put_record(
            data={
                "repo": repo,
                "collection": PROFILE_COLLECTION,
                "rkey": "self",
                "record": record,
                "swap_record": current.cid,
            }
        )
        logger.info("Updated profile description")
