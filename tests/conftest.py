"""Shared fixtures for bot tests."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from src.aggregator import ContentUnit
from src.atproto_client import FeedPage, PostRef, Profile
from src.config import AnalysisConfig, BlueskyConfig, BotConfig, Config
from src.orm import Mention
from src.services import get_db_service, init_db_service

BOT_HANDLE = "profanity.accountant"


class FakeBlueskyClient:
    """In-memory stand-in for ATProtoClient."""

    def __init__(self):
        self.notifications = []
        self.profiles: dict[str, Profile] = {}
        self.feeds: dict[str, list[ContentUnit]] = {}
        self.posts: dict[str, PostRef] = {}
        self.feed_calls: list[tuple[str, int, str | None]] = []
        self.replies: list[tuple[str, PostRef, PostRef | None]] = []
        self.seen_at = None
        self.descriptions: list[str] = []

    def login(self) -> None:
        pass

    def add_user(self, handle: str, did: str, texts: list[str] = (), now: datetime | None = None):
        """Register a user whose feed holds ``texts``, newest first, one hour apart."""
        now = now or datetime.now(timezone.utc)
        profile = Profile(did=did, handle=handle)
        self.profiles[handle] = profile
        self.profiles[did] = profile
        self.feeds[did] = [
            ContentUnit(
                uri=f"at://{did}/app.bsky.feed.post/{index}",
                text=text,
                created_at=now - timedelta(hours=index + 1),
            )
            for index, text in enumerate(texts)
        ]

    def add_post(self, uri: str, cid: str = "cid") -> PostRef:
        post = PostRef(uri=uri, cid=cid)
        self.posts[uri] = post
        return post

    def get_unread_mentions(self):
        return list(self.notifications)

    def mark_notifications_read(self, seen_at=None):
        self.seen_at = seen_at

    def get_profile(self, actor: str) -> Profile:
        if actor not in self.profiles:
            raise RuntimeError(f"Profile not found: {actor}")
        return self.profiles[actor]

    def get_author_feed(self, actor: str, limit: int, cursor: str | None = None) -> FeedPage:
        self.feed_calls.append((actor, limit, cursor))
        feed = self.feeds.get(actor, [])
        start = int(cursor or 0)
        end = start + limit
        return FeedPage(units=feed[start:end], cursor=str(end) if end < len(feed) else None)

    def get_post(self, uri: str) -> PostRef | None:
        return self.posts.get(uri)

    def reply_to_post(self, text: str, target: PostRef, root: PostRef | None = None) -> PostRef:
        self.replies.append((text, target, root))
        return PostRef(
            uri=f"at://did:plc:bot/app.bsky.feed.post/reply{len(self.replies)}",
            cid=f"replycid{len(self.replies)}",
        )

    def update_profile_description(self, description: str) -> None:
        self.descriptions.append(description)


@pytest.fixture
def fake_client():
    return FakeBlueskyClient()


@pytest.fixture
def config():
    return Config(
        bluesky=BlueskyConfig(handle=BOT_HANDLE, app_password="app-password"),
        analysis=AnalysisConfig(terms=["damn", "hell", "shit"]),
        bot=BotConfig(),
    )


@pytest.fixture
def run_db(tmp_path):
    """Run an async scenario against a fresh SQLite database.

    Everything runs inside one event loop, since the engine's connections are
    bound to the loop that opened them.
    """

    def runner(scenario):
        async def wrapped():
            await init_db_service(tmp_path / "bot.db")
            try:
                return await scenario()
            finally:
                await get_db_service().close()

        return asyncio.run(wrapped())

    return runner


async def fetch_mention(post_url: str) -> Mention | None:
    """Load a mention by its source post URL."""
    async with get_db_service().session() as session:
        result = await session.execute(select(Mention).where(Mention.post_url == post_url))
        return result.scalar_one_or_none()
