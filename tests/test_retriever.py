"""Tests for HistoryRetriever."""

from datetime import datetime, timedelta, timezone

from src.aggregator import ContentUnit
from src.atproto_client import FeedPage
from src.retriever import HistoryRetriever

NOW = datetime(2026, 6, 1, tzinfo=timezone.utc)
DID = "did:plc:subject"


def post(number: int, age: timedelta, is_repost: bool = False) -> ContentUnit:
    return ContentUnit(
        uri=f"at://{DID}/app.bsky.feed.post/{number}",
        text=f"post {number}",
        created_at=NOW - age,
        is_repost=is_repost,
    )


class ListSource:
    """Serves a fixed list of units as cursor-paged author feed."""

    def __init__(self, units: list[ContentUnit], fail_on_call: int | None = None):
        self.units = units
        self.fail_on_call = fail_on_call
        self.calls = 0

    def get_author_feed(self, actor: str, limit: int, cursor: str | None = None) -> FeedPage:
        self.calls += 1
        if self.fail_on_call == self.calls:
            raise ConnectionError("upstream timeout")
        start = int(cursor or 0)
        end = start + limit
        return FeedPage(self.units[start:end], str(end) if end < len(self.units) else None)


class TestHistoryRetriever:
    """Test count, age and end-of-feed bounds."""

    def test_stops_at_age_bound_mid_page(self):
        """Test post 50 being two years old cuts the history at post 49."""
        units = [post(n, timedelta(days=n)) for n in range(1, 50)]
        units += [post(n, timedelta(days=730 + n)) for n in range(50, 101)]
        source = ListSource(units)
        retriever = HistoryRetriever(source, max_units=1000, page_size=20)

        result = retriever.retrieve(DID, now=NOW)

        assert [unit.uri for unit in result] == [unit.uri for unit in units[:49]]
        # Page 3 holds posts 41-60 and crosses the bound, later pages are never fetched
        assert source.calls == 3

    def test_stops_at_max_units(self):
        """Test the result is truncated to max_units."""
        source = ListSource([post(n, timedelta(hours=n)) for n in range(1, 300)])
        retriever = HistoryRetriever(source, max_units=150, page_size=100)

        result = retriever.retrieve(DID, now=NOW)

        assert len(result) == 150
        assert result[-1].uri.endswith("/150")
        assert source.calls == 2

    def test_stops_when_feed_runs_out(self):
        """Test a short feed is returned whole."""
        source = ListSource([post(n, timedelta(hours=n)) for n in range(1, 31)])
        retriever = HistoryRetriever(source, max_units=100, page_size=10)

        result = retriever.retrieve(DID, now=NOW)

        assert len(result) == 30
        assert source.calls == 3

    def test_excludes_reposts(self):
        """Test reposted items never make it into the result."""
        units = [
            post(1, timedelta(hours=1)),
            post(2, timedelta(hours=2), is_repost=True),
            post(3, timedelta(hours=3)),
        ]
        retriever = HistoryRetriever(ListSource(units), max_units=100, page_size=100)

        result = retriever.retrieve(DID, now=NOW)

        assert [unit.uri.rsplit("/", 1)[-1] for unit in result] == ["1", "3"]

    def test_fetch_failure_returns_partial_results(self):
        """Test a failing page keeps what was already collected."""
        source = ListSource([post(n, timedelta(hours=n)) for n in range(1, 60)], fail_on_call=2)
        retriever = HistoryRetriever(source, max_units=100, page_size=20)

        result = retriever.retrieve(DID, now=NOW)

        assert len(result) == 20
        assert source.calls == 2

    def test_failure_on_first_page_returns_empty(self):
        """Test a failing first page yields no posts rather than an error."""
        retriever = HistoryRetriever(ListSource([], fail_on_call=1))

        assert retriever.retrieve(DID, now=NOW) == []

    def test_empty_feed(self):
        """Test an account with no posts."""
        source = ListSource([])
        retriever = HistoryRetriever(source)

        assert retriever.retrieve(DID, now=NOW) == []
        assert source.calls == 1

    def test_old_post_mid_page_is_kept(self):
        """Test only the oldest post of a page decides whether the age bound was crossed."""
        units = [
            post(0, timedelta(days=400)),
            post(1, timedelta(days=2)),
            post(2, timedelta(days=3)),
        ]
        retriever = HistoryRetriever(ListSource(units), page_size=10)

        result = retriever.retrieve(DID, now=NOW)

        assert [unit.uri for unit in result] == [unit.uri for unit in units]
