"""
End-to-end tests for ParticipatingFeed over the in-memory collaborators.

Reference log (see tests._support.feeds):

    %g1 (1) alice root ── %r1 (2) me reply ── %r3 (6) bob reply
    %p2 (3) bob root   ── %r2 (4) carol reply
    %p3 (5) me root    ── %r4 (7) dave reply
"""

import asyncio

import pytest

from threadfeed.core.cache import RootCache
from threadfeed.core.errors import ConfigError, FetchFailedError, SummaryFailedError
from threadfeed.core.models import BumpKind, Message
from threadfeed.core.protocols import AboutsResolver, BlockRegistry, FeedLog, ThreadReader
from threadfeed.core.settings import FeedSettings
from threadfeed.feeds.participating import ParticipatingFeed
from threadfeed.memory import InMemoryFeedLog, make_about, make_attending, make_post
from tests._support.feeds import ALICE, BOB, CAROL, DAVE, ME, reference_messages


async def _pull(stream, n, timeout=1.0):
    return [await asyncio.wait_for(anext(stream), timeout) for _ in range(n)]


class TrackingLog(InMemoryFeedLog):
    """Log that counts how many opened streams were closed."""

    def __init__(self, messages=()):
        super().__init__(messages)
        self.closed_streams = 0

    def open_feed_stream(self, **options):
        source = super().open_feed_stream(**options)

        async def tracked():
            try:
                async for message in source:
                    yield message
            finally:
                await source.aclose()
                self.closed_streams += 1

        return tracked()


def _keys(items):
    return [item.key for item in items]


class TestFeedConstruction:
    """Test instance wiring."""

    def test_manifest(self):
        """Both operations are declared as sources."""
        assert ParticipatingFeed.MANIFEST == {"latest": "source", "roots": "source"}

    def test_cache_sized_from_settings(self, make_feed, feed_log):
        """The owned cache takes its capacity from settings."""
        feed = make_feed(feed_log, settings=FeedSettings(root_cache_size=7))
        assert feed.cache.max_size == 7

    def test_instances_have_isolated_caches(self, make_feed, feed_log):
        """Separate instances never share a cache."""
        assert make_feed(feed_log).cache is not make_feed(feed_log).cache

    def test_collaborators_satisfy_protocols(self, feed_log, registry, reader, abouts):
        """The in-memory collaborators match the runtime-checkable protocols."""
        assert isinstance(feed_log, FeedLog)
        assert isinstance(registry, BlockRegistry)
        assert isinstance(reader, ThreadReader)
        assert isinstance(abouts, AboutsResolver)

    def test_injected_cache(self, make_feed, feed_log):
        """An explicit cache is used as given."""
        cache = RootCache(max_size=3)
        assert make_feed(feed_log, cache=cache).cache is cache


class TestRoots:
    """Test the paginated roots view."""

    @pytest.mark.asyncio
    async def test_forward(self, feed):
        """Participated roots in log order; bob's thread is excluded."""
        assert _keys(await feed.roots().collect()) == ["%g1", "%p3"]

    @pytest.mark.asyncio
    async def test_reverse(self, feed):
        """Newest activity first."""
        assert _keys(await feed.roots(reverse=True).collect()) == ["%p3", "%g1"]

    @pytest.mark.asyncio
    async def test_items_are_roots_with_summary(self, feed):
        """Items are projected roots carrying the thread summary."""
        first = (await feed.roots().collect())[0]
        assert first.root is None
        assert first.author == ALICE
        assert [m.key for m in first.replies] == ["%r1", "%r3"]
        assert first.reply_count == 2
        assert [(b.author, b.kind) for b in first.bumps] == [
            (BOB, BumpKind.REPLY),
            (ME, BumpKind.REPLY),
            (ALICE, BumpKind.POST),
        ]

    @pytest.mark.asyncio
    async def test_summary_uses_recent_limit(self, make_feed, feed_log):
        """roots_recent_limit caps attached replies."""
        feed = make_feed(feed_log, settings=FeedSettings(roots_recent_limit=1))
        first = (await feed.roots().collect())[0]
        assert [m.key for m in first.replies] == ["%r3"]
        assert first.reply_count == 2

    @pytest.mark.asyncio
    async def test_abouts_attached(self, feed, feed_log):
        """About metadata for the root is resolved onto the item."""
        feed_log.add(make_about("%a1", ALICE, "%g1", title="Picnic"))
        items = await feed.roots().collect()
        assert items[0].message.about == {"title": "Picnic"}
        assert _keys(items) == ["%g1", "%p3"]

    @pytest.mark.asyncio
    async def test_no_duplicate_roots(self, feed):
        """No two items share a root key."""
        keys = [item.root_key for item in await feed.roots().collect()]
        assert len(keys) == len(set(keys))

    @pytest.mark.asyncio
    async def test_one_fetch_per_root(self, feed, feed_log):
        """Each root is fetched once; later streams reuse the shared cache."""
        await feed.roots().collect()
        assert feed_log.fetches == ["%g1", "%p2", "%p3"]
        await feed.roots(reverse=True).collect()
        assert feed_log.fetches == ["%g1", "%p2", "%p3"]

    @pytest.mark.asyncio
    async def test_blocked_root_author_excluded(self, feed, registry):
        """A thread whose root author I block never shows, whoever bumped it."""
        registry.block(ME, ALICE)
        assert _keys(await feed.roots().collect()) == ["%p3"]

    @pytest.mark.asyncio
    async def test_blocked_bumps_do_not_count(self, make_feed, registry):
        """Bumps by authors I block are not participation signals."""
        log = InMemoryFeedLog([
            make_post("%t", BOB),
            make_post("%x1", CAROL, root="%t"),
            make_post("%x2", ME, root="%t"),
        ])
        feed = make_feed(log)
        assert _keys(await feed.roots().collect()) == ["%t"]
        registry.block(BOB, ME)
        assert _keys(await make_feed(log).roots().collect()) == []

    @pytest.mark.asyncio
    async def test_only_started(self, feed):
        """only_started keeps threads I started."""
        items = await feed.roots(only_started=True).collect()
        assert _keys(items) == ["%p3"]

    @pytest.mark.asyncio
    async def test_limit_sets_resume(self, feed, feed_log):
        """The page-filling item carries the raw cursor."""
        page = await feed.roots(limit=1).collect()
        assert _keys(page) == ["%g1"]
        assert page[-1].resume == 1

    @pytest.mark.asyncio
    async def test_resume_bounds_query(self, feed, feed_log):
        """A resume cursor bounds the source query in the read direction."""
        await feed.roots(resume=4).collect()
        await feed.roots(reverse=True, resume=4).collect()
        assert feed_log.open_calls[-2]["gt"] == 4
        assert feed_log.open_calls[-1]["lt"] == 4
        assert all(not c["live"] and c["old"] for c in feed_log.open_calls)

    @pytest.mark.asyncio
    async def test_default_page_limit(self, make_feed, feed_log):
        """Settings supply a page size when none is passed."""
        feed = make_feed(feed_log, settings=FeedSettings(default_page_limit=1))
        page = await feed.roots().collect()
        assert len(page) == 1
        assert page[0].resume is not None

    @pytest.mark.asyncio
    async def test_invalid_limit(self, feed):
        """A zero page size is rejected."""
        with pytest.raises(ConfigError):
            feed.roots(limit=0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reverse", [False, True])
    async def test_resume_continuity(self, make_feed, reverse):
        """Pages joined by resume cursors equal one unbounded read."""
        log = InMemoryFeedLog([
            make_post("%a", ME),
            make_post("%b", BOB),
            Message("%v", CAROL, {"type": "vote"}),
            make_post("%c", ME),
            make_post("%d", ME),
            make_post("%e", ME),
            make_post("%f", DAVE),
        ])
        everything = _keys(await make_feed(log).roots(reverse=reverse).collect())

        feed = make_feed(log)
        paged, resume = [], None
        while True:
            page = await feed.roots(reverse=reverse, limit=2, resume=resume).collect()
            paged += _keys(page)
            if not page or page[-1].resume is None:
                break
            resume = page[-1].resume

        assert paged == everything
        assert sorted(everything) == ["%a", "%c", "%d", "%e"]

    @pytest.mark.asyncio
    async def test_thread_straddling_pages_repeats(self, make_feed):
        """Dedup is per stream: a thread bumped on both sides of a cursor shows on both pages."""
        log = InMemoryFeedLog([
            make_post("%t", ALICE),
            make_post("%mine", ME),
            make_post("%tr", ME, root="%t"),
        ])
        feed = make_feed(log)

        first = await feed.roots(limit=1).collect()
        second = await feed.roots(limit=2, resume=first[-1].resume).collect()

        assert _keys(first) == ["%t"]
        assert first[-1].resume == 1
        assert _keys(second) == ["%mine", "%t"]
        assert _keys(await make_feed(log).roots().collect()) == ["%t", "%mine"]

    @pytest.mark.asyncio
    async def test_error_after_partial_results(self, feed, feed_log):
        """A failed root fetch ends the stream; earlier items stand."""
        feed_log.fail_keys["%p3"] = ConnectionError("log offline")
        received = []
        with pytest.raises(FetchFailedError) as exc:
            async for item in feed.roots():
                received.append(item.key)
        assert received == ["%g1", "%p3"]
        assert exc.value.context.key == "%p3"

    @pytest.mark.asyncio
    async def test_summary_failure(self, feed, reader):
        """Summarizer errors surface as SummaryFailedError."""
        reader.error = RuntimeError("thread read failed")
        with pytest.raises(SummaryFailedError):
            await feed.roots().collect()

    @pytest.mark.asyncio
    async def test_abouts_failure(self, feed, abouts):
        """Abouts errors propagate; no pass-through."""
        abouts.error = RuntimeError("abouts index missing")
        with pytest.raises(FetchFailedError) as exc:
            await feed.roots().collect()
        assert exc.value.context.stage == "abouts"

    @pytest.mark.asyncio
    async def test_close_propagates_to_log(self, make_feed):
        """Closing the consumer closes the log stream."""
        log = TrackingLog(reference_messages())
        stream = make_feed(log).roots()
        await anext(stream)
        await stream.aclose()
        assert log.closed_streams == 1


class TestLatest:
    """Test the live latest view."""

    @pytest.mark.asyncio
    async def test_old_data_excluded(self, feed, feed_log):
        """Only messages arriving after subscription are considered."""
        stream = feed.latest()
        assert feed_log.open_calls[-1]["live"] is True
        assert feed_log.open_calls[-1]["old"] is False
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(anext(stream), 0.05)
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_participating_bumps(self, feed, feed_log):
        """Bumps on my threads show; others don't; my new roots don't."""
        stream = feed.latest()
        await feed_log.publish(make_post("%p9", ME, text="new thread"))
        await feed_log.publish(make_post("%r5", ALICE, root="%g1"))
        await feed_log.publish(make_post("%r6", CAROL, root="%p2"))
        await feed_log.publish(make_post("%r8", DAVE, root="%p3"))
        items = await _pull(stream, 2)
        assert _keys(items) == ["%r5", "%r8"]
        assert items[0].root.key == "%g1"

        # my reply to bob's thread shows even though I never took part before
        await feed_log.publish(make_post("%r7", ME, root="%p2"))
        assert _keys(await _pull(stream, 1)) == ["%r7"]
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_own_profile_update_kept(self, feed, feed_log):
        """My profile update bumps; my new root post does not."""
        stream = feed.latest()
        await feed_log.publish(make_post("%new", ME, text="fresh thread"))
        await feed_log.publish(make_about("%ab", ME, ME, name="me!"))
        await feed_log.publish(make_attending("%at", ME, "%g1"))

        items = await _pull(stream, 2)
        await stream.aclose()
        assert _keys(items) == ["%ab", "%at"]
        assert items[0].root is None
        assert items[1].root.key == "%g1"

    @pytest.mark.asyncio
    async def test_own_reply_skips_summary(self, feed, feed_log, reader):
        """My own reply passes without a summary read; a foreign one reads once."""
        stream = feed.latest()
        await feed_log.publish(make_post("%r7", ME, root="%p2"))
        await _pull(stream, 1)
        assert reader.reads == []

        await feed_log.publish(make_post("%r5", ALICE, root="%g1"))
        await _pull(stream, 1)
        assert [r["root"] for r in reader.reads] == ["%g1"]
        assert reader.reads[0]["recent_limit"] == 0
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_unclassified_dropped(self, feed, feed_log):
        """Non-bump messages never appear."""
        stream = feed.latest()
        await feed_log.publish(Message("%v1", ALICE, {"type": "vote", "root": "%p3"}))
        await feed_log.publish(make_post("%r8", DAVE, root="%p3"))
        assert _keys(await _pull(stream, 1)) == ["%r8"]
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_only_started(self, feed, feed_log, reader):
        """only_started keeps bumps on my threads without summary reads."""
        stream = feed.latest(only_started=True)
        await feed_log.publish(make_post("%r5", ALICE, root="%g1"))
        await feed_log.publish(make_post("%r8", DAVE, root="%p3"))
        assert _keys(await _pull(stream, 1)) == ["%r8"]
        assert reader.reads == []
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_cache_shared_with_roots(self, feed, feed_log):
        """Roots fetched by roots() are not fetched again by latest()."""
        await feed.roots().collect()
        fetched = list(feed_log.fetches)
        stream = feed.latest()
        await feed_log.publish(make_post("%r5", ALICE, root="%g1"))
        await _pull(stream, 1)
        await stream.aclose()
        assert feed_log.fetches == fetched

    @pytest.mark.asyncio
    async def test_missing_root_fails(self, feed, feed_log):
        """A reply to an unknown root ends the live stream."""
        stream = feed.latest()
        await feed_log.publish(make_post("%r9", ALICE, root="%nowhere"))
        with pytest.raises(FetchFailedError):
            await _pull(stream, 1)

    @pytest.mark.asyncio
    async def test_close_propagates_to_log(self, make_feed):
        """Closing latest closes the live log subscription."""
        log = TrackingLog()
        stream = make_feed(log).latest()
        await log.publish(make_post("%x", BOB))
        await log.publish(make_post("%y", ME, root="%x"))
        await _pull(stream, 1)
        await stream.aclose()
        assert log.closed_streams == 1
