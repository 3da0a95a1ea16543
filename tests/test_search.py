"""
Tests for debounced search and @mention helpers.
"""

import asyncio

import pytest

from snapgram.search import (
    Debouncer, MentionSuggester, SearchModel, find_mention_query, insert_mention
)


class TestDebouncer:
    """Trailing-edge debounce."""

    @pytest.mark.asyncio
    async def test_fires_once_with_last_arguments(self):
        calls = []

        async def record(value):
            calls.append(value)

        debouncer = Debouncer(record, delay_ms=20)
        debouncer.call("a")
        debouncer.call("ab")
        debouncer.call("abc")
        assert debouncer.pending
        assert calls == []

        await asyncio.sleep(0.06)
        await debouncer.join()
        assert calls == ["abc"]
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_cancel_drops_pending_call(self):
        calls = []

        async def record(value):
            calls.append(value)

        debouncer = Debouncer(record, delay_ms=10)
        debouncer.call("x")
        debouncer.cancel()
        await asyncio.sleep(0.03)
        assert calls == []
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_flush_runs_now(self):
        async def double(value):
            return value * 2

        debouncer = Debouncer(double, delay_ms=1000)
        assert await debouncer.flush() is None
        debouncer.call(21)
        assert await debouncer.flush() == 42
        assert not debouncer.pending

    @pytest.mark.asyncio
    async def test_failure_is_logged(self, caplog):
        async def broken():
            raise RuntimeError("no route")

        debouncer = Debouncer(broken, delay_ms=1000)
        debouncer.call()
        assert await debouncer.flush() is None
        assert "no route" in caplog.text


class TestSearchModel:
    """User and post search."""

    @pytest.mark.asyncio
    async def test_user_search_matches_username_or_full_name(self, world):
        model = SearchModel(world.store)
        rows = await model.search("BUILD", "users")
        assert [r['username'] for r in rows] == ['bob']
        rows = await model.search("ali", "users")
        assert [r['username'] for r in rows] == ['alice']
        assert model.results == rows

    @pytest.mark.asyncio
    async def test_blank_query_lists_everything_up_to_limit(self, world):
        model = SearchModel(world.store, limit=2)
        rows = await model.search("   ", "users")
        assert len(rows) == 2

    @pytest.mark.asyncio
    async def test_post_search_by_caption(self, world):
        model = SearchModel(world.store)
        model.search_type = "posts"
        rows = await model.search("sunset", "posts")
        assert [r['id'] for r in rows] == [world.post['id']]
        assert rows[0]['profile']['username'] == 'bob'
        assert model.results == rows
        assert await model.search("harbour", "posts") == []

    @pytest.mark.asyncio
    async def test_typing_is_debounced(self, world, flaky):
        model = SearchModel(flaky, debounce_ms=20)
        for prefix in ("b", "bo", "bob"):
            model.set_query(prefix)
        model.set_search_type("users")
        assert model.pending
        await asyncio.sleep(0.06)
        await model.join()
        assert [c for c in flaky.calls if c[0] == 'query'] == [('query', 'profiles')]
        assert [r['username'] for r in model.profiles] == ['bob']
        model.close()

    @pytest.mark.asyncio
    async def test_errors_keep_previous_results(self, world, flaky):
        model = SearchModel(flaky)
        await model.search("bob", "users")
        flaky.fail_ops.add('query')
        rows = await model.search("alice", "users")
        assert [r['username'] for r in rows] == ['bob']
        assert not model.loading

    def test_unknown_search_type(self, store):
        with pytest.raises(ValueError):
            SearchModel(store).set_search_type("tags")

    def test_from_config(self, store):
        model = SearchModel.from_config(store, {'search': {'debounce_ms': 5, 'limit': 3}})
        assert model.limit == 3


class TestMentions:
    """@mention parsing and insertion."""

    @pytest.mark.parametrize("text,cursor,expected", [
        ("hello @al", None, "al"),
        ("hello @", None, ""),
        ("hello @al there", None, None),
        ("hello @al there", 9, "al"),
        ("email me@x", None, "x"),
        ("no mention", None, None),
        ("@bob-", None, None),
    ])
    def test_find_mention_query(self, text, cursor, expected):
        assert find_mention_query(text, cursor) == expected

    def test_insert_mention_at_end(self):
        assert insert_mention("hi @al", None, "alice") == ("hi @alice ", 10)

    def test_insert_mention_mid_text(self):
        text, cursor = insert_mention("hi @al and more", 6, "alice")
        assert text == "hi @alice  and more"
        assert cursor == 10

    def test_insert_without_mention_is_noop(self):
        assert insert_mention("plain", 3, "alice") == ("plain", 3)

    @pytest.mark.asyncio
    async def test_suggester_prefix_lookup(self, world):
        suggester = MentionSuggester(world.store)
        rows = await suggester.update("thanks @B")
        assert [r['username'] for r in rows] == ['bob']
        assert suggester.visible

        text, cursor = suggester.accept("thanks @B")
        assert (text, cursor) == ("thanks @bob ", 12)
        assert not suggester.visible

    @pytest.mark.asyncio
    async def test_suggester_empty_query_has_no_suggestions(self, world, flaky):
        suggester = MentionSuggester(flaky)
        assert await suggester.update("hey @") == []
        assert await suggester.update("hey there") == []
        assert flaky.calls == []
