import asyncio
import threading
from datetime import timedelta

import pytest

from freight_assistant.graph.memory import SessionManager
from freight_assistant.models import Message


def _fill(sessions: SessionManager, session_id: str, n: int) -> None:
    for i in range(n):
        role = "human" if i % 2 == 0 else "assistant"
        sessions.add_message(session_id, Message(role=role, content=f"m{i}"))


class TestSessions:
    def test_generates_id_when_absent(self, sessions):
        first = sessions.get_or_create_session()
        second = sessions.get_or_create_session(None)
        assert first.session_id and second.session_id
        assert first.session_id != second.session_id
        assert first.history == []

    def test_supplied_id_round_trips(self, sessions):
        assert sessions.get_or_create_session("abc").session_id == "abc"

    def test_add_message_creates_session_and_keeps_order(self, sessions):
        _fill(sessions, "abc", 3)
        assert [m.content for m in sessions.get_full_history("abc")] == ["m0", "m1", "m2"]

    def test_timestamp_stamped(self, sessions):
        sessions.add_message("abc", Message(role="human", content="hi"))
        assert sessions.get_full_history("abc")[0].timestamp is not None

    def test_returned_history_is_a_copy(self, sessions):
        _fill(sessions, "abc", 2)
        sessions.get_or_create_session("abc").history.clear()
        assert len(sessions.get_full_history("abc")) == 2


class TestWindow:
    def test_last_five_of_twelve(self, sessions):
        _fill(sessions, "abc", 12)
        sessions.set_conversation_window_size("abc", 5)
        view = sessions.get_formatted_history("abc")
        assert [m.content for m in view] == ["m7", "m8", "m9", "m10", "m11"]
        assert len(sessions.get_full_history("abc")) == 12

    def test_override_wins(self, sessions):
        _fill(sessions, "abc", 12)
        sessions.set_conversation_window_size("abc", 5)
        assert len(sessions.get_formatted_history("abc", window_override=3)) == 3

    def test_default_window_is_ten(self, sessions):
        _fill(sessions, "abc", 12)
        assert len(sessions.get_formatted_history("abc")) == 10
        assert sessions.get_conversation_window_size("abc") == 10

    def test_invalid_window_sizes_ignored(self, sessions):
        sessions.get_or_create_session("abc")
        assert not sessions.set_conversation_window_size("abc", 0)
        assert not sessions.set_conversation_window_size("missing", 4)
        assert sessions.get_conversation_window_size("abc") == 10

    def test_default_applies_to_new_sessions_only(self, sessions):
        sessions.get_or_create_session("old")
        sessions.set_default_window_size(4)
        sessions.set_default_window_size(0)
        sessions.get_or_create_session("new")
        assert sessions.get_conversation_window_size("old") == 10
        assert sessions.get_conversation_window_size("new") == 4


class TestExpiry:
    def test_session_older_than_a_day_starts_fresh(self, sessions, clock):
        _fill(sessions, "abc", 4)
        clock.advance(hours=24, seconds=1)
        assert sessions.is_session_expired("abc")
        handle = sessions.get_or_create_session("abc")
        assert handle.session_id == "abc"
        assert handle.history == []

    def test_window_change_on_expired_session_is_refused(self, sessions, clock):
        _fill(sessions, "abc", 2)
        sessions.set_conversation_window_size("abc", 5)
        clock.advance(hours=25)
        assert sessions.set_conversation_window_size("abc", 3) is False
        assert sessions.get_conversation_window_size("abc") == sessions.default_window_size
        sessions.get_or_create_session("abc")
        assert sessions.get_conversation_window_size("abc") == sessions.default_window_size

    def test_exactly_a_day_is_still_live(self, sessions, clock):
        _fill(sessions, "abc", 2)
        clock.advance(hours=24)
        assert len(sessions.get_or_create_session("abc").history) == 2

    def test_access_refreshes_last_updated(self, sessions, clock):
        _fill(sessions, "abc", 2)
        clock.advance(hours=20)
        sessions.get_or_create_session("abc")
        clock.advance(hours=20)
        assert len(sessions.get_or_create_session("abc").history) == 2

    def test_cleanup_removes_only_expired(self, sessions, clock):
        sessions.get_or_create_session("stale")
        clock.advance(hours=23)
        sessions.get_or_create_session("fresh")
        clock.advance(hours=2)
        assert sessions.cleanup_expired_sessions() == 1
        assert len(sessions) == 1
        assert not sessions.is_session_expired("fresh")

    def test_custom_max_age(self, clock):
        sessions = SessionManager(max_session_age=timedelta(minutes=30), clock=clock)
        sessions.get_or_create_session("abc")
        clock.advance(minutes=31)
        assert sessions.cleanup_expired_sessions() == 1

    async def test_cleanup_loop_runs_until_cancelled(self, sessions, clock):
        sessions.get_or_create_session("stale")
        clock.advance(days=2)
        task = asyncio.create_task(sessions.run_cleanup_loop(0.01))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert len(sessions) == 0


def test_concurrent_appends_are_all_kept(sessions):
    def worker(n):
        for i in range(50):
            sessions.add_message("shared", Message(role="human", content=f"{n}-{i}"))

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(sessions.get_full_history("shared")) == 200
