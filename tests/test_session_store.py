from __future__ import annotations

import pytest

from voicelink.core.errors import NotFoundError, SessionStateError
from voicelink.core.session_store import Session, SessionStatus, SessionStore


class TestSessionStatus:
    def test_terminal_states(self):
        assert SessionStatus.COMPLETED.is_terminal
        assert SessionStatus.ERROR.is_terminal
        assert not SessionStatus.WAITING.is_terminal
        assert not SessionStatus.PROCESSING.is_terminal

    def test_values_are_wire_strings(self):
        assert SessionStatus("processing") is SessionStatus.PROCESSING


class TestSessionSnapshot:
    def test_waiting_snapshot(self):
        s = Session(id="abc", created_at=0.0)
        assert s.snapshot() == {"status": "waiting", "result": None, "error": None}

    def test_repr_hides_audio(self):
        s = Session(id="abc", created_at=0.0, audio_data=b"\x00" * 10)
        assert "audio_data" not in repr(s)


class TestCreateGetDelete:
    def test_create_returns_unique_ids(self, store):
        ids = {store.create() for _ in range(50)}
        assert len(ids) == 50
        assert len(store) == 50

    def test_new_session_is_waiting(self, store, clock):
        sid = store.create()
        session = store.get(sid)
        assert session.status is SessionStatus.WAITING
        assert session.created_at == clock.now
        assert session.result is None and session.error is None

    def test_get_unknown_returns_none(self, store):
        assert store.get("missing") is None

    def test_delete(self, store):
        sid = store.create()
        assert store.delete(sid) is True
        assert sid not in store
        assert store.delete(sid) is False


class TestTransitions:
    def test_happy_path(self, store):
        sid = store.create()
        store.begin_processing(sid)
        store.attach_audio(sid, b"audio")
        assert store.get(sid).audio_data == b"audio"

        store.complete(sid, "hello")
        session = store.get(sid)
        assert session.status is SessionStatus.COMPLETED
        assert session.result == "hello"
        assert session.error is None
        assert session.audio_data is None

    def test_fail_sets_error_only(self, store):
        sid = store.create()
        store.begin_processing(sid)
        store.fail(sid, "boom")
        session = store.get(sid)
        assert session.status is SessionStatus.ERROR
        assert session.error == "boom"
        assert session.result is None

    def test_waiting_can_fail_directly(self, store):
        sid = store.create()
        store.fail(sid, "boom")
        assert store.get(sid).status is SessionStatus.ERROR

    def test_waiting_cannot_complete_without_processing(self, store):
        sid = store.create()
        with pytest.raises(SessionStateError):
            store.complete(sid, "hello")
        session = store.get(sid)
        assert session.status is SessionStatus.WAITING
        assert session.result is None

    @pytest.mark.parametrize("finish", ["complete", "fail"])
    def test_terminal_states_are_final(self, store, finish):
        sid = store.create()
        store.begin_processing(sid)
        getattr(store, finish)(sid, "x")
        before = store.get(sid).snapshot()

        with pytest.raises(SessionStateError):
            store.begin_processing(sid)
        with pytest.raises(SessionStateError):
            store.complete(sid, "other")
        with pytest.raises(SessionStateError):
            store.fail(sid, "other")
        assert store.get(sid).snapshot() == before

    def test_processing_cannot_restart(self, store):
        sid = store.create()
        store.begin_processing(sid)
        with pytest.raises(SessionStateError):
            store.begin_processing(sid)

    def test_attach_audio_requires_processing(self, store):
        sid = store.create()
        with pytest.raises(SessionStateError):
            store.attach_audio(sid, b"audio")

    def test_mutating_unknown_session_raises_not_found(self, store):
        with pytest.raises(NotFoundError):
            store.begin_processing("missing")
        with pytest.raises(NotFoundError):
            store.complete("missing", "x")
        with pytest.raises(NotFoundError):
            store.fail("missing", "x")
        assert len(store) == 0


class TestSweep:
    def test_removes_only_sessions_older_than_threshold(self, store, clock):
        old = store.create()
        clock.advance(100)
        boundary = store.create()
        clock.advance(100)
        fresh = store.create()
        clock.advance(100)
        # ages: old=300.5, boundary=200.5, fresh=100.5
        clock.advance(0.5)

        removed = store.sweep(200.5)

        assert removed == 1
        assert old not in store
        assert boundary in store
        assert fresh in store

    def test_ignores_status(self, store, clock):
        done = store.create()
        store.begin_processing(done)
        store.complete(done, "text")
        busy = store.create()
        store.begin_processing(busy)
        clock.advance(301)

        assert store.sweep() == 2
        assert len(store) == 0

    def test_default_threshold_is_store_max_age(self, clock):
        store = SessionStore(max_age=10, clock=clock)
        sid = store.create()
        clock.advance(10)
        assert store.sweep() == 0
        clock.advance(0.001)
        assert store.sweep() == 1
        assert sid not in store

    def test_empty_store(self, store):
        assert store.sweep() == 0
