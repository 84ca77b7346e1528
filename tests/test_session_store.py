"""
Tests for the server-side session stores and signed cookie values.
"""
import time
from datetime import datetime, timedelta, timezone

import pytest

from marketplace.core.database import create_db_engine, create_session_factory, init_db
from marketplace.models.database import SessionRecord
from marketplace.services.session_store import (
    DatabaseSessionStore,
    MemorySessionStore,
    create_session_store,
    read_session_id,
    read_state,
    sign_session_id,
    sign_state,
    sign_value,
)


@pytest.fixture
def session_factory():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield create_session_factory(engine)
    engine.dispose()


@pytest.fixture(params=["memory", "database"])
def store(request, session_factory):
    if request.param == "memory":
        return MemorySessionStore(ttl_seconds=3600)
    return DatabaseSessionStore(session_factory, ttl_seconds=3600)


class TestSessionStore:
    """Contract shared by both session stores."""

    def test_create_and_get(self, store):
        sid = store.create({"user_id": "u-1", "provider": "local"})

        assert store.get(sid) == {"user_id": "u-1", "provider": "local"}

    def test_ids_are_unique(self, store):
        assert store.create({}) != store.create({})

    def test_unknown_sid(self, store):
        assert store.get("missing") is None

    def test_update_replaces_payload(self, store):
        sid = store.create({"user_id": "u-1", "access_token": "old"})

        store.update(sid, {"user_id": "u-1", "access_token": "new"})

        assert store.get(sid)["access_token"] == "new"

    def test_delete(self, store):
        sid = store.create({"user_id": "u-1"})

        store.delete(sid)

        assert store.get(sid) is None

    def test_returned_payload_is_a_copy(self, store):
        sid = store.create({"user_id": "u-1"})

        store.get(sid)["user_id"] = "someone-else"

        assert store.get(sid)["user_id"] == "u-1"


class TestExpiry:
    def test_expired_memory_session_reads_as_absent(self):
        store = MemorySessionStore(ttl_seconds=-1)
        sid = store.create({"user_id": "u-1"})

        assert store.get(sid) is None

    def test_purge_memory(self):
        store = MemorySessionStore(ttl_seconds=-1)
        store.create({"user_id": "u-1"})
        store.create({"user_id": "u-2"})

        assert store.purge_expired() == 2
        assert store.purge_expired() == 0

    def test_purge_database_keeps_live_sessions(self, session_factory):
        store = DatabaseSessionStore(session_factory, ttl_seconds=3600)
        live = store.create({"user_id": "u-1"})
        with session_factory() as db:
            db.add(SessionRecord(
                sid="stale",
                sess={"user_id": "u-2"},
                expire=datetime.now(timezone.utc) - timedelta(minutes=5),
            ))
            db.commit()

        assert store.purge_expired() == 1
        assert store.get(live) == {"user_id": "u-1"}
        assert store.get("stale") is None

    def test_factory_picks_database_store_with_session_factory(self, settings, session_factory):
        assert isinstance(create_session_store(settings, session_factory), DatabaseSessionStore)
        assert isinstance(create_session_store(settings), MemorySessionStore)


class TestSignedValues:
    """Tests for the JWS-signed cookie helpers."""

    def test_session_id_round_trip(self, settings):
        assert read_session_id(sign_session_id("abc", settings), settings) == "abc"

    def test_tampered_value_is_rejected(self, settings):
        token = sign_session_id("abc", settings)
        header, payload, signature = token.split(".")

        assert read_session_id(f"{header}.{payload}.{signature[::-1]}", settings) is None

    def test_other_secret_is_rejected(self, settings):
        other = settings.model_copy(update={"SESSION_SECRET": "another-secret"})

        assert read_session_id(sign_session_id("abc", other), settings) is None

    @pytest.mark.parametrize("value", [None, "", "not-a-token"])
    def test_garbage_is_rejected(self, settings, value):
        assert read_session_id(value, settings) is None

    def test_payload_without_sid_is_rejected(self, settings):
        assert read_session_id(sign_value({"user": "abc"}, settings), settings) is None

    def test_state_round_trip(self, settings):
        assert read_state(sign_state("xyz", settings), settings) == "xyz"

    def test_expired_state_is_rejected(self, settings):
        token = sign_value({"state": "xyz", "exp": int(time.time()) - 1}, settings)

        assert read_state(token, settings) is None
