"""
Server-side login sessions and the signed cookie that points at them.

The cookie holds only ``{"sid": ...}`` signed as an HS256 JWS. The session
payload (user id, provider, provider tokens) stays on the server, either in
process memory or in the ``sessions`` table, so a restart with the database
store keeps active sessions alive.
"""
import json
import logging
import secrets
import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWSError, jws
from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from marketplace.core.config import Settings
from marketplace.models.database import SessionRecord

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Session payloads keyed by an opaque id. Expired sessions read as absent."""

    def __init__(self, ttl_seconds: int):
        self.ttl_seconds = ttl_seconds

    @staticmethod
    def new_sid() -> str:
        return secrets.token_urlsafe(32)

    def _expiry(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=self.ttl_seconds)

    @abstractmethod
    def create(self, data: dict[str, Any]) -> str: ...

    @abstractmethod
    def get(self, sid: str) -> dict[str, Any] | None: ...

    @abstractmethod
    def update(self, sid: str, data: dict[str, Any]) -> None: ...

    @abstractmethod
    def delete(self, sid: str) -> None: ...

    @abstractmethod
    def purge_expired(self) -> int:
        """Drop expired sessions. Returns how many were removed."""


class MemorySessionStore(SessionStore):
    def __init__(self, ttl_seconds: int):
        super().__init__(ttl_seconds)
        self._sessions: dict[str, tuple[dict[str, Any], datetime]] = {}

    def create(self, data: dict[str, Any]) -> str:
        sid = self.new_sid()
        self._sessions[sid] = (dict(data), self._expiry())
        return sid

    def get(self, sid: str) -> dict[str, Any] | None:
        entry = self._sessions.get(sid)
        if entry is None:
            return None
        data, expire = entry
        if expire <= datetime.now(timezone.utc):
            self._sessions.pop(sid, None)
            return None
        return dict(data)

    def update(self, sid: str, data: dict[str, Any]) -> None:
        if sid in self._sessions:
            _, expire = self._sessions[sid]
            self._sessions[sid] = (dict(data), expire)

    def delete(self, sid: str) -> None:
        self._sessions.pop(sid, None)

    def purge_expired(self) -> int:
        now = datetime.now(timezone.utc)
        expired = [sid for sid, (_, expire) in self._sessions.items() if expire <= now]
        for sid in expired:
            del self._sessions[sid]
        return len(expired)


class DatabaseSessionStore(SessionStore):
    """Sessions in the ``sessions`` table (sid, sess JSON, expire)."""

    def __init__(self, session_factory: sessionmaker, ttl_seconds: int):
        super().__init__(ttl_seconds)
        self.session_factory = session_factory

    @staticmethod
    def _is_expired(expire: datetime) -> bool:
        return expire <= datetime.now(timezone.utc)

    def create(self, data: dict[str, Any]) -> str:
        sid = self.new_sid()
        with self.session_factory() as db:
            db.add(SessionRecord(sid=sid, sess=dict(data), expire=self._expiry()))
            db.commit()
        return sid

    def get(self, sid: str) -> dict[str, Any] | None:
        with self.session_factory() as db:
            row = db.get(SessionRecord, sid)
            if row is None:
                return None
            if self._is_expired(row.expire):
                db.delete(row)
                db.commit()
                return None
            return dict(row.sess)

    def update(self, sid: str, data: dict[str, Any]) -> None:
        with self.session_factory() as db:
            row = db.get(SessionRecord, sid)
            if row is not None:
                row.sess = dict(data)
                db.commit()

    def delete(self, sid: str) -> None:
        with self.session_factory() as db:
            db.execute(delete(SessionRecord).where(SessionRecord.sid == sid))
            db.commit()

    def purge_expired(self) -> int:
        with self.session_factory() as db:
            rows = db.execute(select(SessionRecord)).scalars().all()
            expired = [row for row in rows if self._is_expired(row.expire)]
            for row in expired:
                db.delete(row)
            db.commit()
            return len(expired)


def create_session_store(settings: Settings, session_factory: sessionmaker | None = None) -> SessionStore:
    if session_factory is not None:
        logger.info("Using database session store")
        return DatabaseSessionStore(session_factory, settings.SESSION_TTL_SECONDS)
    logger.info("Using in-memory session store")
    return MemorySessionStore(settings.SESSION_TTL_SECONDS)


# =============================================================================
# Signed cookie values
# =============================================================================


def sign_value(payload: dict[str, Any], settings: Settings) -> str:
    return jws.sign(payload, settings.SESSION_SECRET, algorithm=settings.SESSION_ALGORITHM)


def verify_value(token: str, settings: Settings) -> dict[str, Any] | None:
    """Return the signed payload, or None when the signature does not verify."""
    try:
        raw = jws.verify(token, settings.SESSION_SECRET, algorithms=[settings.SESSION_ALGORITHM])
    except JWSError:
        return None
    try:
        payload = json.loads(raw)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


def sign_session_id(sid: str, settings: Settings) -> str:
    return sign_value({"sid": sid}, settings)


def read_session_id(cookie_value: str | None, settings: Settings) -> str | None:
    if not cookie_value:
        return None
    payload = verify_value(cookie_value, settings)
    if payload is None:
        return None
    sid = payload.get("sid")
    return sid if isinstance(sid, str) else None


def sign_state(state: str, settings: Settings, ttl_seconds: int = 600) -> str:
    """Sign an OAuth ``state`` value with its own short expiry."""
    return sign_value({"state": state, "exp": int(time.time()) + ttl_seconds}, settings)


def read_state(cookie_value: str | None, settings: Settings) -> str | None:
    if not cookie_value:
        return None
    payload = verify_value(cookie_value, settings)
    if payload is None or payload.get("exp", 0) < time.time():
        return None
    state = payload.get("state")
    return state if isinstance(state, str) else None
