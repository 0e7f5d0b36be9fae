from __future__ import annotations  # Session persistence backends

import logging
import os
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Protocol, runtime_checkable

from config.settings import Settings, settings as default_settings
from errors import PersistenceError, SessionNotFound

from .models import Session, deserialize, serialize, session_key

logger = logging.getLogger(__name__)


@runtime_checkable
class SessionStore(Protocol):  # Key-value contract used by the engine and reports
    def get(self, session_id: str) -> Session:
        """Return the stored session or raise ``SessionNotFound``."""

    def put(self, session_id: str, session: Session) -> None:
        """Overwrite the stored session (last write wins)."""


class InMemorySessionStore:  # Process-local store holding serialized records
    def __init__(self) -> None:
        self._records: Dict[str, str] = {}

    def get(self, session_id: str) -> Session:
        payload = self._records.get(session_key(session_id))
        if payload is None:
            raise SessionNotFound(session_id)
        return deserialize(payload)

    def put(self, session_id: str, session: Session) -> None:
        _check_identity(session_id, session)
        self._records[session_key(session_id)] = serialize(session)

    def __contains__(self, session_id: object) -> bool:
        return isinstance(session_id, str) and session_key(session_id) in self._records

    def __len__(self) -> int:
        return len(self._records)


class JsonFileSessionStore:  # One JSON document per session, written atomically
    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir)

    def _path(self, session_id: str) -> Path:
        return self._base_dir / f"{session_key(session_id)}.json"

    def get(self, session_id: str) -> Session:
        path = self._path(session_id)
        if not path.exists():
            raise SessionNotFound(session_id)
        try:
            payload = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"could not read {path}") from exc
        return deserialize(payload)

    def put(self, session_id: str, session: Session) -> None:
        _check_identity(session_id, session)
        path = self._path(session_id)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            self._base_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                handle.write(serialize(session))
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except OSError as exc:
            raise PersistenceError(f"could not write {path}") from exc


class SqliteSessionStore:  # SQLite-backed key-value table of session records
    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(self._path)

    def _ensure_schema(self) -> None:
        try:
            conn = self._connect()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"could not open {self._path}") from exc
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS practice_sessions (
                    session_key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceError("could not create session table") from exc
        finally:
            conn.close()

    def get(self, session_id: str) -> Session:
        try:
            conn = self._connect()
            try:
                row = conn.execute(
                    "SELECT payload FROM practice_sessions WHERE session_key = ?",
                    (session_key(session_id),),
                ).fetchone()
            finally:
                conn.close()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"could not read session '{session_id}'") from exc
        if row is None:
            raise SessionNotFound(session_id)
        return deserialize(row[0])

    def put(self, session_id: str, session: Session) -> None:
        _check_identity(session_id, session)
        now = datetime.now(timezone.utc).isoformat(timespec="seconds")
        try:
            conn = self._connect()
            try:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO practice_sessions (session_key, payload, updated_at)
                    VALUES (?, ?, ?)
                    """,
                    (session_key(session_id), serialize(session), now),
                )
                conn.commit()
            finally:
                conn.close()
        except (OSError, sqlite3.Error) as exc:
            raise PersistenceError(f"could not write session '{session_id}'") from exc


def _check_identity(session_id: str, session: Session) -> None:  # Records are keyed by their own id
    if session.id != session_id:
        raise ValueError(f"session id mismatch: key '{session_id}' vs record '{session.id}'")


def open_store(cfg: Settings | None = None) -> SessionStore:
    """Build the store selected by ``STORE_BACKEND``."""

    cfg = cfg or default_settings
    if cfg.STORE_BACKEND == "memory":
        return InMemorySessionStore()
    if cfg.STORE_BACKEND == "sqlite":
        logger.info("Using SQLite session store at %s", cfg.DB_PATH)
        return SqliteSessionStore(Path(cfg.DB_PATH))
    logger.info("Using JSON session store in %s", cfg.STORE_DIR)
    return JsonFileSessionStore(Path(cfg.STORE_DIR))


__all__ = [
    "InMemorySessionStore",
    "JsonFileSessionStore",
    "SessionStore",
    "SqliteSessionStore",
    "open_store",
]
