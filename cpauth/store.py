"""Identity directory: registrations and pending login attempts."""

from __future__ import annotations

import abc
import json
import logging
import os
import sqlite3
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """The directory could not be read or written."""


class CorruptRecordError(StorageError):
    """A stored value could not be decoded."""


@dataclass(frozen=True)
class Registration:
    """Public commitment ``y1 = g^x``, ``y2 = h^x`` made at registration."""

    identity: str
    y1: int
    y2: int


@dataclass(frozen=True)
class PendingAttempt:
    """Commitment ``(r1, r2)`` and the challenge ``c`` issued against it."""

    identity: str
    r1: int
    r2: int
    c: int


def _field(identity: str, column: str, record: object) -> int:
    if not isinstance(record, dict):
        raise CorruptRecordError(f"Stored record for {identity} is not an object")
    return _decode(identity, column, record.get(column))


def _decode(identity: str, column: str, raw: object) -> int:
    try:
        return int(str(raw), 16)
    except ValueError as exc:
        raise CorruptRecordError(f"Stored {column} for {identity} is not hex encoded") from exc


class IdentityDirectory(abc.ABC):
    """Storage interface the protocol engine depends on.

    Every method is atomic on its own. ``take_pending`` fetches and deletes
    in one step so a challenge can be read at most once.
    """

    @abc.abstractmethod
    def is_registered(self, identity: str) -> bool:
        ...

    @abc.abstractmethod
    def put_registration(self, identity: str, y1: int, y2: int) -> bool:
        """Insert a registration unless one exists. Returns ``True`` if inserted."""

    @abc.abstractmethod
    def get_registration(self, identity: str) -> Optional[Registration]:
        ...

    @abc.abstractmethod
    def upsert_pending(self, identity: str, r1: int, r2: int, c: int) -> None:
        """Install the pending attempt for ``identity``, replacing any previous one."""

    @abc.abstractmethod
    def take_pending(self, identity: str) -> Optional[PendingAttempt]:
        ...

    def close(self) -> None:
        pass


class MemoryDirectory(IdentityDirectory):
    """Process-local directory, mostly useful for tests and demos."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._registrations: Dict[str, Registration] = {}
        self._pending: Dict[str, PendingAttempt] = {}

    def is_registered(self, identity: str) -> bool:
        with self._lock:
            return identity in self._registrations

    def put_registration(self, identity: str, y1: int, y2: int) -> bool:
        with self._lock:
            if identity in self._registrations:
                return False
            self._registrations[identity] = Registration(identity, y1, y2)
            return True

    def get_registration(self, identity: str) -> Optional[Registration]:
        with self._lock:
            return self._registrations.get(identity)

    def upsert_pending(self, identity: str, r1: int, r2: int, c: int) -> None:
        with self._lock:
            self._pending[identity] = PendingAttempt(identity, r1, r2, c)

    def take_pending(self, identity: str) -> Optional[PendingAttempt]:
        with self._lock:
            return self._pending.pop(identity, None)


class JsonDirectory(IdentityDirectory):
    """Persist the directory as a JSON document, rewritten atomically."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        self._ensure_file()

    def _ensure_file(self) -> None:
        if not os.path.exists(self.path):
            self._save({"registrations": {}, "pending": {}})

    def _load(self) -> Dict[str, Dict[str, Dict[str, str]]]:
        try:
            with open(self.path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read directory {self.path}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StorageError(f"Directory {self.path} does not hold a JSON object")
        for section in ("registrations", "pending"):
            if not isinstance(payload.setdefault(section, {}), dict):
                raise StorageError(f"Directory {self.path} has a malformed {section} section")
        return payload

    def _save(self, payload: Dict[str, Dict[str, Dict[str, str]]]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise StorageError(f"Cannot write directory {self.path}: {exc}") from exc

    def is_registered(self, identity: str) -> bool:
        with self._lock:
            return identity in self._load()["registrations"]

    def put_registration(self, identity: str, y1: int, y2: int) -> bool:
        with self._lock:
            payload = self._load()
            if identity in payload["registrations"]:
                return False
            payload["registrations"][identity] = {"y1": format(y1, "x"), "y2": format(y2, "x")}
            self._save(payload)
            return True

    def get_registration(self, identity: str) -> Optional[Registration]:
        with self._lock:
            raw = self._load()["registrations"].get(identity)
        if raw is None:
            return None
        return Registration(
            identity=identity,
            y1=_field(identity, "y1", raw),
            y2=_field(identity, "y2", raw),
        )

    def upsert_pending(self, identity: str, r1: int, r2: int, c: int) -> None:
        with self._lock:
            payload = self._load()
            payload["pending"][identity] = {
                "r1": format(r1, "x"),
                "r2": format(r2, "x"),
                "c": format(c, "x"),
            }
            self._save(payload)

    def take_pending(self, identity: str) -> Optional[PendingAttempt]:
        with self._lock:
            payload = self._load()
            raw = payload["pending"].pop(identity, None)
            if raw is None:
                return None
            self._save(payload)
        return PendingAttempt(
            identity=identity,
            r1=_field(identity, "r1", raw),
            r2=_field(identity, "r2", raw),
            c=_field(identity, "c", raw),
        )


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS registrations (
        auth_id TEXT PRIMARY KEY,
        y1 TEXT NOT NULL,
        y2 TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS pending_attempts (
        auth_id TEXT PRIMARY KEY,
        r1 TEXT NOT NULL,
        r2 TEXT NOT NULL,
        c TEXT NOT NULL
    )
    """,
)


class SqliteDirectory(IdentityDirectory):
    """SQLite-backed directory. The schema is created when the file is opened."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._lock = threading.Lock()
        try:
            self._conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
            for statement in _SCHEMA:
                self._conn.execute(statement)
        except sqlite3.Error as exc:
            raise StorageError(f"Cannot open directory {path}: {exc}") from exc

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                self._conn.execute("BEGIN IMMEDIATE")
                try:
                    yield self._conn
                except BaseException:
                    self._conn.execute("ROLLBACK")
                    raise
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                raise StorageError(f"Directory {self.path} failed: {exc}") from exc

    def is_registered(self, identity: str) -> bool:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT EXISTS(SELECT 1 FROM registrations WHERE auth_id = ?)", (identity,)
            ).fetchone()
        return bool(row[0])

    def put_registration(self, identity: str, y1: int, y2: int) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO registrations (auth_id, y1, y2) VALUES (?, ?, ?) "
                "ON CONFLICT (auth_id) DO NOTHING",
                (identity, format(y1, "x"), format(y2, "x")),
            )
            return cursor.rowcount == 1

    def get_registration(self, identity: str) -> Optional[Registration]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT y1, y2 FROM registrations WHERE auth_id = ?", (identity,)
            ).fetchone()
        if row is None:
            return None
        return Registration(identity, _decode(identity, "y1", row[0]), _decode(identity, "y2", row[1]))

    def upsert_pending(self, identity: str, r1: int, r2: int, c: int) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT INTO pending_attempts (auth_id, r1, r2, c) VALUES (?, ?, ?, ?) "
                "ON CONFLICT (auth_id) DO UPDATE SET r1 = excluded.r1, r2 = excluded.r2, c = excluded.c",
                (identity, format(r1, "x"), format(r2, "x"), format(c, "x")),
            )

    def take_pending(self, identity: str) -> Optional[PendingAttempt]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT r1, r2, c FROM pending_attempts WHERE auth_id = ?", (identity,)
            ).fetchone()
            if row is not None:
                conn.execute("DELETE FROM pending_attempts WHERE auth_id = ?", (identity,))
        if row is None:
            return None
        return PendingAttempt(
            identity=identity,
            r1=_decode(identity, "r1", row[0]),
            r2=_decode(identity, "r2", row[1]),
            c=_decode(identity, "c", row[2]),
        )

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def open_directory(url: str) -> IdentityDirectory:
    """Open a directory from ``memory:``, ``json:PATH``, ``sqlite:PATH`` or a bare JSON path."""

    scheme, sep, location = url.partition(":")
    if scheme == "memory":
        directory: IdentityDirectory = MemoryDirectory()
    elif sep and scheme == "sqlite":
        directory = SqliteDirectory(location)
    elif sep and scheme == "json":
        directory = JsonDirectory(location)
    else:
        directory = JsonDirectory(url)
    logger.info("Opened %s at %s", type(directory).__name__, url)
    return directory


__all__ = [
    "CorruptRecordError",
    "IdentityDirectory",
    "JsonDirectory",
    "MemoryDirectory",
    "PendingAttempt",
    "Registration",
    "SqliteDirectory",
    "StorageError",
    "open_directory",
]
