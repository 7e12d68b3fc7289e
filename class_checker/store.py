
# Persistence for tracked sections.
#
# The reconciliation loop needs exactly two things from a store:
#     async def list_tracked(self) -> list[TrackedSection]     (StoreLoadError)
#     async def save(self, section, status: bool) -> None      (PersistError)
# plus add() for registering new sections. Each save touches one record
# keyed by TrackedSection.key; there is no transaction across records.

import asyncio
import logging
import sqlite3
import threading

from class_checker.errors import PersistError, StoreLoadError
from class_checker.models import TrackedSection

log = logging.getLogger(__name__)


class InMemoryStatusStore:
    """Dict-backed store. Handy for tests and one-off runs."""

    def __init__(self, sections: list[TrackedSection] | None = None) -> None:
        self._records: dict[tuple, TrackedSection] = {}
        for s in sections or []:
            self._records[s.key] = s.with_status(s.status)

    async def list_tracked(self) -> list[TrackedSection]:
        return [s.with_status(s.status) for s in self._records.values()]

    async def save(self, section: TrackedSection, status: bool) -> None:
        if section.key not in self._records:
            raise PersistError(f"{section.label} for {section.subscriber} is not tracked")
        self._records[section.key] = section.with_status(status)

    async def add(self, section: TrackedSection) -> None:
        self._records[section.key] = section.with_status(section.status)

    def get(self, key: tuple) -> TrackedSection | None:
        return self._records.get(key)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS tracked_sections (
    term        TEXT NOT NULL,
    school      TEXT NOT NULL,
    subject     TEXT NOT NULL,
    number      TEXT NOT NULL,
    section     TEXT NOT NULL,
    subscriber  TEXT NOT NULL,
    status      INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (term, school, subject, number, section, subscriber)
)
"""

_KEY_WHERE = "term = ? AND school = ? AND subject = ? AND number = ? AND section = ? AND subscriber = ?"


class SqliteStatusStore:
    """
    SQLite-backed store.

    sqlite3 is blocking, so every call runs in a worker thread; a lock
    serialises access to the single connection.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(path, check_same_thread=False)
        with self._lock, self._conn:
            self._conn.execute(_SCHEMA)
        log.info("Using SQLite store at %s", path)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def _list_sync(self) -> list[TrackedSection]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT term, school, subject, number, section, subscriber, status FROM tracked_sections"
            ).fetchall()
        return [TrackedSection(*row[:6], status=bool(row[6])) for row in rows]

    def _save_sync(self, section: TrackedSection, status: bool) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute(
                f"UPDATE tracked_sections SET status = ? WHERE {_KEY_WHERE}",
                (int(status), *section.key),
            )
            return cur.rowcount

    def _add_sync(self, section: TrackedSection) -> None:
        with self._lock, self._conn:
            self._conn.execute(
                "INSERT OR REPLACE INTO tracked_sections "
                "(term, school, subject, number, section, subscriber, status) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (*section.key, int(section.status)),
            )

    async def list_tracked(self) -> list[TrackedSection]:
        try:
            return await asyncio.to_thread(self._list_sync)
        except sqlite3.Error as exc:
            log.error("Could not load tracked sections: %s", exc)
            raise StoreLoadError(str(exc)) from exc

    async def save(self, section: TrackedSection, status: bool) -> None:
        try:
            updated = await asyncio.to_thread(self._save_sync, section, status)
        except sqlite3.Error as exc:
            raise PersistError(f"saving {section.label}: {exc}") from exc
        if updated == 0:
            raise PersistError(f"{section.label} for {section.subscriber} is not tracked")

    async def add(self, section: TrackedSection) -> None:
        try:
            await asyncio.to_thread(self._add_sync, section)
        except sqlite3.Error as exc:
            raise PersistError(f"adding {section.label}: {exc}") from exc
