from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from domain.errors import StoreFailure
from domain.repositories import LedgerStore, Row

logger = logging.getLogger(__name__)


_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        email TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sessions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id),
        date TEXT NOT NULL,
        play_time INTEGER NOT NULL DEFAULT 0,
        study_time INTEGER NOT NULL DEFAULT 0,
        games INTEGER NOT NULL DEFAULT 0,
        hands INTEGER NOT NULL DEFAULT 0,
        earnings REAL NOT NULL DEFAULT 0,
        notes TEXT NOT NULL DEFAULT '',
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_user_date ON sessions (user_id, date)",
    """
    CREATE TABLE IF NOT EXISTS player_notes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL REFERENCES users(id),
        player_name TEXT NOT NULL,
        category TEXT NOT NULL,
        note_text TEXT NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS bankroll (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id),
        amount REAL NOT NULL DEFAULT 0,
        updated_at TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS user_settings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL UNIQUE REFERENCES users(id),
        weekly_goals TEXT NOT NULL DEFAULT '',
        session_notes TEXT NOT NULL DEFAULT ''
    )
    """,
)

# Table and column names are interpolated into SQL, so only these are accepted.
_COLUMNS: Dict[str, FrozenSet[str]] = {
    "users": frozenset({"id", "username", "email", "password_hash", "created_at"}),
    "sessions": frozenset(
        {
            "id",
            "user_id",
            "date",
            "play_time",
            "study_time",
            "games",
            "hands",
            "earnings",
            "notes",
            "created_at",
        }
    ),
    "player_notes": frozenset(
        {"id", "user_id", "player_name", "category", "note_text", "created_at"}
    ),
    "bankroll": frozenset({"id", "user_id", "amount", "updated_at"}),
    "user_settings": frozenset({"id", "user_id", "weekly_goals", "session_notes"}),
}


class SqliteLedgerStore(LedgerStore):
    """
    SQLite-backed implementation of `LedgerStore`.

    The store owns every per-user table and is self-initialising: tables are
    created if needed. Outside a `transaction()` block each call runs on its
    own connection and commits immediately; inside one, all calls made from
    the same thread share the block's connection.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._local = threading.local()
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        active = getattr(self._local, "conn", None)
        if active is not None:
            yield active
            return

        try:
            conn = self._connect()
        except sqlite3.Error as exc:
            logger.error("Could not open ledger database %s", self._db_path, exc_info=exc)
            raise StoreFailure("Could not open the ledger database") from exc

        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            logger.error("Ledger store operation failed", exc_info=exc)
            raise StoreFailure("Ledger store operation failed") from exc
        finally:
            conn.close()

    def _ensure_tables(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            for statement in _SCHEMA:
                cur.execute(statement)
            conn.commit()

    @contextmanager
    def transaction(self) -> Iterator["SqliteLedgerStore"]:
        if getattr(self._local, "conn", None) is not None:
            yield self
            return

        with self._get_connection() as conn:
            # Take the write lock up front so reads inside the block stay valid.
            conn.execute("BEGIN IMMEDIATE")
            self._local.conn = conn
            try:
                yield self
            finally:
                self._local.conn = None

    @staticmethod
    def _check(table: str, columns: Iterable[str]) -> None:
        known = _COLUMNS.get(table)
        if known is None:
            raise ValueError(f"Unknown table: {table}")
        unknown = [c for c in columns if c not in known]
        if unknown:
            raise ValueError(f"Unknown column(s) for {table}: {', '.join(unknown)}")

    @classmethod
    def _where_clause(cls, table: str, where: Mapping[str, Any]) -> Tuple[str, List[Any]]:
        cls._check(table, where.keys())
        if not where:
            return "", []
        clause = " AND ".join(f"{column} = ?" for column in where)
        return f" WHERE {clause}", list(where.values())

    @classmethod
    def _order_clause(cls, table: str, order_by: Sequence[str]) -> str:
        terms = []
        for term in order_by:
            column = term.lstrip("-")
            cls._check(table, [column])
            terms.append(f"{column} DESC" if term.startswith("-") else f"{column} ASC")
        if not terms:
            return ""
        return " ORDER BY " + ", ".join(terms)

    def insert(self, table: str, fields: Mapping[str, Any]) -> int:
        self._check(table, fields.keys())
        columns = ", ".join(fields)
        placeholders = ", ".join("?" for _ in fields)
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                tuple(fields.values()),
            )
            return int(cur.lastrowid)

    def find_one(self, table: str, where: Mapping[str, Any]) -> Optional[Row]:
        clause, params = self._where_clause(table, where)
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT * FROM {table}{clause} LIMIT 1", params)
            row = cur.fetchone()
            if not row:
                return None
            return dict(row)

    def find_all(
        self,
        table: str,
        where: Mapping[str, Any],
        order_by: Sequence[str] = (),
    ) -> List[Row]:
        clause, params = self._where_clause(table, where)
        order = self._order_clause(table, order_by)
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(f"SELECT * FROM {table}{clause}{order}", params)
            return [dict(row) for row in cur.fetchall()]

    def update(self, table: str, where: Mapping[str, Any], fields: Mapping[str, Any]) -> int:
        self._check(table, fields.keys())
        clause, params = self._where_clause(table, where)
        assignments = ", ".join(f"{column} = ?" for column in fields)
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"UPDATE {table} SET {assignments}{clause}",
                list(fields.values()) + params,
            )
            return cur.rowcount

    def increment(
        self,
        table: str,
        where: Mapping[str, Any],
        column: str,
        delta: float,
    ) -> int:
        self._check(table, [column])
        clause, params = self._where_clause(table, where)
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                f"UPDATE {table} SET {column} = {column} + ?{clause}",
                [delta] + params,
            )
            return cur.rowcount

    def delete(self, table: str, where: Mapping[str, Any]) -> int:
        clause, params = self._where_clause(table, where)
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(f"DELETE FROM {table}{clause}", params)
            return cur.rowcount
