from __future__ import annotations

import sqlite3
from typing import Optional

from domain.errors import StoreFailure
from domain.repositories import IdentityRepository


class SqliteIdentityRepository(IdentityRepository):
    """
    SQLite-backed implementation of `IdentityRepository`.

    Stores mappings from (provider, provider_user_id) to internal user IDs
    in a `user_identities` table, normally in the same file as the ledger.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self._db_path)

    def _ensure_table(self) -> None:
        with self._get_connection() as conn:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS user_identities (
                    provider TEXT NOT NULL,
                    provider_user_id TEXT NOT NULL,
                    user_id INTEGER NOT NULL,
                    PRIMARY KEY (provider, provider_user_id)
                )
                """
            )
            conn.commit()

    def find_user_id_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[int]:
        try:
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    """
                    SELECT user_id
                    FROM user_identities
                    WHERE provider = ? AND provider_user_id = ?
                    """,
                    (provider, provider_user_id),
                )
                row = cur.fetchone()
        except sqlite3.Error as exc:
            raise StoreFailure("Could not read identity mapping") from exc
        if not row:
            return None
        return int(row[0])

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        user_id: int,
    ) -> None:
        """
        Upsert a mapping from external identity to internal user ID.
        """

        try:
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    """
                    INSERT INTO user_identities (provider, provider_user_id, user_id)
                    VALUES (?, ?, ?)
                    ON CONFLICT (provider, provider_user_id)
                    DO UPDATE SET user_id = excluded.user_id
                    """,
                    (provider, provider_user_id, user_id),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreFailure("Could not save identity mapping") from exc

    def clear_external_identity(
        self,
        provider: str,
        provider_user_id: str,
    ) -> None:
        try:
            with self._get_connection() as conn:
                cur = conn.cursor()
                cur.execute(
                    """
                    DELETE FROM user_identities
                    WHERE provider = ? AND provider_user_id = ?
                    """,
                    (provider, provider_user_id),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreFailure("Could not remove identity mapping") from exc
