from __future__ import annotations

from typing import Any, ContextManager, Dict, List, Mapping, Optional, Protocol, Sequence

Row = Dict[str, Any]


class LedgerStore(Protocol):
    """
    Row-oriented persistence for every per-user table.

    Implementations are responsible for:
    - Mapping tables to whatever storage they use, returning rows as dicts.
    - Making a write visible to the next read made through the same store.
    - Raising `StoreFailure` for any backend error.

    `where` is always an equality mapping (`{"user_id": 3, "id": 9}`).
    `order_by` is a sequence of column names; a leading `-` sorts descending.
    """

    def insert(self, table: str, fields: Mapping[str, Any]) -> int:
        """Insert a row and return its generated id."""

        ...

    def find_one(self, table: str, where: Mapping[str, Any]) -> Optional[Row]:
        ...

    def find_all(
        self,
        table: str,
        where: Mapping[str, Any],
        order_by: Sequence[str] = (),
    ) -> List[Row]:
        ...

    def update(self, table: str, where: Mapping[str, Any], fields: Mapping[str, Any]) -> int:
        """Overwrite `fields` on matching rows, returning how many matched."""

        ...

    def increment(
        self,
        table: str,
        where: Mapping[str, Any],
        column: str,
        delta: float,
    ) -> int:
        """
        Add `delta` to `column` on matching rows in place.

        Implementations should apply the delta atomically rather than as a
        read followed by a write.
        """

        ...

    def delete(self, table: str, where: Mapping[str, Any]) -> int:
        ...

    def transaction(self) -> ContextManager[Any]:
        """
        Group the store calls made inside the block into one unit.

        Everything commits when the block exits normally and rolls back if it
        raises. Nested blocks join the outermost one.
        """

        ...


class IdentityRepository(Protocol):
    """
    Maps chat identities (Telegram/Discord) to internal user IDs.

    The application layer works exclusively with internal user IDs and leaves
    provider-specific identifiers to this abstraction.
    """

    def find_user_id_by_external(
        self,
        provider: str,
        provider_user_id: str,
    ) -> Optional[int]:
        """Return the user ID linked to the given external identity, if any."""

        ...

    def set_external_identity(
        self,
        provider: str,
        provider_user_id: str,
        user_id: int,
    ) -> None:
        """
        Associate an external identity with an internal user ID.

        Used by the login/registration commands so that one account can be
        used from several chats.
        """

        ...

    def clear_external_identity(
        self,
        provider: str,
        provider_user_id: str,
    ) -> None:
        """Remove any mapping for the given external identity (logout)."""

        ...
