from __future__ import annotations

import logging
from typing import List, Optional

from application.timeutils import utc_now_iso
from domain.errors import NotFound, ValidationError
from domain.models import PlayerNote, UserSettings
from domain.repositories import LedgerStore, Row

logger = logging.getLogger(__name__)

PLAYER_NOTES = "player_notes"
USER_SETTINGS = "user_settings"


def _to_note(row: Row) -> PlayerNote:
    return PlayerNote(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        player_name=row["player_name"],
        category=row["category"],
        note_text=row["note_text"],
        created_at=row["created_at"] or "",
    )


def list_player_notes(store: LedgerStore, user_id: int) -> List[PlayerNote]:
    rows = store.find_all(PLAYER_NOTES, {"user_id": user_id}, order_by=("-created_at", "-id"))
    return [_to_note(row) for row in rows]


def create_player_note(
    store: LedgerStore,
    user_id: int,
    player_name: Optional[str],
    category: Optional[str],
    note_text: Optional[str],
) -> PlayerNote:
    """Store a note about an opponent. All three text fields are required."""

    values = {
        "playerName": (player_name or "").strip(),
        "category": (category or "").strip(),
        "noteText": (note_text or "").strip(),
    }
    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ValidationError("All fields are required.", fields=missing)

    fields = {
        "user_id": user_id,
        "player_name": values["playerName"],
        "category": values["category"],
        "note_text": values["noteText"],
        "created_at": utc_now_iso(),
    }
    note_id = store.insert(PLAYER_NOTES, fields)
    logger.info("Added player note %s for user %s", note_id, user_id)
    return PlayerNote(id=note_id, **fields)


def delete_player_note(store: LedgerStore, user_id: int, note_id: int) -> None:
    if not store.delete(PLAYER_NOTES, {"id": note_id, "user_id": user_id}):
        raise NotFound("Note not found")
    logger.info("Deleted player note %s for user %s", note_id, user_id)


def get_settings(store: LedgerStore, user_id: int) -> UserSettings:
    row = store.find_one(USER_SETTINGS, {"user_id": user_id})
    if row is None:
        return UserSettings(user_id=user_id)
    return UserSettings(
        user_id=user_id,
        weekly_goals=row["weekly_goals"] or "",
        session_notes=row["session_notes"] or "",
    )


def save_settings(
    store: LedgerStore,
    user_id: int,
    weekly_goals: Optional[str] = None,
    session_notes: Optional[str] = None,
) -> UserSettings:
    """
    Upsert the user's settings. Blank or missing values are stored as "".
    """

    fields = {"weekly_goals": weekly_goals or "", "session_notes": session_notes or ""}
    with store.transaction():
        if not store.update(USER_SETTINGS, {"user_id": user_id}, fields):
            store.insert(USER_SETTINGS, {"user_id": user_id, **fields})
    return UserSettings(user_id=user_id, **fields)
