from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Any, List, Optional

from application.timeutils import parse_timestamp, utc_now_iso
from domain.errors import NotFound, ValidationError
from domain.models import BankrollAccount, BankrollAudit, Session
from domain.repositories import LedgerStore, Row

logger = logging.getLogger(__name__)

SESSIONS = "sessions"
BANKROLL = "bankroll"


def _to_session(row: Row) -> Session:
    return Session(
        id=int(row["id"]),
        user_id=int(row["user_id"]),
        date=row["date"],
        play_time=int(row["play_time"] or 0),
        study_time=int(row["study_time"] or 0),
        games=int(row["games"] or 0),
        hands=int(row["hands"] or 0),
        earnings=float(row["earnings"] or 0),
        notes=row["notes"] or "",
        created_at=row["created_at"] or "",
    )


def _coerce_int(name: str, value: Any) -> int:
    if value is None or value == "":
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number.", fields=[name])
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{name} must be a number.", fields=[name]) from None
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be a finite number.", fields=[name])
    if number != int(number):
        raise ValidationError(f"{name} must be a whole number.", fields=[name])
    return int(number)


def _coerce_float(name: str, value: Any) -> float:
    if value is None or value == "":
        return 0.0
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number.", fields=[name])
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{name} must be a number.", fields=[name]) from None
    if not math.isfinite(number):
        raise ValidationError(f"{name} must be a finite number.", fields=[name])
    return number


def list_sessions(store: LedgerStore, user_id: int) -> List[Session]:
    """
    Return the user's sessions, newest date first (ties: newest entry first).

    Dates are ordered by the instant they parse to in UTC, the same reading
    the stats windows use, so `2024-05-02T01:00:00+05:00` is listed after a
    bare `2024-05-02`.
    """

    rows = store.find_all(SESSIONS, {"user_id": user_id}, order_by=("-date", "-id"))
    sessions = [_to_session(row) for row in rows]
    sessions.sort(key=lambda s: (parse_timestamp(s.date) or datetime.min, s.id), reverse=True)
    return sessions


def create_session(
    store: LedgerStore,
    user_id: int,
    date: str,
    play_time: Any = 0,
    study_time: Any = 0,
    games: Any = 0,
    hands: Any = 0,
    earnings: Any = 0,
    notes: Optional[str] = None,
) -> Session:
    """
    Record a session and credit its earnings to the user's bankroll.

    The session row and the bankroll delta are written in one store
    transaction: either both land or neither does, so the bankroll always
    equals the sum of recorded earnings.
    """

    if not date:
        raise ValidationError("date is required.", fields=["date"])
    if parse_timestamp(date) is None:
        raise ValidationError("date must be an ISO-8601 date.", fields=["date"])

    fields = {
        "user_id": user_id,
        "date": date.strip(),
        "play_time": _coerce_int("playTime", play_time),
        "study_time": _coerce_int("studyTime", study_time),
        "games": _coerce_int("games", games),
        "hands": _coerce_int("hands", hands),
        "earnings": _coerce_float("earnings", earnings),
        "notes": notes or "",
        "created_at": utc_now_iso(),
    }

    with store.transaction():
        session_id = store.insert(SESSIONS, fields)
        if not store.increment(BANKROLL, {"user_id": user_id}, "amount", fields["earnings"]):
            raise NotFound("Bankroll account not found")
        store.update(BANKROLL, {"user_id": user_id}, {"updated_at": fields["created_at"]})

    logger.info(
        "Recorded session %s for user %s (bankroll %+.2f)",
        session_id,
        user_id,
        fields["earnings"],
    )
    return Session(id=session_id, **fields)


def delete_session(store: LedgerStore, user_id: int, session_id: int) -> Session:
    """
    Delete one of the user's sessions and take its earnings back out of the bankroll.

    The amount reverted is the one stored with the session, never a
    caller-supplied figure. Sessions owned by another user raise `NotFound`,
    exactly like missing ones.
    """

    with store.transaction():
        row = store.find_one(SESSIONS, {"id": session_id, "user_id": user_id})
        if row is None:
            raise NotFound("Session not found")
        session = _to_session(row)

        if not store.increment(BANKROLL, {"user_id": user_id}, "amount", -session.earnings):
            raise NotFound("Bankroll account not found")
        store.update(BANKROLL, {"user_id": user_id}, {"updated_at": utc_now_iso()})
        store.delete(SESSIONS, {"id": session.id, "user_id": user_id})

    logger.info(
        "Deleted session %s for user %s (bankroll %+.2f)",
        session.id,
        user_id,
        -session.earnings,
    )
    return session


def get_bankroll(store: LedgerStore, user_id: int) -> BankrollAccount:
    row = store.find_one(BANKROLL, {"user_id": user_id})
    if row is None:
        return BankrollAccount(user_id=user_id)
    return BankrollAccount(
        user_id=user_id,
        amount=float(row["amount"] or 0),
        updated_at=row["updated_at"] or "",
    )


def audit_bankroll(store: LedgerStore, user_id: int) -> BankrollAudit:
    """
    Compare the stored bankroll with the sum of session earnings.

    Read-only: a drift is reported, never repaired here.
    """

    recorded = get_bankroll(store, user_id).amount
    expected = sum(session.earnings for session in list_sessions(store, user_id))
    return BankrollAudit(user_id=user_id, recorded=recorded, expected=expected)


def reconcile_bankroll(store: LedgerStore, user_id: int) -> BankrollAccount:
    """
    Operator repair: rewrite the bankroll to the sum of session earnings.

    Only meant to be run by hand after a store fault.
    """

    with store.transaction():
        audit = audit_bankroll(store, user_id)
        if not audit.consistent:
            logger.warning(
                "Bankroll drift for user %s: recorded %.2f, expected %.2f",
                user_id,
                audit.recorded,
                audit.expected,
            )
        now = utc_now_iso()
        updated = store.update(
            BANKROLL,
            {"user_id": user_id},
            {"amount": audit.expected, "updated_at": now},
        )
        if not updated:
            store.insert(
                BANKROLL,
                {"user_id": user_id, "amount": audit.expected, "updated_at": now},
            )

    return BankrollAccount(user_id=user_id, amount=audit.expected, updated_at=now)
