from __future__ import annotations

import logging

from werkzeug.security import check_password_hash, generate_password_hash

from application.notes import USER_SETTINGS
from application.services import BANKROLL
from application.timeutils import utc_now_iso
from domain.errors import NotFound, Unauthenticated, ValidationError
from domain.models import User
from domain.repositories import LedgerStore, Row

logger = logging.getLogger(__name__)

USERS = "users"
MIN_PASSWORD_LENGTH = 6


def _to_user(row: Row) -> User:
    return User(
        id=int(row["id"]),
        username=row["username"],
        email=row["email"],
        password_hash=row["password_hash"],
        created_at=row["created_at"] or "",
    )


def register(store: LedgerStore, username: str, email: str, password: str) -> User:
    """
    Create a user together with an empty bankroll and blank settings.

    The three rows are written in one transaction so a user never exists
    without the bankroll the session ledger updates.
    """

    username = (username or "").strip()
    email = (email or "").strip()
    password = password or ""

    missing = [
        name
        for name, value in (("username", username), ("email", email), ("password", password))
        if not value
    ]
    if missing:
        raise ValidationError("All fields are required.", fields=missing)
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters.",
            fields=["password"],
        )

    with store.transaction():
        if store.find_one(USERS, {"username": username}) or store.find_one(
            USERS, {"email": email}
        ):
            raise ValidationError(
                "Username or email already in use.", fields=["username", "email"]
            )

        now = utc_now_iso()
        fields = {
            "username": username,
            "email": email,
            "password_hash": generate_password_hash(password),
            "created_at": now,
        }
        user_id = store.insert(USERS, fields)
        store.insert(BANKROLL, {"user_id": user_id, "amount": 0.0, "updated_at": now})
        store.insert(
            USER_SETTINGS,
            {"user_id": user_id, "weekly_goals": "", "session_notes": ""},
        )

    logger.info("Registered user %s (%s)", user_id, username)
    return User(id=user_id, **fields)


def authenticate(store: LedgerStore, login: str, password: str) -> User:
    """
    Check a username-or-email and password pair.

    An unknown login and a wrong password fail the same way.
    """

    if not login or not password:
        raise ValidationError(
            "All fields are required.",
            fields=[name for name, value in (("username", login), ("password", password)) if not value],
        )

    login = login.strip()
    row = store.find_one(USERS, {"username": login}) or store.find_one(USERS, {"email": login})
    if row is None or not check_password_hash(row["password_hash"], password):
        raise Unauthenticated("Invalid credentials")
    return _to_user(row)


def get_user(store: LedgerStore, user_id: int) -> User:
    row = store.find_one(USERS, {"id": user_id})
    if row is None:
        raise NotFound("User not found")
    return _to_user(row)
