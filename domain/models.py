from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


# Assumed buy-in per game used to turn weekly earnings into an ROI figure.
GAME_COST_UNIT = 7.5


@dataclass
class User:
    """
    Identity anchor for everything the tracker stores.

    The password hash is opaque here; only `application.accounts` knows how
    it was produced.
    """

    id: int
    username: str
    email: str
    password_hash: str
    created_at: str = ""

    def to_public_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username, "email": self.email}


@dataclass
class Session:
    """
    One ledger entry: a single play/study session.

    Sessions are never edited in place. `play_time` and `study_time` are in
    seconds, `earnings` is signed (a losing session is negative).
    """

    id: int
    user_id: int
    date: str
    play_time: int = 0
    study_time: int = 0
    games: int = 0
    hands: int = 0
    earnings: float = 0.0
    notes: str = ""
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class BankrollAccount:
    """Materialized running balance: always the sum of the user's session earnings."""

    user_id: int
    amount: float = 0.0
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": self.amount, "updated_at": self.updated_at}


@dataclass
class BankrollAudit:
    """Comparison between the stored bankroll and the sum recomputed from sessions."""

    user_id: int
    recorded: float
    expected: float

    @property
    def drift(self) -> float:
        return self.recorded - self.expected

    @property
    def consistent(self) -> bool:
        return abs(self.drift) < 1e-9

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recorded": self.recorded,
            "expected": self.expected,
            "drift": self.drift,
            "consistent": self.consistent,
        }


@dataclass
class PlayerNote:
    """
    Free-form read on an opponent.

    `player_name` is plain text; there is no Player entity behind it.
    """

    id: int
    user_id: int
    player_name: str
    category: str
    note_text: str
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class UserSettings:
    user_id: int
    weekly_goals: str = ""
    session_notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"weekly_goals": self.weekly_goals, "session_notes": self.session_notes}


@dataclass
class StatsReport:
    """All-time, trailing-week and trailing-month rollups for one user."""

    total_hours: float = 0.0
    total_earnings: float = 0.0
    global_hourly_rate: float = 0.0
    week_hours: float = 0.0
    week_earnings: float = 0.0
    week_games: int = 0
    week_hands: int = 0
    month_earnings: float = 0.0
    week_roi: float = 0.0
    # Counts sessions in the week window, not distinct calendar days.
    days_this_week: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalHours": self.total_hours,
            "totalEarnings": self.total_earnings,
            "globalHourlyRate": self.global_hourly_rate,
            "weekHours": self.week_hours,
            "weekEarnings": self.week_earnings,
            "weekGames": self.week_games,
            "weekHands": self.week_hands,
            "monthEarnings": self.month_earnings,
            "weekROI": self.week_roi,
            "daysThisWeek": self.days_this_week,
        }
