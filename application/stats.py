from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from application.services import list_sessions
from application.timeutils import parse_timestamp, utc_now
from domain.models import GAME_COST_UNIT, Session, StatsReport
from domain.repositories import LedgerStore

WEEK = timedelta(days=7)
MONTH = timedelta(days=30)


def _in_window(session: Session, since: datetime) -> bool:
    # Lower bound only: future-dated sessions fall inside every window.
    played_at = parse_timestamp(session.date)
    return played_at is not None and played_at >= since


def summarize_sessions(sessions: Iterable[Session], as_of: datetime) -> StatsReport:
    """
    Build a `StatsReport` from raw sessions as seen at `as_of`.

    Windows are flat trailing spans (7 and 30 days of wall-clock time, not
    calendar weeks or months) with an inclusive lower bound. Empty input gives
    an all-zero report.
    """

    if as_of.tzinfo is not None:
        as_of = as_of.astimezone(timezone.utc).replace(tzinfo=None)

    sessions = list(sessions)
    week = [s for s in sessions if _in_window(s, as_of - WEEK)]
    month = [s for s in sessions if _in_window(s, as_of - MONTH)]

    total_hours = sum(s.play_time for s in sessions) / 3600
    total_earnings = sum(s.earnings for s in sessions)

    week_earnings = sum(s.earnings for s in week)
    week_games = sum(s.games for s in week)

    return StatsReport(
        total_hours=total_hours,
        total_earnings=total_earnings,
        global_hourly_rate=total_earnings / total_hours if total_hours > 0 else 0,
        week_hours=sum(s.play_time for s in week) / 3600,
        week_earnings=week_earnings,
        week_games=week_games,
        week_hands=sum(s.hands for s in week),
        month_earnings=sum(s.earnings for s in month),
        week_roi=(week_earnings / (week_games * GAME_COST_UNIT)) * 100 if week_games > 0 else 0,
        days_this_week=len(week),
    )


def compute_stats(
    store: LedgerStore,
    user_id: int,
    as_of: Optional[datetime] = None,
) -> StatsReport:
    """Compute the user's rollups from the ledger; `as_of` defaults to now (UTC)."""

    sessions: List[Session] = list_sessions(store, user_id)
    return summarize_sessions(sessions, as_of or utc_now())
