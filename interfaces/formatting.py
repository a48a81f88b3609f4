from __future__ import annotations

import math
from typing import Any, Dict, List, Sequence

from domain.errors import GrindlogError, StoreFailure, ValidationError
from domain.models import BankrollAccount, PlayerNote, Session, StatsReport, UserSettings

SESSION_LIST_LIMIT = 10

SESSION_USAGE = "session <date> <earnings> [play_minutes] [games] [hands] [study_minutes] [notes...]"

PRIVATE_CHAT_ONLY = (
    "Passwords are not accepted in group chats. "
    "Send register and login to the bot in a private message."
)


def help_text(prefix: str) -> str:
    """Command reference shared by the chat bots; `prefix` is `!` or `/`."""

    lines = [
        ("register <username> <email> <password>", "create an account and log in"),
        ("login <username> <password>", "link this chat to your account"),
        ("logout", "unlink this chat"),
        (SESSION_USAGE, "log a session"),
        ("sessions", f"show your last {SESSION_LIST_LIMIT} sessions"),
        ("delete <session_id>", "delete a session"),
        ("bankroll", "show your bankroll"),
        ("stats", "all-time, weekly and monthly stats"),
        ("note <player> <category> <text...>", "save a note about a player"),
        ("notes", "list your player notes"),
        ("delnote <note_id>", "delete a player note"),
        ("goals <text...>", "set your weekly goals"),
        ("settings", "show your weekly goals and session notes"),
    ]
    return "\n".join(f"{prefix}{usage} - {description}" for usage, description in lines)


def minutes_to_seconds(name: str, value: str) -> int:
    try:
        minutes = float(value)
    except ValueError:
        raise ValidationError(f"{name} must be a number of minutes.", fields=[name]) from None
    seconds = minutes * 60
    if not math.isfinite(seconds):
        raise ValidationError(f"{name} must be a finite number of minutes.", fields=[name])
    return int(round(seconds))


def parse_session_args(args: Sequence[str]) -> Dict[str, Any]:
    """
    Turn chat arguments into keyword arguments for `create_session`.

    Play and study times are typed in minutes and converted to seconds.
    """

    if len(args) < 2:
        raise ValidationError(f"Usage: {SESSION_USAGE}", fields=["date", "earnings"])

    date, earnings, *rest = args
    play_minutes = rest[0] if len(rest) > 0 else "0"
    games = rest[1] if len(rest) > 1 else "0"
    hands = rest[2] if len(rest) > 2 else "0"
    study_minutes = rest[3] if len(rest) > 3 else "0"
    notes = " ".join(rest[4:])

    return {
        "date": date,
        "earnings": earnings,
        "play_time": minutes_to_seconds("play_minutes", play_minutes),
        "games": games,
        "hands": hands,
        "study_time": minutes_to_seconds("study_minutes", study_minutes),
        "notes": notes,
    }


def parse_id(name: str, value: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number.", fields=[name]) from None


def format_money(amount: float) -> str:
    return f"{amount:+.2f}"


def format_session(session: Session) -> str:
    hours = session.play_time / 3600
    line = (
        f"#{session.id} {session.date}: {format_money(session.earnings)} "
        f"in {hours:.1f}h, {session.games} games, {session.hands} hands"
    )
    if session.notes:
        line += f" ({session.notes})"
    return line


def format_sessions(sessions: List[Session]) -> str:
    if not sessions:
        return "No sessions recorded yet."
    shown = sessions[:SESSION_LIST_LIMIT]
    lines = [format_session(s) for s in shown]
    if len(sessions) > len(shown):
        lines.append(f"... and {len(sessions) - len(shown)} older sessions")
    return "\n".join(lines)


def format_bankroll(account: BankrollAccount) -> str:
    return f"Bankroll: {account.amount:.2f}"


def format_stats(report: StatsReport) -> str:
    return "\n".join(
        [
            f"All time: {report.total_hours:.1f}h, {format_money(report.total_earnings)} "
            f"({report.global_hourly_rate:.2f}/h)",
            f"This week: {report.days_this_week} sessions, {report.week_hours:.1f}h, "
            f"{format_money(report.week_earnings)}, {report.week_games} games, "
            f"{report.week_hands} hands, ROI {report.week_roi:.1f}%",
            f"Last 30 days: {format_money(report.month_earnings)}",
        ]
    )


def format_note(note: PlayerNote) -> str:
    return f"#{note.id} {note.player_name} [{note.category}]: {note.note_text}"


def format_notes(notes: List[PlayerNote]) -> str:
    if not notes:
        return "No player notes yet."
    return "\n".join(format_note(n) for n in notes)


def format_settings(settings: UserSettings) -> str:
    return (
        f"Weekly goals: {settings.weekly_goals or '-'}\n"
        f"Session notes: {settings.session_notes or '-'}"
    )


def user_facing_error(exc: GrindlogError) -> str:
    """Message to show in chat; store internals are never echoed."""

    if isinstance(exc, StoreFailure):
        return "Something went wrong, please try again later."
    return str(exc)
