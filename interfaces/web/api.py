from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from flask import Blueprint, Flask, current_app, g, jsonify, request
from werkzeug.exceptions import HTTPException

from application import accounts, notes, services, stats
from application.auth import TokenAuthority
from application.timeutils import parse_timestamp
from domain.errors import NotFound, StoreFailure, Unauthenticated, ValidationError
from domain.repositories import LedgerStore
from infrastructure.config import Settings

logger = logging.getLogger(__name__)

TOKEN_COOKIE = "token"

api_bp = Blueprint("api", __name__)


def _store() -> LedgerStore:
    return current_app.extensions["grindlog.store"]


def _authority() -> TokenAuthority:
    return current_app.extensions["grindlog.authority"]


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _request_token() -> Optional[str]:
    token = request.cookies.get(TOKEN_COOKIE)
    if token:
        return token
    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    return None


def _current_user_id() -> int:
    """The caller's user ID, taken only from the identity token."""

    if "user_id" not in g:
        g.user_id = _authority().resolve_identity(_request_token())
    return g.user_id


def _login_response(user):
    authority = _authority()
    response = jsonify({"success": True, "user": user.to_public_dict()})
    response.set_cookie(
        TOKEN_COOKIE,
        authority.issue_token(user.id),
        max_age=authority.max_age,
        httponly=True,
        samesite="Strict",
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
    )
    return response


# Accounts


@api_bp.route("/register", methods=["POST"])
def register():
    data = _body()
    user = accounts.register(
        _store(),
        data.get("username", ""),
        data.get("email", ""),
        data.get("password", ""),
    )
    return _login_response(user)


@api_bp.route("/login", methods=["POST"])
def login():
    data = _body()
    user = accounts.authenticate(_store(), data.get("username", ""), data.get("password", ""))
    return _login_response(user)


@api_bp.route("/logout", methods=["POST"])
def logout():
    response = jsonify({"success": True})
    response.delete_cookie(TOKEN_COOKIE)
    return response


@api_bp.route("/me", methods=["GET"])
def me():
    user = accounts.get_user(_store(), _current_user_id())
    return jsonify({"user": user.to_public_dict()})


# Sessions and bankroll


@api_bp.route("/sessions", methods=["GET"])
def list_sessions():
    sessions = services.list_sessions(_store(), _current_user_id())
    return jsonify({"sessions": [s.to_dict() for s in sessions]})


@api_bp.route("/sessions", methods=["POST"])
def create_session():
    user_id = _current_user_id()
    data = _body()
    session = services.create_session(
        _store(),
        user_id,
        date=data.get("date"),
        play_time=data.get("playTime"),
        study_time=data.get("studyTime"),
        games=data.get("games"),
        hands=data.get("hands"),
        earnings=data.get("earnings"),
        notes=data.get("notes"),
    )
    return jsonify({"success": True, "session": session.to_dict()})


@api_bp.route("/sessions/<int:session_id>", methods=["DELETE"])
def delete_session(session_id: int):
    services.delete_session(_store(), _current_user_id(), session_id)
    return jsonify({"success": True})


@api_bp.route("/bankroll", methods=["GET"])
def bankroll():
    account = services.get_bankroll(_store(), _current_user_id())
    return jsonify(account.to_dict())


@api_bp.route("/bankroll/audit", methods=["GET"])
def bankroll_audit():
    audit = services.audit_bankroll(_store(), _current_user_id())
    return jsonify(audit.to_dict())


# Player notes and settings


@api_bp.route("/player-notes", methods=["GET"])
def list_player_notes():
    player_notes = notes.list_player_notes(_store(), _current_user_id())
    return jsonify({"notes": [n.to_dict() for n in player_notes]})


@api_bp.route("/player-notes", methods=["POST"])
def create_player_note():
    user_id = _current_user_id()
    data = _body()
    note = notes.create_player_note(
        _store(),
        user_id,
        data.get("playerName"),
        data.get("category"),
        data.get("noteText"),
    )
    return jsonify({"success": True, "note": note.to_dict()})


@api_bp.route("/player-notes/<int:note_id>", methods=["DELETE"])
def delete_player_note(note_id: int):
    notes.delete_player_note(_store(), _current_user_id(), note_id)
    return jsonify({"success": True})


@api_bp.route("/settings", methods=["GET"])
def get_settings():
    settings = notes.get_settings(_store(), _current_user_id())
    return jsonify({"settings": settings.to_dict()})


@api_bp.route("/settings", methods=["PUT"])
def save_settings():
    user_id = _current_user_id()
    data = _body()
    settings = notes.save_settings(
        _store(),
        user_id,
        weekly_goals=data.get("weeklyGoals"),
        session_notes=data.get("sessionNotes"),
    )
    return jsonify({"success": True, "settings": settings.to_dict()})


# Stats


@api_bp.route("/stats", methods=["GET"])
def get_stats():
    user_id = _current_user_id()
    as_of = None
    raw_as_of = request.args.get("asOf")
    if raw_as_of:
        as_of = parse_timestamp(raw_as_of)
        if as_of is None:
            raise ValidationError("asOf must be an ISO-8601 timestamp.", fields=["asOf"])
    report = stats.compute_stats(_store(), user_id, as_of)
    return jsonify(report.to_dict())


# Error mapping


def _error(message: str, status: int, **extra: Any):
    payload: Dict[str, Any] = {"error": message}
    payload.update(extra)
    return jsonify(payload), status


@api_bp.errorhandler(Unauthenticated)
def handle_unauthenticated(exc: Unauthenticated):
    return _error(str(exc), 401)


@api_bp.errorhandler(ValidationError)
def handle_validation_error(exc: ValidationError):
    return _error(str(exc), 400, fields=exc.fields)


@api_bp.errorhandler(NotFound)
def handle_not_found(exc: NotFound):
    return _error(str(exc), 404)


@api_bp.errorhandler(StoreFailure)
def handle_store_failure(exc: StoreFailure):
    logger.error("Request %s %s failed in the ledger store", request.method, request.path, exc_info=exc)
    return _error("Internal server error", 500)


@api_bp.errorhandler(Exception)
def handle_unexpected(exc: Exception):
    if isinstance(exc, HTTPException):
        return _error(exc.description or exc.name, exc.code or 500)
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return _error("Internal server error", 500)


def create_app(
    store: LedgerStore,
    authority: TokenAuthority,
    settings: Optional[Settings] = None,
) -> Flask:
    """
    Build the Flask app serving the JSON API under `/api`.

    The store and token authority are injected so tests can run each case
    against its own instances.
    """

    app = Flask(__name__)
    if settings is not None:
        app.config["DEBUG"] = settings.debug
        app.config["SECRET_KEY"] = settings.secret_key
        app.config["SESSION_COOKIE_SECURE"] = not settings.debug

    app.extensions["grindlog.store"] = store
    app.extensions["grindlog.authority"] = authority
    app.register_blueprint(api_bp, url_prefix="/api")

    @app.errorhandler(404)
    def handle_unknown_route(exc):
        return _error("Not found", 404)

    return app
