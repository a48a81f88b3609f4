from __future__ import annotations

DELETE_KINDS = ("session", "note")


def encode_delete_confirmation(
    kind: str, record_id: int, requester_id: int, accepted: bool
) -> str:
    """
    Encode a confirm/cancel callback for deleting a session or player note.

    `requester_id` is the Telegram user who asked for the delete; only that
    user may answer the prompt.

    Format:
      del:{kind}:{record_id}:{requester_id}:yes
      del:{kind}:{record_id}:{requester_id}:no
    """

    if kind not in DELETE_KINDS:
        raise ValueError(f"Unknown delete kind: {kind}")
    suffix = "yes" if accepted else "no"
    return f"del:{kind}:{record_id}:{requester_id}:{suffix}"


def parse_delete_confirmation(data: str) -> tuple[str, int, int, bool]:
    parts = data.split(":")
    if (
        len(parts) != 5
        or parts[0] != "del"
        or parts[1] not in DELETE_KINDS
        or parts[4] not in ("yes", "no")
    ):
        raise ValueError(f"Invalid delete confirmation callback data: {data}")

    kind = parts[1]
    try:
        record_id = int(parts[2])
        requester_id = int(parts[3])
    except ValueError:
        raise ValueError(f"Invalid delete confirmation callback data: {data}") from None
    accepted = parts[4] == "yes"
    return kind, record_id, requester_id, accepted


def is_delete_confirmation(data: str) -> bool:
    return data.startswith("del:")
