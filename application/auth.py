from __future__ import annotations

import logging
from typing import Optional

from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer

from domain.errors import Unauthenticated
from domain.repositories import IdentityRepository

logger = logging.getLogger(__name__)

TOKEN_SALT = "grindlog-identity"


class TokenAuthority:
    """
    Issues and resolves the opaque identity tokens used by the HTTP surface.

    Callers only ever see `issue_token(user_id) -> str` and
    `resolve_identity(token) -> user_id`; the signing scheme stays here.
    """

    def __init__(self, secret_key: str, max_age: int) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)
        self._max_age = max_age

    @property
    def max_age(self) -> int:
        return self._max_age

    def issue_token(self, user_id: int) -> str:
        return self._serializer.dumps({"uid": int(user_id)})

    def resolve_identity(self, token: Optional[str]) -> int:
        if not token:
            raise Unauthenticated("Not authenticated")

        try:
            payload = self._serializer.loads(token, max_age=self._max_age)
        except SignatureExpired:
            logger.debug("Rejected expired identity token")
            raise Unauthenticated("Token expired") from None
        except BadData:
            logger.debug("Rejected malformed or tampered identity token")
            raise Unauthenticated("Invalid token") from None

        user_id = payload.get("uid") if isinstance(payload, dict) else None
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise Unauthenticated("Invalid token")
        return user_id


def resolve_external_identity(
    identity_repo: IdentityRepository,
    provider: str,
    provider_user_id: str,
) -> int:
    """
    Chat-side identity resolution: the user ID linked to a chat account.

    Raises `Unauthenticated` until the chat account has logged in.
    """

    user_id = identity_repo.find_user_id_by_external(provider, provider_user_id)
    if user_id is None:
        raise Unauthenticated("You are not logged in. Use login <username> <password> first.")
    return user_id
