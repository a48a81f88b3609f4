from __future__ import annotations

from typing import Iterable, List, Optional


class GrindlogError(Exception):
    """Base class for every error the application layer raises on purpose."""


class Unauthenticated(GrindlogError):
    """No identity token, or one that is malformed, expired or forged."""

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class ValidationError(GrindlogError):
    """
    Missing or malformed input.

    `fields` lists the offending input names so transports can point the
    user at them.
    """

    def __init__(self, message: str, fields: Optional[Iterable[str]] = None) -> None:
        super().__init__(message)
        self.fields: List[str] = list(fields or [])


class NotFound(GrindlogError):
    """
    The referenced record does not exist for this user.

    A record owned by somebody else is reported the same way as a missing one.
    """


class StoreFailure(GrindlogError):
    """The ledger store could not complete an operation."""
