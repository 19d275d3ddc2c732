"""Cart identities and the request-level identity resolver.

Every cart operation is keyed by exactly one identity. ``resolve_identity`` is
the only place that looks at request credentials: an authenticated user always
wins over a guest ``X-Session-Id`` header, and the rest of the cart code only
ever sees the resulting tagged value.
"""

from dataclasses import dataclass
from typing import Union

from common.exceptions import InvalidRequest

SESSION_HEADER = "X-Session-Id"
SESSION_ID_MAX_LENGTH = 64


@dataclass(frozen=True)
class UserIdentity:
    user_id: int

    is_user = True

    def log_fields(self) -> dict:
        return {"user_id": self.user_id, "guest": False}


@dataclass(frozen=True)
class SessionIdentity:
    session_id: str

    is_user = False

    def log_fields(self) -> dict:
        return {"session_id": self.session_id, "guest": True}


CartIdentity = Union[UserIdentity, SessionIdentity]


class MissingIdentity(InvalidRequest):
    code = "missing_session"
    default_detail = "Missing X-Session-Id."


def clean_session_id(value) -> str:
    """Normalise a client supplied session id, raising when it is unusable."""

    session_id = (value or "").strip() if isinstance(value, str) else ""
    if not session_id:
        raise MissingIdentity()
    if len(session_id) > SESSION_ID_MAX_LENGTH:
        raise InvalidRequest(f"Session id must be at most {SESSION_ID_MAX_LENGTH} characters.")
    return session_id


def resolve_identity(request) -> CartIdentity:
    """Return the cart identity for a request.

    Session ids are client supplied and unauthenticated; they only correlate
    anonymous requests and are never trusted for anything else.
    """

    user = getattr(request, "user", None)
    if user is not None and getattr(user, "is_authenticated", False):
        return UserIdentity(user_id=int(user.id))
    return SessionIdentity(session_id=clean_session_id(request.headers.get(SESSION_HEADER)))
