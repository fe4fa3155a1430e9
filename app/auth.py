"""
Cookie-session authentication and role policies.

The signed session cookie is maintained by Starlette's ``SessionMiddleware``;
this module only decides what goes into it.  A signed-in session carries the
user's id, email and role name, mirroring the identity claims the rest of
the application reads.  The user row is re-read on every request (see
``app.dependencies``) so deleted users and role changes take effect
immediately.
"""
from passlib.context import CryptContext
from starlette.requests import Request

ADMINISTRATOR = "Administrator"
MODERATOR = "Moderator"
DEFAULT_USER = "DefaultUser"

DEFAULT_ROLES: dict[str, str] = {
    ADMINISTRATOR: "Full access: manages users, roles, tags and all content",
    MODERATOR: "Manages tags and moderates articles and comments",
    DEFAULT_USER: "Writes articles and comments",
}

# Named policies, each satisfied by any of the listed roles.
POLICIES: dict[str, tuple[str, ...]] = {
    "AdminOnly": (ADMINISTRATOR,),
    "ModeratorOnly": (MODERATOR,),
    "UserOnly": (DEFAULT_USER,),
}

# Roles allowed to touch content they do not own.
MODERATION_ROLES: tuple[str, ...] = (ADMINISTRATOR, MODERATOR)

_SESSION_KEY = "user"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class LoginRequired(Exception):
    """Raised by web views when no user is signed in."""

    def __init__(self, next_url: str = "/") -> None:
        self.next_url = next_url


class AccessDenied(Exception):
    """Raised by web views when the signed-in user fails a role policy."""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    return pwd_context.verify(plain_password, password_hash)


def sign_in(request: Request, user: dict) -> None:
    request.session[_SESSION_KEY] = {
        "id": user["id"],
        "email": user["email"],
        "role": user["role"]["name"] if user.get("role") else None,
    }


def sign_out(request: Request) -> None:
    request.session.clear()


def session_user_id(request: Request) -> int | None:
    data = request.session.get(_SESSION_KEY)
    if not data:
        return None
    return data.get("id")


def has_role(user: dict | None, *roles: str) -> bool:
    if user is None or user.get("role") is None:
        return False
    return user["role"]["name"] in roles


def can_modify(user: dict | None, owner_id: int) -> bool:
    """Owners and moderators may edit or delete a piece of content."""
    if user is None:
        return False
    return user["id"] == owner_id or has_role(user, *MODERATION_ROLES)
