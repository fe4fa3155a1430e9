from fastapi import Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import AccessDenied, LoginRequired, POLICIES, has_role, session_user_id, sign_out
from app.config import settings
from app.database import get_db
from app.services import user_service


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination /
    sorting query parameters.

    Usage in a router::

        @router.get("/articles")
        async def list_articles(pagination: PaginationParams = Depends(PaginationParams)):
            ...

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    page_size:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    sort_by:
        ORM column name to sort by.  The service layer is responsible
        for validating that this maps to a real column before passing it
        to SQLAlchemy.
    sort_order:
        ``"asc"`` or ``"desc"`` (enforced by the regex pattern).
    """

    def __init__(
        self,
        page: int = Query(
            1,
            ge=1,
            description="Page number (1-based).",
        ),
        page_size: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            le=100,
            description="Number of items returned per page (max 100).",
        ),
        sort_by: str = Query(
            "publication_date",
            description="Column name to sort results by.",
        ),
        sort_order: str = Query(
            "desc",
            pattern="^(asc|desc)$",
            description="Sort direction: 'asc' or 'desc'.",
        ),
    ) -> None:
        self.page = page
        self.page_size = min(page_size, settings.MAX_PAGE_SIZE)
        self.sort_by = sort_by
        self.sort_order = sort_order


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def get_current_user(
    request: Request, db: AsyncSession = Depends(get_db)
) -> dict | None:
    """
    Return the signed-in user (with role) or None for anonymous requests.

    A session that points at a user who no longer exists is cleared.  The
    resolved user is also kept on ``request.state.current_user`` so pages
    render the navigation from the current row, not the sign-in snapshot.
    """
    request.state.current_user = None
    user_id = session_user_id(request)
    if user_id is None:
        return None
    user = await user_service.get_user(db, user_id)
    if user is None:
        sign_out(request)
    request.state.current_user = user
    return user


class RequireUser:
    """
    Dependency that demands a signed-in user, optionally holding one of
    *roles*.

    API routes get 401 / 403 responses.  With ``web=True`` the failures
    raise ``LoginRequired`` / ``AccessDenied`` instead, which the
    application turns into redirects to the login and access-denied pages.

    ::

        admin = Depends(RequireUser(ADMINISTRATOR))
        page_user = Depends(RequireUser(web=True))
    """

    def __init__(self, *roles: str, web: bool = False) -> None:
        self.roles = roles
        self.web = web

    async def __call__(
        self, request: Request, user: dict | None = Depends(get_current_user)
    ) -> dict:
        if user is None:
            if self.web:
                raise LoginRequired(str(request.url.path))
            raise HTTPException(status_code=401, detail="Authentication required")
        if self.roles and not has_role(user, *self.roles):
            if self.web:
                raise AccessDenied()
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user


def require_policy(policy: str, web: bool = False) -> RequireUser:
    """Build a ``RequireUser`` dependency from a named policy (e.g. ``"AdminOnly"``)."""
    return RequireUser(*POLICIES[policy], web=web)
