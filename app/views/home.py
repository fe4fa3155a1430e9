import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import PaginationParams, require_policy
from app.services import article_service, comment_service, role_service, tag_service, user_service
from app.templating import redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(include_in_schema=False)


@router.get("/")
async def index():
    logger.info("Home page, redirecting to the article list")
    return redirect("/home/articles")


@router.get("/home/articles")
async def articles(
    request: Request,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    page = await article_service.get_articles(
        db, pagination.page, pagination.page_size, pagination.sort_by, pagination.sort_order
    )
    return render(request, "home/articles.html", {"heading": "Articles", "page": page})


@router.get("/home/comments")
async def comments(request: Request, db: AsyncSession = Depends(get_db)):
    items = await comment_service.get_comments(db)
    return render(request, "home/comments.html", {"comments": items})


@router.get("/home/tags")
async def tags(request: Request, db: AsyncSession = Depends(get_db)):
    items = await tag_service.get_tags(db)
    return render(request, "home/tags.html", {"tags": items})


@router.get("/home/users", dependencies=[Depends(require_policy("AdminOnly", web=True))])
async def users(request: Request, db: AsyncSession = Depends(get_db)):
    items = await user_service.get_users(db)
    return render(request, "home/users.html", {"users": items})


@router.get("/home/roles", dependencies=[Depends(require_policy("AdminOnly", web=True))])
async def roles(request: Request, db: AsyncSession = Depends(get_db)):
    items = await role_service.get_roles(db)
    return render(request, "home/roles.html", {"roles": items})


# ---------------------------------------------------------------------------
# Role dashboards, one per authorization policy
# ---------------------------------------------------------------------------

@router.get("/admin")
async def admin_dashboard(request: Request, user: dict = Depends(require_policy("AdminOnly", web=True))):
    return render(request, "dashboard.html", {"title": "Administrator", "user": user})


@router.get("/moderator")
async def moderator_dashboard(
    request: Request, user: dict = Depends(require_policy("ModeratorOnly", web=True))
):
    return render(request, "dashboard.html", {"title": "Moderator", "user": user})


@router.get("/default-user")
async def default_user_dashboard(
    request: Request, user: dict = Depends(require_policy("UserOnly", web=True))
):
    return render(request, "dashboard.html", {"title": "Author", "user": user})
