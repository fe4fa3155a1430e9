import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.auth import AccessDenied, can_modify
from app.database import get_db
from app.dependencies import PaginationParams, RequireUser
from app.schemas import ArticleCreate, ArticleUpdate, PaginatedResponse
from app.services import article_service, tag_service
from app.templating import PageNotFound, form_errors, parse_ids, redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/article", include_in_schema=False)

require_login = RequireUser(web=True)


async def _article_or_404(db: AsyncSession, article_id: int, count_view: bool = False) -> dict:
    article = await article_service.get_article(db, article_id, count_view=count_view)
    if article is None:
        logger.warning("Article %d not found", article_id)
        raise PageNotFound("Article not found")
    return article


async def _render_form(request, db, form: dict, errors: dict, action: str, status_code: int = 200):
    available = await tag_service.get_tags(db)
    selected = set(form.get("tag_ids", []))
    return render(
        request,
        "article/form.html",
        {
            "form": form,
            "errors": errors,
            "action": action,
            "tags": [{**t, "selected": t["id"] in selected} for t in available],
        },
        status_code=status_code,
    )


async def _read_form(request: Request) -> dict:
    form = await request.form()
    return {
        "title": form.get("title", ""),
        "content": form.get("content", ""),
        "tag_ids": parse_ids(form.getlist("tag_ids")),
    }


@router.get("")
async def index(
    request: Request,
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    logger.info("Article list for user %d (%s)", user["id"], user["role"]["name"])
    page = await article_service.get_articles(
        db, pagination.page, pagination.page_size, pagination.sort_by, pagination.sort_order
    )
    return render(request, "home/articles.html", {"heading": "Articles", "page": page})


@router.get("/user-articles")
async def user_articles(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    items = await article_service.get_articles_by_author(db, user["id"])
    logger.info("Own articles page for user %d", user["id"])
    page = PaginatedResponse(
        items=items, total=len(items), page=1, page_size=max(len(items), 1), pages=1
    )
    return render(request, "home/articles.html", {"heading": "My articles", "page": page})


@router.get("/details/{article_id}")
async def details(
    request: Request,
    article_id: int,
    is_view: bool = True,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    article = await _article_or_404(db, article_id, count_view=is_view)
    logger.info("Article %d viewed (%d views)", article_id, article["view_count"])
    return render(
        request,
        "article/details.html",
        {"article": article, "can_modify": can_modify(user, article["user_id"]), "user": user},
    )


@router.get("/create")
async def create_form(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    return await _render_form(request, db, {}, {}, "/article/create")


@router.post("/create")
async def create(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    values = await _read_form(request)
    try:
        data = ArticleCreate(**values)
    except ValidationError as exc:
        logger.warning("Invalid article form from user %d: %s", user["id"], values["title"])
        return await _render_form(request, db, values, form_errors(exc), "/article/create", 400)

    article = await article_service.create_article(db, user["id"], data)
    logger.info("Article %d created by user %d: %s", article["id"], user["id"], article["title"])
    return redirect("/home/articles")


@router.get("/edit/{article_id}")
async def edit_form(
    request: Request,
    article_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    article = await _article_or_404(db, article_id)
    if not can_modify(user, article["user_id"]):
        raise AccessDenied()
    form = {
        "title": article["title"],
        "content": article["content"],
        "tag_ids": [t["id"] for t in article["tags"]],
    }
    return await _render_form(request, db, form, {}, f"/article/edit/{article_id}")


@router.post("/edit/{article_id}")
async def edit(
    request: Request,
    article_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    existing = await _article_or_404(db, article_id)
    if not can_modify(user, existing["user_id"]):
        raise AccessDenied()

    values = await _read_form(request)
    try:
        data = ArticleUpdate(**values)
    except ValidationError as exc:
        return await _render_form(
            request, db, values, form_errors(exc), f"/article/edit/{article_id}", 400
        )

    try:
        await article_service.update_article(db, article_id, data)
    except StaleDataError:
        logger.error("Concurrent update of article %d", article_id)
        await db.rollback()
        if not await article_service.article_exists(db, article_id):
            raise PageNotFound("Article not found")
        raise
    logger.info("Article %d updated, new title: %s", article_id, data.title)
    return redirect("/home/articles")


@router.get("/delete/{article_id}")
async def delete_confirm(
    request: Request,
    article_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    article = await _article_or_404(db, article_id)
    if not can_modify(user, article["user_id"]):
        raise AccessDenied()
    return render(
        request,
        "confirm_delete.html",
        {
            "kind": "article",
            "label": article["title"],
            "action": f"/article/delete/{article_id}",
            "cancel": f"/article/details/{article_id}?is_view=false",
        },
    )


@router.post("/delete/{article_id}")
async def delete(
    article_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    article = await _article_or_404(db, article_id)
    if not can_modify(user, article["user_id"]):
        raise AccessDenied()
    await article_service.delete_article(db, article_id)
    logger.info("Article %d deleted by user %d", article_id, user["id"])
    return redirect("/home/articles")
