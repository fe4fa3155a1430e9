import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.auth import AccessDenied, can_modify
from app.database import get_db
from app.dependencies import RequireUser
from app.schemas import CommentCreate, CommentUpdate
from app.services import article_service, comment_service
from app.templating import PageNotFound, form_errors, redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/comment", include_in_schema=False)

require_login = RequireUser(web=True)


async def _comment_or_404(db: AsyncSession, comment_id: int) -> dict:
    comment = await comment_service.get_comment(db, comment_id)
    if comment is None:
        logger.warning("Comment %d not found", comment_id)
        raise PageNotFound("Comment not found")
    return comment


@router.get("/details/{comment_id}")
async def details(request: Request, comment_id: int, db: AsyncSession = Depends(get_db)):
    comment = await _comment_or_404(db, comment_id)
    logger.info("Comment %d details shown", comment_id)
    return render(request, "comment/details.html", {"comment": comment})


@router.get("/create")
async def create_form(
    request: Request,
    article_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    if not await article_service.article_exists(db, article_id):
        raise PageNotFound("Article not found")
    return render(
        request,
        "comment/form.html",
        {"form": {"article_id": article_id}, "errors": {}, "action": "/comment/create"},
    )


@router.post("/create")
async def create(
    request: Request,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    form = await request.form()
    values = {"article_id": form.get("article_id"), "content": form.get("content", "")}
    try:
        data = CommentCreate(**values)
    except ValidationError as exc:
        return render(
            request,
            "comment/form.html",
            {"form": values, "errors": form_errors(exc), "action": "/comment/create"},
            status_code=400,
        )

    comment = await comment_service.create_comment(db, user["id"], data)
    if comment is None:
        logger.warning("Comment on missing article %d", data.article_id)
        raise PageNotFound("Article not found")

    logger.info("Comment added to article %d by user %d", data.article_id, user["id"])
    # Back to the article without counting another view.
    return redirect(f"/article/details/{data.article_id}?is_view=false")


@router.get("/edit/{comment_id}")
async def edit_form(
    request: Request,
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    comment = await _comment_or_404(db, comment_id)
    if not can_modify(user, comment["user_id"]):
        raise AccessDenied()
    return render(
        request,
        "comment/form.html",
        {"form": comment, "errors": {}, "action": f"/comment/edit/{comment_id}"},
    )


@router.post("/edit/{comment_id}")
async def edit(
    request: Request,
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    comment = await _comment_or_404(db, comment_id)
    if not can_modify(user, comment["user_id"]):
        raise AccessDenied()

    form = await request.form()
    values = {"content": form.get("content", "")}
    try:
        data = CommentUpdate(**values)
    except ValidationError as exc:
        return render(
            request,
            "comment/form.html",
            {
                "form": {**comment, **values},
                "errors": form_errors(exc),
                "action": f"/comment/edit/{comment_id}",
            },
            status_code=400,
        )

    try:
        await comment_service.update_comment(db, comment_id, data)
    except StaleDataError:
        logger.error("Concurrent update of comment %d", comment_id)
        await db.rollback()
        if not await comment_service.comment_exists(db, comment_id):
            raise PageNotFound("Comment not found")
        raise
    logger.info("Comment %d updated", comment_id)
    return redirect("/home/comments")


@router.get("/delete/{comment_id}")
async def delete_confirm(
    request: Request,
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    comment = await _comment_or_404(db, comment_id)
    if not can_modify(user, comment["user_id"]):
        raise AccessDenied()
    return render(
        request,
        "confirm_delete.html",
        {
            "kind": "comment",
            "label": comment["content"][:80],
            "action": f"/comment/delete/{comment_id}",
            "cancel": "/home/comments",
        },
    )


@router.post("/delete/{comment_id}")
async def delete(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_login),
):
    comment = await _comment_or_404(db, comment_id)
    if not can_modify(user, comment["user_id"]):
        raise AccessDenied()
    await comment_service.delete_comment(db, comment_id)
    logger.info("Comment %d deleted by user %d", comment_id, user["id"])
    return redirect("/home/comments")
