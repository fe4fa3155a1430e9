import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.auth import MODERATION_ROLES
from app.database import get_db
from app.dependencies import RequireUser
from app.schemas import TagCreate, TagUpdate
from app.services import tag_service
from app.templating import PageNotFound, form_errors, redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tag", include_in_schema=False)

require_moderator = RequireUser(*MODERATION_ROLES, web=True)

_DUPLICATE = {"name": "A tag with this name already exists."}


async def _tag_or_404(db: AsyncSession, tag_id: int) -> dict:
    tag = await tag_service.get_tag(db, tag_id)
    if tag is None:
        logger.warning("Tag %d not found", tag_id)
        raise PageNotFound("Tag not found")
    return tag


def _form(request, form: dict, errors: dict, action: str, status_code: int = 200):
    return render(
        request,
        "tag/form.html",
        {"form": form, "errors": errors, "action": action},
        status_code=status_code,
    )


@router.get("")
async def index(request: Request, db: AsyncSession = Depends(get_db)):
    tags = await tag_service.get_tags(db)
    logger.info("Tag list shown")
    return render(request, "home/tags.html", {"tags": tags})


@router.get("/details/{tag_id}")
async def details(request: Request, tag_id: int, db: AsyncSession = Depends(get_db)):
    tag = await _tag_or_404(db, tag_id)
    return render(request, "tag/details.html", {"tag": tag})


@router.get("/create", dependencies=[Depends(require_moderator)])
async def create_form(request: Request):
    return _form(request, {}, {}, "/tag/create")


@router.post("/create", dependencies=[Depends(require_moderator)])
async def create(request: Request, db: AsyncSession = Depends(get_db)):
    form = await request.form()
    values = {"name": form.get("name", "")}
    try:
        data = TagCreate(**values)
    except ValidationError as exc:
        logger.warning("Invalid tag form: %s", form_errors(exc))
        return _form(request, values, form_errors(exc), "/tag/create", 400)

    try:
        tag = await tag_service.create_tag(db, data)
    except IntegrityError:
        await db.rollback()
        return _form(request, values, _DUPLICATE, "/tag/create", 400)
    logger.info("Tag created: %s", tag["name"])
    return redirect("/home/tags")


@router.get("/edit/{tag_id}", dependencies=[Depends(require_moderator)])
async def edit_form(request: Request, tag_id: int, db: AsyncSession = Depends(get_db)):
    tag = await _tag_or_404(db, tag_id)
    return _form(request, tag, {}, f"/tag/edit/{tag_id}")


@router.post("/edit/{tag_id}", dependencies=[Depends(require_moderator)])
async def edit(request: Request, tag_id: int, db: AsyncSession = Depends(get_db)):
    await _tag_or_404(db, tag_id)
    form = await request.form()
    values = {"name": form.get("name", "")}
    action = f"/tag/edit/{tag_id}"
    try:
        data = TagUpdate(**values)
    except ValidationError as exc:
        return _form(request, values, form_errors(exc), action, 400)

    try:
        await tag_service.update_tag(db, tag_id, data)
    except IntegrityError:
        await db.rollback()
        return _form(request, values, _DUPLICATE, action, 400)
    except StaleDataError:
        logger.error("Concurrent update of tag %d", tag_id)
        await db.rollback()
        if not await tag_service.tag_exists(db, tag_id):
            raise PageNotFound("Tag not found")
        raise
    logger.info("Tag %d renamed to %s", tag_id, data.name)
    return redirect("/home/tags")


@router.get("/delete/{tag_id}", dependencies=[Depends(require_moderator)])
async def delete_confirm(request: Request, tag_id: int, db: AsyncSession = Depends(get_db)):
    tag = await _tag_or_404(db, tag_id)
    return render(
        request,
        "confirm_delete.html",
        {
            "kind": "tag",
            "label": tag["name"],
            "action": f"/tag/delete/{tag_id}",
            "cancel": "/home/tags",
        },
    )


@router.post("/delete/{tag_id}", dependencies=[Depends(require_moderator)])
async def delete(tag_id: int, db: AsyncSession = Depends(get_db)):
    if not await tag_service.delete_tag(db, tag_id):
        raise PageNotFound("Tag not found")
    logger.info("Tag %d deleted", tag_id)
    return redirect("/home/tags")
