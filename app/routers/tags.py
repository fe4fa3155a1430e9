import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.auth import MODERATION_ROLES
from app.database import get_db
from app.dependencies import RequireUser
from app.schemas import TagCreate, TagResponse, TagSummary, TagUpdate
from app.services import tag_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tags", tags=["tags"])

require_moderator = RequireUser(*MODERATION_ROLES)


@router.get("", response_model=list[TagSummary], summary="List tags with article counts")
async def list_tags(db: AsyncSession = Depends(get_db)):
    return await tag_service.get_tags(db)


@router.get("/{tag_id}", summary="Get a tag and its articles")
async def get_tag(tag_id: int, db: AsyncSession = Depends(get_db)):
    tag = await tag_service.get_tag(db, tag_id)
    if not tag:
        logger.warning("Tag %d not found", tag_id)
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag


@router.post("", status_code=201, response_model=TagResponse, summary="Create a tag")
async def create_tag(
    data: TagCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_moderator),
):
    try:
        tag = await tag_service.create_tag(db, data)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="A tag with this name already exists")
    logger.info("Tag created: %s", tag["name"])
    return tag


@router.put("/{tag_id}", response_model=TagResponse, summary="Rename a tag")
async def update_tag(
    tag_id: int,
    data: TagUpdate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_moderator),
):
    try:
        tag = await tag_service.update_tag(db, tag_id, data)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="A tag with this name already exists")
    except StaleDataError:
        logger.error("Concurrent update of tag %d", tag_id)
        await db.rollback()
        if not await tag_service.tag_exists(db, tag_id):
            raise HTTPException(status_code=404, detail="Tag not found")
        raise
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    logger.info("Tag %d renamed to %s", tag_id, tag["name"])
    return tag


@router.delete("/{tag_id}", status_code=204, summary="Delete a tag")
async def delete_tag(
    tag_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_moderator),
):
    if not await tag_service.delete_tag(db, tag_id):
        logger.warning("Tag %d not found for deletion", tag_id)
        raise HTTPException(status_code=404, detail="Tag not found")
    logger.info("Tag %d deleted", tag_id)
