import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.auth import can_modify
from app.database import get_db
from app.dependencies import RequireUser
from app.schemas import CommentCreate, CommentResponse, CommentUpdate
from app.services import comment_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


async def _get_or_404(db: AsyncSession, comment_id: int) -> dict:
    comment = await comment_service.get_comment(db, comment_id)
    if not comment:
        logger.warning("Comment %d not found", comment_id)
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment


@router.get("", response_model=list[CommentResponse], summary="List all comments")
async def list_comments(db: AsyncSession = Depends(get_db)):
    return await comment_service.get_comments(db)


@router.get("/{comment_id}", response_model=CommentResponse, summary="Get a comment by id")
async def get_comment(comment_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_or_404(db, comment_id)


@router.post("", status_code=201, response_model=CommentResponse, summary="Comment on an article")
async def create_comment(
    data: CommentCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(RequireUser()),
):
    comment = await comment_service.create_comment(db, user["id"], data)
    if not comment:
        logger.warning("Comment on missing article %d", data.article_id)
        raise HTTPException(status_code=404, detail="Article not found")
    logger.info("Comment %d added to article %d by user %d", comment["id"], data.article_id, user["id"])
    return comment


@router.put("/{comment_id}", response_model=CommentResponse, summary="Edit a comment")
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(RequireUser()),
):
    existing = await _get_or_404(db, comment_id)
    if not can_modify(user, existing["user_id"]):
        raise HTTPException(status_code=403, detail="Not allowed to edit this comment")

    try:
        comment = await comment_service.update_comment(db, comment_id, data)
    except StaleDataError:
        logger.error("Concurrent update of comment %d", comment_id)
        await db.rollback()
        if not await comment_service.comment_exists(db, comment_id):
            raise HTTPException(status_code=404, detail="Comment not found")
        raise
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    logger.info("Comment %d updated", comment_id)
    return comment


@router.delete("/{comment_id}", status_code=204, summary="Delete a comment")
async def delete_comment(
    comment_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(RequireUser()),
):
    existing = await _get_or_404(db, comment_id)
    if not can_modify(user, existing["user_id"]):
        raise HTTPException(status_code=403, detail="Not allowed to delete this comment")

    await comment_service.delete_comment(db, comment_id)
    logger.info("Comment %d deleted", comment_id)
