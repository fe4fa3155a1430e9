import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.auth import can_modify
from app.database import get_db
from app.dependencies import PaginationParams, RequireUser
from app.schemas import ArticleCreate, ArticleDetail, ArticleUpdate, PaginatedResponse
from app.services import article_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/articles", tags=["articles"])


async def _get_or_404(db: AsyncSession, article_id: int) -> dict:
    article = await article_service.get_article(db, article_id)
    if not article:
        logger.warning("Article %d not found", article_id)
        raise HTTPException(status_code=404, detail="Article not found")
    return article


@router.get("", response_model=PaginatedResponse, summary="List all articles")
async def list_articles(
    pagination: PaginationParams = Depends(),
    db: AsyncSession = Depends(get_db),
):
    return await article_service.get_articles(
        db, pagination.page, pagination.page_size, pagination.sort_by, pagination.sort_order
    )


@router.get("/{article_id}", response_model=ArticleDetail, summary="Get an article by id")
async def get_article(article_id: int, db: AsyncSession = Depends(get_db)):
    article = await _get_or_404(db, article_id)
    logger.info("Fetched article %d: %s", article_id, article["title"])
    return article


@router.post("", status_code=201, response_model=ArticleDetail, summary="Create an article")
async def create_article(
    data: ArticleCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(RequireUser()),
):
    article = await article_service.create_article(db, user["id"], data)
    logger.info("Article %d created by user %d", article["id"], user["id"])
    return article


@router.put("/{article_id}", response_model=ArticleDetail, summary="Update an article")
async def update_article(
    article_id: int,
    data: ArticleUpdate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(RequireUser()),
):
    existing = await _get_or_404(db, article_id)
    if not can_modify(user, existing["user_id"]):
        raise HTTPException(status_code=403, detail="Not allowed to edit this article")

    try:
        article = await article_service.update_article(db, article_id, data)
    except StaleDataError:
        logger.error("Concurrent update of article %d", article_id)
        await db.rollback()
        if not await article_service.article_exists(db, article_id):
            raise HTTPException(status_code=404, detail="Article not found")
        raise
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")
    logger.info("Article %d updated, new title: %s", article_id, article["title"])
    return article


@router.delete("/{article_id}", status_code=204, summary="Delete an article")
async def delete_article(
    article_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(RequireUser()),
):
    existing = await _get_or_404(db, article_id)
    if not can_modify(user, existing["user_id"]):
        raise HTTPException(status_code=403, detail="Not allowed to delete this article")

    await article_service.delete_article(db, article_id)
    logger.info("Article %d deleted", article_id)
