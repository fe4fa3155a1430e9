import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.auth import ADMINISTRATOR, has_role
from app.database import get_db
from app.dependencies import RequireUser, require_policy
from app.schemas import ArticleResponse, UserCreate, UserResponse, UserUpdate
from app.services import article_service, user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])

require_admin = require_policy("AdminOnly")


def _ensure_self_or_admin(user: dict, user_id: int) -> None:
    if user["id"] != user_id and not has_role(user, ADMINISTRATOR):
        raise HTTPException(status_code=403, detail="Insufficient role")


@router.get("", response_model=list[UserResponse], summary="List users")
async def list_users(
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_admin),
):
    return await user_service.get_users(db)


@router.get("/{user_id}", summary="Get a user with their articles")
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current: dict = Depends(RequireUser()),
):
    _ensure_self_or_admin(current, user_id)
    user = await user_service.get_user(db, user_id)
    if not user:
        logger.warning("User %d not found", user_id)
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/{user_id}/articles", response_model=list[ArticleResponse], summary="List a user's articles")
async def list_user_articles(user_id: int, db: AsyncSession = Depends(get_db)):
    if not await user_service.user_exists(db, user_id):
        raise HTTPException(status_code=404, detail="User not found")
    return await article_service.get_articles_by_author(db, user_id)


@router.post("", status_code=201, response_model=UserResponse, summary="Create a user")
async def create_user(
    data: UserCreate,
    db: AsyncSession = Depends(get_db),
    current: dict = Depends(require_admin),
):
    try:
        user = await user_service.create_user(db, data)
    except IntegrityError:
        raise HTTPException(
            status_code=409,
            detail="A user with this email already exists",
        )
    if user is None:
        raise HTTPException(status_code=400, detail="Unknown role")
    logger.info("User %d created", user["id"])
    return user


@router.put("/{user_id}", response_model=UserResponse, summary="Update a user")
async def update_user(
    user_id: int,
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current: dict = Depends(RequireUser()),
):
    _ensure_self_or_admin(current, user_id)
    try:
        user = await user_service.update_user(
            db, user_id, data, allow_role_change=has_role(current, ADMINISTRATOR)
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Unknown role")
    except IntegrityError:
        raise HTTPException(
            status_code=409,
            detail="A user with this email already exists",
        )
    except StaleDataError:
        logger.error("Concurrent update of user %d", user_id)
        await db.rollback()
        if not await user_service.user_exists(db, user_id):
            raise HTTPException(status_code=404, detail="User not found")
        raise
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("User %d updated", user_id)
    return user


@router.delete("/{user_id}", status_code=204, summary="Delete a user and their content")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current: dict = Depends(require_admin),
):
    if not await user_service.delete_user(db, user_id):
        logger.warning("User %d not found for deletion", user_id)
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("User %d deleted", user_id)
