"""
Comment service: CRUD for comments attached to an Article.

A comment always belongs to one article and one user; deleting either
parent removes the comment through the foreign-key cascade.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from app.models import Article, Comment
from app.schemas import CommentCreate, CommentUpdate
from app.services.article_service import serialize_comment


async def _load_comment(db: AsyncSession, comment_id: int) -> Comment | None:
    q = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(joinedload(Comment.author))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


async def get_comments(db: AsyncSession) -> list[dict]:
    """Return all comments with their authors, newest first."""
    q = (
        select(Comment)
        .options(joinedload(Comment.author))
        .order_by(Comment.comment_date.desc(), Comment.id.desc())
    )
    result = await db.execute(q)
    return [serialize_comment(c) for c in result.unique().scalars().all()]


async def get_comment(db: AsyncSession, comment_id: int) -> dict | None:
    comment = await _load_comment(db, comment_id)
    if comment is None:
        return None
    return serialize_comment(comment)


async def comment_exists(db: AsyncSession, comment_id: int) -> bool:
    result = await db.execute(select(Comment.id).where(Comment.id == comment_id))
    return result.scalar_one_or_none() is not None


async def create_comment(
    db: AsyncSession,
    user_id: int,
    data: CommentCreate,
) -> dict | None:
    """
    Attach a new comment by *user_id* to the article named in *data*.

    Returns the serialised comment on success, or None when the target
    article does not exist.
    """
    result = await db.execute(select(Article.id).where(Article.id == data.article_id))
    if result.scalar_one_or_none() is None:
        return None

    comment = Comment(
        content=data.content,
        article_id=data.article_id,
        user_id=user_id,
    )
    db.add(comment)
    await db.flush()
    return serialize_comment(await _load_comment(db, comment.id))


async def update_comment(
    db: AsyncSession, comment_id: int, data: CommentUpdate
) -> dict | None:
    """Replace the text of a comment; None when it does not exist."""
    result = await db.execute(select(Comment).where(Comment.id == comment_id))
    comment = result.scalar_one_or_none()
    if comment is None:
        return None

    comment.content = data.content
    await db.flush()
    return serialize_comment(await _load_comment(db, comment_id))


async def delete_comment(db: AsyncSession, comment_id: int) -> bool:
    result = await db.execute(select(Comment).where(Comment.id == comment_id))
    comment = result.scalar_one_or_none()
    if comment is None:
        return False

    await db.delete(comment)
    await db.flush()
    return True
