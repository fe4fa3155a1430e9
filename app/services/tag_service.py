"""
Tag service: CRUD for Tag plus the per-tag article counts shown on the
tag overview.

Tag names are unique at the database level; the router translates the
resulting ``IntegrityError`` into a 409 response.  Every write purges the
cached article lists because they embed tag names.
"""
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.cache import cache
from app.config import settings
from app.models import Tag, article_tags
from app.schemas import TagCreate, TagUpdate


def _tag_to_dict(tag: Tag) -> dict:
    return {"id": tag.id, "name": tag.name}


async def get_tags(db: AsyncSession) -> list[dict]:
    """
    Return every tag ordered by name, each with the number of articles
    that carry it.  Counted with one grouped LEFT JOIN and cached.
    """
    cached = await cache.get("tags:list")
    if cached is not None:
        return cached

    q = (
        select(Tag, func.count(article_tags.c.article_id))
        .outerjoin(article_tags, article_tags.c.tag_id == Tag.id)
        .group_by(Tag.id)
        .order_by(Tag.name)
    )
    result = await db.execute(q)
    tags = [
        {**_tag_to_dict(tag), "article_count": count}
        for tag, count in result.all()
    ]
    await cache.set("tags:list", tags, ttl=settings.CACHE_TTL_LIST)
    return tags


async def get_tag(db: AsyncSession, tag_id: int) -> dict | None:
    """Return *tag_id* with a summary of the articles carrying it."""
    q = (
        select(Tag)
        .where(Tag.id == tag_id)
        .options(selectinload(Tag.articles))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    tag = result.scalar_one_or_none()
    if tag is None:
        return None

    data = _tag_to_dict(tag)
    data["articles"] = [
        {"id": a.id, "title": a.title, "user_id": a.user_id}
        for a in sorted(tag.articles, key=lambda a: a.id)
    ]
    return data


async def tag_exists(db: AsyncSession, tag_id: int) -> bool:
    result = await db.execute(select(Tag.id).where(Tag.id == tag_id))
    return result.scalar_one_or_none() is not None


async def create_tag(db: AsyncSession, data: TagCreate) -> dict:
    tag = Tag(name=data.name)
    db.add(tag)
    await db.flush()
    await cache.invalidate_articles(db)
    return _tag_to_dict(tag)


async def update_tag(db: AsyncSession, tag_id: int, data: TagUpdate) -> dict | None:
    result = await db.execute(select(Tag).where(Tag.id == tag_id))
    tag = result.scalar_one_or_none()
    if tag is None:
        return None

    tag.name = data.name
    await db.flush()
    await cache.invalidate_articles(db)
    return _tag_to_dict(tag)


async def delete_tag(db: AsyncSession, tag_id: int) -> bool:
    """Delete a tag; articles keep existing, only the associations go."""
    result = await db.execute(select(Tag).where(Tag.id == tag_id))
    tag = result.scalar_one_or_none()
    if tag is None:
        return False

    await db.delete(tag)
    await db.flush()
    await cache.invalidate_articles(db)
    return True

