"""
Article service: business logic for the Article aggregate.

Design notes
------------
- The paginated list goes through the cache-aside pattern (Redis →
  fallback to DB).  Cache keys encode every dimension that affects the
  result so stale data is never served.  The detail view is never
  cached because every counted read changes ``view_count``.
- Eager loading via ``joinedload`` (many-to-one: author) and
  ``selectinload`` (one-to-many / many-to-many: tags, comments) is used
  throughout to eliminate N+1 queries.  The ``unique()`` call is
  required after any query that uses ``joinedload`` to deduplicate the
  joined rows that SQLAlchemy returns.
- Tag association is plain relationship bookkeeping: the submitted tag
  ids are resolved to Tag rows and assigned to ``Article.tags``; the ORM
  writes the association rows.  Unknown ids are ignored.
- Service functions flush but do not commit; the transaction boundary
  is owned by the ``get_db`` dependency in the router layer.
"""
import math

from sqlalchemy import asc, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload, selectinload

from app.cache import cache
from app.config import settings
from app.models import Article, Comment, Tag
from app.schemas import ArticleCreate, ArticleUpdate, PaginatedResponse

# Columns that are safe to sort by; guards against arbitrary attribute access.
_SORTABLE_COLUMNS: frozenset[str] = frozenset(
    {"publication_date", "view_count", "title"}
)


def _resolve_sort_column(sort_by: str):
    """
    Return the SQLAlchemy column expression for *sort_by*.

    Falls back to ``Article.publication_date`` for any unrecognised or
    potentially dangerous column name.
    """
    if sort_by in _SORTABLE_COLUMNS:
        return getattr(Article, sort_by)
    return Article.publication_date


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def serialize_author(user) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
    }


def serialize_comment(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "content": comment.content,
        "article_id": comment.article_id,
        "user_id": comment.user_id,
        "comment_date": comment.comment_date.isoformat() if comment.comment_date else None,
        "author": serialize_author(comment.author),
    }


def _article_to_dict(article: Article) -> dict:
    """Serialise an Article ORM instance to a plain dict (list view)."""
    return {
        "id": article.id,
        "title": article.title,
        "view_count": article.view_count,
        "publication_date": (
            article.publication_date.isoformat() if article.publication_date else None
        ),
        "user_id": article.user_id,
        "author": serialize_author(article.author),
        "tags": [{"id": t.id, "name": t.name} for t in article.tags],
    }


def _article_detail_to_dict(article: Article) -> dict:
    """Serialise an Article ORM instance to a plain dict (detail view)."""
    data = _article_to_dict(article)
    data["content"] = article.content
    data["comments"] = [
        serialize_comment(c) for c in sorted(article.comments, key=lambda c: c.id)
    ]
    return data


# ---------------------------------------------------------------------------
# Query helpers
# ---------------------------------------------------------------------------

async def _resolve_tags(db: AsyncSession, tag_ids: list[int]) -> list[Tag]:
    """Return the Tag rows whose ids appear in *tag_ids*; unknown ids are dropped."""
    if not tag_ids:
        return []
    result = await db.execute(
        select(Tag).where(Tag.id.in_(set(tag_ids))).order_by(Tag.name)
    )
    return list(result.scalars().all())


async def _load_article(db: AsyncSession, article_id: int) -> Article | None:
    """
    Load *article_id* with author, tags and comments (each with its author).

    ``populate_existing`` refreshes an instance already sitting in the
    session identity map, so the result reflects what was just flushed.
    """
    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(
            joinedload(Article.author),
            selectinload(Article.tags),
            selectinload(Article.comments).joinedload(Comment.author),
        )
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_articles(
    db: AsyncSession,
    page: int = 1,
    page_size: int = 20,
    sort_by: str = "publication_date",
    sort_order: str = "desc",
) -> PaginatedResponse:
    """
    Return a paginated list of articles, using Redis as a cache layer.

    Two SQL statements are issued on a cache miss (plus one for tags):
    1. COUNT of all articles.
    2. SELECT with LIMIT/OFFSET and author JOIN.
    """
    cache_key = f"articles:list:{page}:{page_size}:{sort_by}:{sort_order}"
    cached = await cache.get(cache_key)
    if cached:
        return PaginatedResponse(**cached)

    total: int = (
        await db.execute(select(func.count()).select_from(Article))
    ).scalar_one()

    sort_col = _resolve_sort_column(sort_by)
    order_expr = desc(sort_col) if sort_order == "desc" else asc(sort_col)

    articles_q = (
        select(Article)
        .options(joinedload(Article.author), selectinload(Article.tags))
        .order_by(order_expr, Article.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    result = await db.execute(articles_q)
    articles = result.unique().scalars().all()

    response = PaginatedResponse(
        items=[_article_to_dict(a) for a in articles],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total > 0 else 0,
    )
    await cache.set(cache_key, response.model_dump(), ttl=settings.CACHE_TTL_LIST)
    return response


async def get_articles_by_author(db: AsyncSession, user_id: int) -> list[dict]:
    """Return every article written by *user_id*, newest first."""
    q = (
        select(Article)
        .where(Article.user_id == user_id)
        .options(joinedload(Article.author), selectinload(Article.tags))
        .order_by(Article.publication_date.desc(), Article.id.desc())
    )
    result = await db.execute(q)
    return [_article_to_dict(a) for a in result.unique().scalars().all()]


async def get_article(
    db: AsyncSession, article_id: int, count_view: bool = False
) -> dict | None:
    """
    Return the full detail dict for *article_id* (including content,
    tags and comments), or None when the article does not exist.

    With *count_view* the view counter is incremented first, using a
    single ``UPDATE ... SET view_count = view_count + 1`` so concurrent
    readers never lose an increment.
    """
    if count_view:
        await db.execute(
            update(Article)
            .where(Article.id == article_id)
            .values(view_count=Article.view_count + 1)
        )

    article = await _load_article(db, article_id)
    if article is None:
        return None
    return _article_detail_to_dict(article)


async def article_exists(db: AsyncSession, article_id: int) -> bool:
    result = await db.execute(select(Article.id).where(Article.id == article_id))
    return result.scalar_one_or_none() is not None


async def create_article(db: AsyncSession, user_id: int, data: ArticleCreate) -> dict:
    """Create a new article owned by *user_id* and return its full detail dict."""
    article = Article(
        title=data.title,
        content=data.content,
        user_id=user_id,
    )
    article.tags = await _resolve_tags(db, data.tag_ids)

    db.add(article)
    await db.flush()

    await cache.invalidate_articles(db)
    return _article_detail_to_dict(await _load_article(db, article.id))


async def update_article(
    db: AsyncSession, article_id: int, data: ArticleUpdate
) -> dict | None:
    """
    Replace the title, content and tag set of an existing article and
    return its updated detail dict.

    Returns None when the article does not exist.
    """
    q = (
        select(Article)
        .where(Article.id == article_id)
        .options(selectinload(Article.tags))
    )
    result = await db.execute(q)
    article = result.scalar_one_or_none()
    if article is None:
        return None

    article.title = data.title
    article.content = data.content
    article.tags = await _resolve_tags(db, data.tag_ids)

    await db.flush()
    await cache.invalidate_articles(db)
    return _article_detail_to_dict(await _load_article(db, article_id))


async def delete_article(db: AsyncSession, article_id: int) -> bool:
    """
    Delete the article identified by *article_id*; its comments and tag
    associations go with it (FK cascade).

    Returns True on success, False when the article does not exist.
    """
    result = await db.execute(select(Article).where(Article.id == article_id))
    article = result.scalar_one_or_none()
    if article is None:
        return False

    await db.delete(article)
    await db.flush()
    await cache.invalidate_articles(db)
    return True
