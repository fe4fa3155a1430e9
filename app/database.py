from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from app.cache import PURGE_AFTER_COMMIT, cache
from app.config import settings
from app.middleware import install_query_counter

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)


def enable_sqlite_foreign_keys(engine) -> None:
    """
    Turn on ``PRAGMA foreign_keys`` for every new SQLite connection.

    SQLite ignores ON DELETE CASCADE / RESTRICT unless the pragma is set,
    so cascades between users, articles and comments would silently not
    happen.  No-op for other backends.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


# Register the per-request SQL query counter on the production engine.
install_query_counter(engine)
enable_sqlite_foreign_keys(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def commit(session: AsyncSession) -> None:
    """Commit *session*, then repeat any cache purge its writes requested."""
    await session.commit()
    if session.info.pop(PURGE_AFTER_COMMIT, False):
        await cache.invalidate_articles()


async def get_db():
    async with async_session() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await session.rollback()
            raise
