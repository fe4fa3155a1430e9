import logging
from contextlib import asynccontextmanager
from urllib.parse import quote

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from app.auth import AccessDenied, LoginRequired
from app.cache import cache
from app.config import settings
from app.database import async_session
from app.dependencies import get_current_user
from app.middleware import RequestLoggingMiddleware
from app.routers import articles, auth, comments, roles, tags, users
from app.services import role_service
from app.templating import PageNotFound, redirect, render
from app.views import account, articles as article_views, comments as comment_views
from app.views import home, roles as role_views, tags as tag_views, users as user_views

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Application starting (%s)", settings.APP_ENV)
    try:
        await cache.connect()
    except Exception as exc:
        logger.warning("Cache unavailable, continuing without Redis: %s", exc)
    async with async_session() as session:
        await role_service.ensure_default_roles(session)
        await session.commit()
    yield
    # Shutdown
    await cache.disconnect()
    logger.info("Application stopped")


app = FastAPI(
    title="Blog Platform",
    description="Articles, tags and comments with cookie sessions and role-based access",
    version="1.0.0",
    lifespan=lifespan,
)

# Middleware
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.SESSION_MAX_AGE,
    same_site="lax",
    https_only=settings.APP_ENV == "production",
)
app.add_middleware(RequestLoggingMiddleware)

# REST routers
app.include_router(auth.router)
app.include_router(articles.router)
app.include_router(comments.router)
app.include_router(tags.router)
app.include_router(roles.router)
app.include_router(users.router)

# HTML views; every page resolves the signed-in user for the navigation bar.
for view in (home, account, article_views, comment_views, tag_views, role_views, user_views):
    app.include_router(view.router, dependencies=[Depends(get_current_user)])


# ---------------------------------------------------------------------------
# Web status pages
# ---------------------------------------------------------------------------

@app.exception_handler(LoginRequired)
async def login_required_handler(request: Request, exc: LoginRequired):
    logger.info("Anonymous request to %s, redirecting to login", exc.next_url)
    return redirect(f"/account/login?next={quote(exc.next_url)}")


@app.exception_handler(AccessDenied)
async def access_denied_handler(request: Request, exc: AccessDenied):
    logger.warning("Access denied: %s", request.url.path)
    return redirect("/account/access-denied")


@app.exception_handler(PageNotFound)
async def page_not_found_handler(request: Request, exc: PageNotFound):
    return render(request, "not_found.html", {"message": exc.message}, status_code=404)


async def server_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    if request.url.path.startswith("/api/"):
        return JSONResponse({"detail": "Internal server error"}, status_code=500)
    return render(request, "error.html", status_code=500)


if not settings.DEBUG:
    app.add_exception_handler(Exception, server_error_handler)


@app.get("/health")
async def health():
    return {"status": "healthy", "version": "1.0.0"}
