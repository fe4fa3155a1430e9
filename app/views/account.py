import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import sign_in, sign_out
from app.database import get_db
from app.schemas import LoginRequest, UserRegister
from app.services import user_service
from app.templating import form_errors, redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/account", include_in_schema=False)

_REGISTER_FIELDS = ("first_name", "last_name", "email", "phone", "password")


def _safe_next(url: str | None) -> str:
    # Only local paths; never bounce to another host after sign-in.
    if url and url.startswith("/") and not url.startswith(("//", "/\\")):
        return url
    return "/home/articles"


@router.get("/login")
async def login_form(request: Request, next: str | None = None):
    return render(request, "account/login.html", {"form": {}, "errors": {}, "next": next})


@router.post("/login")
async def login(request: Request, db: AsyncSession = Depends(get_db)):
    form = await request.form()
    values = {"email": form.get("email", ""), "password": form.get("password", "")}
    next_url = form.get("next")
    try:
        data = LoginRequest(**values)
    except ValidationError as exc:
        logger.info("Invalid login form for %s", values["email"])
        return render(
            request,
            "account/login.html",
            {"form": values, "errors": form_errors(exc), "next": next_url},
            status_code=400,
        )

    user = await user_service.authenticate(db, data.email, data.password)
    if user is None or user["role"] is None:
        logger.info("Failed login for %s", data.email)
        return render(
            request,
            "account/login.html",
            {"form": values, "errors": {"__all__": "Invalid login attempt."}, "next": next_url},
            status_code=400,
        )

    sign_in(request, user)
    logger.info("User %s signed in", user["email"])
    return redirect(_safe_next(next_url))


@router.post("/logout")
async def logout(request: Request):
    logger.info("User signed out")
    sign_out(request)
    return redirect("/home/articles")


@router.get("/register")
async def register_form(request: Request):
    return render(request, "account/register.html", {"form": {}, "errors": {}})


@router.post("/register")
async def register(request: Request, db: AsyncSession = Depends(get_db)):
    form = await request.form()
    values = {field: form.get(field, "") for field in _REGISTER_FIELDS}
    try:
        data = UserRegister(**values)
    except ValidationError as exc:
        logger.info("Invalid registration form for %s", values["email"])
        return render(
            request,
            "account/register.html",
            {"form": values, "errors": form_errors(exc)},
            status_code=400,
        )

    try:
        await user_service.register_user(db, data)
    except IntegrityError:
        await db.rollback()
        logger.info("Registration refused, email already used: %s", data.email)
        return render(
            request,
            "account/register.html",
            {"form": values, "errors": {"email": "This email is already registered."}},
            status_code=400,
        )

    logger.info("Registered user %s", data.email)
    return redirect("/account/login")


@router.get("/access-denied")
async def access_denied(request: Request):
    logger.warning("Access denied page shown for %s", request.url.path)
    return render(request, "account/access_denied.html", status_code=403)
