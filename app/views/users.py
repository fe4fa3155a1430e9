import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.database import get_db
from app.dependencies import require_policy
from app.schemas import UserCreate, UserUpdate
from app.services import role_service, user_service
from app.templating import PageNotFound, form_errors, redirect, render

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/user",
    include_in_schema=False,
    dependencies=[Depends(require_policy("AdminOnly", web=True))],
)

_FIELDS = ("first_name", "last_name", "email", "phone", "password", "role_id")
_DUPLICATE = {"email": "A user with this email already exists."}
_UNKNOWN_ROLE = {"role_id": "The selected role is not valid."}


async def _user_or_404(db: AsyncSession, user_id: int) -> dict:
    user = await user_service.get_user(db, user_id)
    if user is None:
        logger.warning("User %d not found", user_id)
        raise PageNotFound("User not found")
    return user


async def _form(request, db, form: dict, errors: dict, action: str, status_code: int = 200):
    return render(
        request,
        "user/form.html",
        {
            "form": form,
            "errors": errors,
            "action": action,
            "roles": await role_service.get_roles(db),
            "editing": action != "/user/create",
        },
        status_code=status_code,
    )


async def _read_form(request: Request) -> dict:
    form = await request.form()
    values = {field: form.get(field, "") for field in _FIELDS}
    values["password"] = values["password"] or None
    values["role_id"] = values["role_id"] or None
    return values


@router.get("")
async def index(request: Request, db: AsyncSession = Depends(get_db)):
    users = await user_service.get_users(db)
    logger.info("User list shown")
    return render(request, "home/users.html", {"users": users})


@router.get("/details/{user_id}")
async def details(request: Request, user_id: int, db: AsyncSession = Depends(get_db)):
    user = await _user_or_404(db, user_id)
    return render(request, "user/details.html", {"user": user})


@router.get("/create")
async def create_form(request: Request, db: AsyncSession = Depends(get_db)):
    return await _form(request, db, {}, {}, "/user/create")


@router.post("/create")
async def create(request: Request, db: AsyncSession = Depends(get_db)):
    values = await _read_form(request)
    try:
        data = UserCreate(**values)
    except ValidationError as exc:
        for field, message in form_errors(exc).items():
            logger.error("User form error in %s: %s", field, message)
        return await _form(request, db, values, form_errors(exc), "/user/create", 400)

    try:
        user = await user_service.create_user(db, data)
    except IntegrityError:
        await db.rollback()
        return await _form(request, db, values, _DUPLICATE, "/user/create", 400)
    if user is None:
        return await _form(request, db, values, _UNKNOWN_ROLE, "/user/create", 400)
    logger.info("User %d created", user["id"])
    return redirect("/home/users")


@router.get("/edit/{user_id}")
async def edit_form(request: Request, user_id: int, db: AsyncSession = Depends(get_db)):
    user = await _user_or_404(db, user_id)
    return await _form(request, db, user, {}, f"/user/edit/{user_id}")


@router.post("/edit/{user_id}")
async def edit(request: Request, user_id: int, db: AsyncSession = Depends(get_db)):
    await _user_or_404(db, user_id)
    values = await _read_form(request)
    action = f"/user/edit/{user_id}"
    try:
        data = UserUpdate(**values)
    except ValidationError as exc:
        return await _form(request, db, values, form_errors(exc), action, 400)

    try:
        await user_service.update_user(db, user_id, data, allow_role_change=True)
    except ValueError:
        logger.warning("Invalid role selection %s for user %d", values["role_id"], user_id)
        await db.rollback()
        return await _form(request, db, values, _UNKNOWN_ROLE, action, 400)
    except IntegrityError:
        await db.rollback()
        return await _form(request, db, values, _DUPLICATE, action, 400)
    except StaleDataError:
        logger.error("Concurrent update of user %d", user_id)
        await db.rollback()
        if not await user_service.user_exists(db, user_id):
            raise PageNotFound("User not found")
        raise
    logger.info("User %d updated", user_id)
    return redirect("/home/users")


@router.get("/delete/{user_id}")
async def delete_confirm(request: Request, user_id: int, db: AsyncSession = Depends(get_db)):
    user = await _user_or_404(db, user_id)
    return render(
        request,
        "confirm_delete.html",
        {
            "kind": "user",
            "label": f"{user['first_name']} {user['last_name']} ({user['email']})",
            "action": f"/user/delete/{user_id}",
            "cancel": "/home/users",
            "warning": "Their articles and comments are deleted too.",
        },
    )


@router.post("/delete/{user_id}")
async def delete(user_id: int, db: AsyncSession = Depends(get_db)):
    if not await user_service.delete_user(db, user_id):
        raise PageNotFound("User not found")
    logger.info("User %d deleted", user_id)
    return redirect("/home/users")
