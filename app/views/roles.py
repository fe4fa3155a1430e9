import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.database import get_db
from app.dependencies import require_policy
from app.schemas import RoleCreate, RoleUpdate
from app.services import role_service
from app.services.role_service import RoleInUseError
from app.templating import PageNotFound, form_errors, redirect, render

logger = logging.getLogger(__name__)

# Every role page is administrator-only.
router = APIRouter(
    prefix="/role",
    include_in_schema=False,
    dependencies=[Depends(require_policy("AdminOnly", web=True))],
)

_FIELDS = ("name", "description")
_DUPLICATE = {"name": "A role with this name already exists."}


async def _role_or_404(db: AsyncSession, role_id: int) -> dict:
    role = await role_service.get_role(db, role_id)
    if role is None:
        logger.warning("Role %d not found", role_id)
        raise PageNotFound("Role not found")
    return role


def _form(request, form: dict, errors: dict, action: str, status_code: int = 200):
    return render(
        request,
        "role/form.html",
        {"form": form, "errors": errors, "action": action},
        status_code=status_code,
    )


@router.get("")
async def index(request: Request, db: AsyncSession = Depends(get_db)):
    roles = await role_service.get_roles(db)
    logger.info("Role list shown")
    return render(request, "home/roles.html", {"roles": roles})


@router.get("/details/{role_id}")
async def details(request: Request, role_id: int, db: AsyncSession = Depends(get_db)):
    role = await _role_or_404(db, role_id)
    return render(request, "role/details.html", {"role": role})


@router.get("/create")
async def create_form(request: Request):
    return _form(request, {}, {}, "/role/create")


@router.post("/create")
async def create(request: Request, db: AsyncSession = Depends(get_db)):
    form = await request.form()
    values = {field: form.get(field, "") for field in _FIELDS}
    try:
        data = RoleCreate(**values)
    except ValidationError as exc:
        for field, message in form_errors(exc).items():
            logger.error("Role form error in %s: %s", field, message)
        return _form(request, values, form_errors(exc), "/role/create", 400)

    try:
        role = await role_service.create_role(db, data)
    except IntegrityError:
        await db.rollback()
        return _form(request, values, _DUPLICATE, "/role/create", 400)
    logger.info("Role created: %s", role["name"])
    return redirect("/home/roles")


@router.get("/edit/{role_id}")
async def edit_form(request: Request, role_id: int, db: AsyncSession = Depends(get_db)):
    role = await _role_or_404(db, role_id)
    return _form(request, role, {}, f"/role/edit/{role_id}")


@router.post("/edit/{role_id}")
async def edit(request: Request, role_id: int, db: AsyncSession = Depends(get_db)):
    await _role_or_404(db, role_id)
    form = await request.form()
    values = {field: form.get(field, "") for field in _FIELDS}
    action = f"/role/edit/{role_id}"
    try:
        data = RoleUpdate(**values)
    except ValidationError as exc:
        return _form(request, values, form_errors(exc), action, 400)

    try:
        await role_service.update_role(db, role_id, data)
    except IntegrityError:
        await db.rollback()
        return _form(request, values, _DUPLICATE, action, 400)
    except StaleDataError:
        logger.error("Concurrent update of role %d", role_id)
        await db.rollback()
        if not await role_service.role_exists(db, role_id):
            raise PageNotFound("Role not found")
        raise
    logger.info("Role %d updated, new name: %s", role_id, data.name)
    return redirect("/home/roles")


@router.get("/delete/{role_id}")
async def delete_confirm(request: Request, role_id: int, db: AsyncSession = Depends(get_db)):
    role = await _role_or_404(db, role_id)
    return render(
        request,
        "confirm_delete.html",
        {
            "kind": "role",
            "label": role["name"],
            "action": f"/role/delete/{role_id}",
            "cancel": "/home/roles",
            "blocked": (
                f"{len(role['users'])} user(s) still have this role." if role["users"] else None
            ),
        },
    )


@router.post("/delete/{role_id}")
async def delete(request: Request, role_id: int, db: AsyncSession = Depends(get_db)):
    try:
        deleted = await role_service.delete_role(db, role_id)
    except RoleInUseError as exc:
        logger.warning("Refused to delete role %d: %s", role_id, exc)
        role = await _role_or_404(db, role_id)
        return render(
            request,
            "confirm_delete.html",
            {
                "kind": "role",
                "label": role["name"],
                "action": f"/role/delete/{role_id}",
                "cancel": "/home/roles",
                "blocked": str(exc),
            },
            status_code=409,
        )
    if not deleted:
        raise PageNotFound("Role not found")
    logger.info("Role %d deleted", role_id)
    return redirect("/home/roles")
