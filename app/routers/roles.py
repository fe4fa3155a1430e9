import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.database import get_db
from app.dependencies import require_policy
from app.schemas import RoleCreate, RoleResponse, RoleUpdate
from app.services import role_service
from app.services.role_service import RoleInUseError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/roles", tags=["roles"])

require_admin = require_policy("AdminOnly")


@router.get("", response_model=list[RoleResponse], summary="List roles")
async def list_roles(db: AsyncSession = Depends(get_db)):
    return await role_service.get_roles(db)


@router.get("/{role_id}", summary="Get a role and its users")
async def get_role(
    role_id: int,
    db: AsyncSession = Depends(get_db),
    current: dict = Depends(require_admin),
):
    # Lists holders' emails; administrators only.
    role = await role_service.get_role(db, role_id)
    if not role:
        logger.warning("Role %d not found", role_id)
        raise HTTPException(status_code=404, detail="Role not found")
    return role


@router.post("", status_code=201, response_model=RoleResponse, summary="Create a role")
async def create_role(
    data: RoleCreate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_admin),
):
    try:
        role = await role_service.create_role(db, data)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="A role with this name already exists")
    logger.info("Role created: %s", role["name"])
    return role


@router.put("/{role_id}", response_model=RoleResponse, summary="Update a role")
async def update_role(
    role_id: int,
    data: RoleUpdate,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_admin),
):
    try:
        role = await role_service.update_role(db, role_id, data)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="A role with this name already exists")
    except StaleDataError:
        logger.error("Concurrent update of role %d", role_id)
        await db.rollback()
        if not await role_service.role_exists(db, role_id):
            raise HTTPException(status_code=404, detail="Role not found")
        raise
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")
    logger.info("Role %d updated, new name: %s", role_id, role["name"])
    return role


@router.delete("/{role_id}", status_code=204, summary="Delete an unused role")
async def delete_role(
    role_id: int,
    db: AsyncSession = Depends(get_db),
    user: dict = Depends(require_admin),
):
    try:
        deleted = await role_service.delete_role(db, role_id)
    except RoleInUseError as exc:
        logger.warning("Refused to delete role %d: %s", role_id, exc)
        raise HTTPException(status_code=409, detail=str(exc))
    if not deleted:
        raise HTTPException(status_code=404, detail="Role not found")
    logger.info("Role %d deleted", role_id)
