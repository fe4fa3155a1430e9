"""
Role service: CRUD for the authorization tiers assigned to users.

A role cannot be deleted while any user still references it.  The
``users.role_id`` foreign key is declared ``ON DELETE RESTRICT``; the
service checks first so callers get a ``RoleInUseError`` instead of a
backend-specific integrity failure.
"""
import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.auth import DEFAULT_ROLES
from app.models import Role, User
from app.schemas import RoleCreate, RoleUpdate

logger = logging.getLogger(__name__)


class RoleInUseError(Exception):
    """Raised when deleting a role that users are still assigned to."""

    def __init__(self, role_id: int, user_count: int) -> None:
        super().__init__(f"Role {role_id} is assigned to {user_count} user(s)")
        self.role_id = role_id
        self.user_count = user_count


def role_to_dict(role: Role) -> dict:
    return {"id": role.id, "name": role.name, "description": role.description}


async def get_roles(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(Role).order_by(Role.id))
    return [role_to_dict(r) for r in result.scalars().all()]


async def get_role(db: AsyncSession, role_id: int) -> dict | None:
    """Return *role_id* with the users assigned to it."""
    q = (
        select(Role)
        .where(Role.id == role_id)
        .options(selectinload(Role.users))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    role = result.scalar_one_or_none()
    if role is None:
        return None

    data = role_to_dict(role)
    data["users"] = [
        {"id": u.id, "first_name": u.first_name, "last_name": u.last_name, "email": u.email}
        for u in sorted(role.users, key=lambda u: u.id)
    ]
    return data


async def get_role_by_name(db: AsyncSession, name: str) -> dict | None:
    result = await db.execute(select(Role).where(Role.name == name))
    role = result.scalar_one_or_none()
    return role_to_dict(role) if role else None


async def role_exists(db: AsyncSession, role_id: int) -> bool:
    result = await db.execute(select(Role.id).where(Role.id == role_id))
    return result.scalar_one_or_none() is not None


async def create_role(db: AsyncSession, data: RoleCreate) -> dict:
    role = Role(name=data.name, description=data.description)
    db.add(role)
    await db.flush()
    return role_to_dict(role)


async def update_role(db: AsyncSession, role_id: int, data: RoleUpdate) -> dict | None:
    result = await db.execute(select(Role).where(Role.id == role_id))
    role = result.scalar_one_or_none()
    if role is None:
        return None

    role.name = data.name
    role.description = data.description
    await db.flush()
    return role_to_dict(role)


async def delete_role(db: AsyncSession, role_id: int) -> bool:
    """
    Delete *role_id*.

    Returns False when the role does not exist and raises
    ``RoleInUseError`` when users are still assigned to it.
    """
    result = await db.execute(select(Role).where(Role.id == role_id))
    role = result.scalar_one_or_none()
    if role is None:
        return False

    user_count = (
        await db.execute(select(func.count()).select_from(User).where(User.role_id == role_id))
    ).scalar_one()
    if user_count:
        raise RoleInUseError(role_id, user_count)

    await db.delete(role)
    await db.flush()
    return True


async def ensure_default_roles(db: AsyncSession) -> dict[str, dict]:
    """
    Create any of the Administrator / Moderator / DefaultUser roles that
    are missing and return all three keyed by name.  Safe to call on
    every startup.
    """
    roles: dict[str, dict] = {}
    for name, description in DEFAULT_ROLES.items():
        role = await get_role_by_name(db, name)
        if role is None:
            role = await create_role(db, RoleCreate(name=name, description=description))
            logger.info("Created default role %s", name)
        roles[name] = role
    return roles
