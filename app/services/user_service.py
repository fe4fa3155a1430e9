"""
User service: CRUD operations for the User aggregate, plus sign-in
credential checks.

Email uniqueness is enforced at the database level; the router is
responsible for translating integrity errors into 409 responses.
Deleting a user removes their articles and comments through the
foreign-key cascade.
"""
from sqlalchemy import select
from sqlalchemy.orm import joinedload, selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import DEFAULT_USER, hash_password, verify_password
from app.cache import cache
from app.models import User
from app.schemas import UserCreate, UserRegister, UserUpdate
from app.services import role_service
from app.services.role_service import role_to_dict


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _user_to_dict(user: User) -> dict:
    """Serialise a User ORM instance to a plain dict; the password hash never leaves."""
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "phone": user.phone,
        "registration_date": (
            user.registration_date.isoformat() if user.registration_date else None
        ),
        "role_id": user.role_id,
        "role": role_to_dict(user.role) if user.role else None,
    }


def _article_summary_to_dict(article) -> dict:
    """
    Serialise an Article to a lightweight summary dict suitable for
    embedding inside a user detail response.
    """
    return {
        "id": article.id,
        "title": article.title,
        "view_count": article.view_count,
        "publication_date": (
            article.publication_date.isoformat() if article.publication_date else None
        ),
    }


async def _load_user(db: AsyncSession, user_id: int) -> User | None:
    q = (
        select(User)
        .where(User.id == user_id)
        .options(joinedload(User.role), selectinload(User.articles))
        .execution_options(populate_existing=True)
    )
    result = await db.execute(q)
    return result.unique().scalar_one_or_none()


# ---------------------------------------------------------------------------
# Public service functions
# ---------------------------------------------------------------------------

async def get_users(db: AsyncSession) -> list[dict]:
    """Return all users with their roles, in registration order."""
    q = select(User).options(joinedload(User.role)).order_by(User.id)
    result = await db.execute(q)
    return [_user_to_dict(u) for u in result.unique().scalars().all()]


async def get_user(db: AsyncSession, user_id: int) -> dict | None:
    """
    Return the full detail dict for *user_id* including role and a
    summary of their articles, or None when the user does not exist.
    """
    user = await _load_user(db, user_id)
    if user is None:
        return None

    data = _user_to_dict(user)
    data["articles"] = [
        _article_summary_to_dict(a) for a in sorted(user.articles, key=lambda a: a.id)
    ]
    return data


async def user_exists(db: AsyncSession, user_id: int) -> bool:
    result = await db.execute(select(User.id).where(User.id == user_id))
    return result.scalar_one_or_none() is not None


async def authenticate(db: AsyncSession, email: str, password: str) -> dict | None:
    """Return the user matching *email* and *password*, or None."""
    q = select(User).where(User.email == email).options(joinedload(User.role))
    result = await db.execute(q)
    user = result.unique().scalar_one_or_none()
    if user is None or not verify_password(password, user.password_hash):
        return None
    return _user_to_dict(user)


async def create_user(db: AsyncSession, data: UserCreate) -> dict | None:
    """
    Create a user with an explicitly chosen role.

    Returns None when ``data.role_id`` does not name an existing role.
    """
    if not await role_service.role_exists(db, data.role_id):
        return None

    user = User(
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        phone=data.phone,
        password_hash=hash_password(data.password),
        role_id=data.role_id,
    )
    db.add(user)
    await db.flush()
    return await get_user(db, user.id)


async def register_user(db: AsyncSession, data: UserRegister) -> dict:
    """Self-service sign-up: the new user always gets the DefaultUser role."""
    roles = await role_service.ensure_default_roles(db)
    return await create_user(
        db, UserCreate(**data.model_dump(), role_id=roles[DEFAULT_USER]["id"])
    )


async def update_user(
    db: AsyncSession,
    user_id: int,
    data: UserUpdate,
    allow_role_change: bool = False,
) -> dict | None:
    """
    Update profile fields of *user_id*.

    The password changes only when one is supplied; the role changes only
    when *allow_role_change* is set.  Returns None when the user does not
    exist.  Raises ``ValueError`` when the requested role does not exist.
    """
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        return None

    user.first_name = data.first_name
    user.last_name = data.last_name
    user.email = data.email
    user.phone = data.phone
    if data.password:
        user.password_hash = hash_password(data.password)
    if allow_role_change and data.role_id is not None and data.role_id != user.role_id:
        if not await role_service.role_exists(db, data.role_id):
            raise ValueError(f"Role {data.role_id} does not exist")
        user.role_id = data.role_id

    await db.flush()
    await cache.invalidate_articles(db)
    return await get_user(db, user_id)


async def delete_user(db: AsyncSession, user_id: int) -> bool:
    """Delete *user_id* together with their articles and comments."""
    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        return False

    await db.delete(user)
    await db.flush()
    await cache.invalidate_articles(db)
    return True
