import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth import sign_in, sign_out
from app.database import get_db
from app.dependencies import RequireUser
from app.schemas import LoginRequest, UserRegister, UserResponse
from app.services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/register", status_code=201, response_model=UserResponse, summary="Sign up")
async def register(data: UserRegister, db: AsyncSession = Depends(get_db)):
    try:
        user = await user_service.register_user(db, data)
    except IntegrityError:
        raise HTTPException(status_code=409, detail="A user with this email already exists")
    logger.info("Registered user %s", user["email"])
    return user


@router.post("/login", response_model=UserResponse, summary="Sign in and receive a session cookie")
async def login(data: LoginRequest, request: Request, db: AsyncSession = Depends(get_db)):
    user = await user_service.authenticate(db, data.email, data.password)
    if user is None:
        logger.warning("Failed login for %s", data.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    sign_in(request, user)
    logger.info("User %s signed in", user["email"])
    return user


@router.post("/logout", status_code=204, summary="Sign out")
async def logout(request: Request):
    sign_out(request)


@router.get("/me", response_model=UserResponse, summary="Current user")
async def me(user: dict = Depends(RequireUser())):
    return user
