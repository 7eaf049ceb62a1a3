from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from devnews.auth import Identity, get_current_user
from devnews.database import get_db
from devnews.errors import EnvelopeRoute, success
from devnews.mailer import Mailer, get_mailer
from devnews.schemas import ForgotPasswordRequest, LoginRequest, RegisterRequest, ResetPasswordRequest
from devnews.services import auth_service, user_service

router = APIRouter(prefix="/api/auth", tags=["auth"], route_class=EnvelopeRoute)


@router.post("/register", status_code=201)
async def register(data: RegisterRequest, db: AsyncSession = Depends(get_db)):
    return success(await auth_service.register(db, data))


@router.post("/login")
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    return success(await auth_service.login(db, data))


@router.post("/forgot-password")
async def forgot_password(
    data: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    await auth_service.request_password_reset(db, mailer, data.email, str(request.base_url))
    return success(message="A password reset link has been sent to your email")


@router.post("/reset-password/{token}")
async def reset_password(
    token: str,
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
    mailer: Mailer = Depends(get_mailer),
):
    await auth_service.reset_password(db, mailer, token, data.password)
    return success(message="Password has been reset")


@router.post("/logout")
async def logout():
    # Tokens are stateless; the client discards its copy.
    return success(message="Logged out")


@router.get("/me")
async def me(identity: Identity = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    user = await user_service.load_user(db, identity.id)
    return success(user_service.serialize_user(user))
