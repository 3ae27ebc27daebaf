from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from lms.db.database import get_async_session
from lms.db.models import User
from lms.models.common import Envelope, ok
from lms.models.user import (
    AuthOut, CreateAdmin, GoogleLogin, SendOtpRequest, UserLogin, UserOut, UserRegister, VerifyOtpRequest,
)
from lms.security import get_current_user, require_super_admin
from lms.services import auth_service
from lms.services.audit_service import record_admin_action

router = APIRouter(tags=["Auth"])


@router.post("/send-otp", response_model=Envelope[dict])
async def send_otp(data: SendOtpRequest, session: AsyncSession = Depends(get_async_session)):
    return ok(await auth_service.send_otp(session, data.email), "OTP sent successfully")


@router.post("/verify-otp", response_model=Envelope[dict])
async def verify_otp(data: VerifyOtpRequest, session: AsyncSession = Depends(get_async_session)):
    return ok(await auth_service.verify_otp(session, data.email, data.code), "OTP verified successfully")


@router.post("/register", response_model=Envelope[AuthOut], status_code=201)
async def register(data: UserRegister, session: AsyncSession = Depends(get_async_session)):
    return ok(await auth_service.register(session, data), "Registration successful")


@router.post("/login", response_model=Envelope[AuthOut])
async def login(data: UserLogin, session: AsyncSession = Depends(get_async_session)):
    return ok(await auth_service.login(session, data), "Login successful")


@router.post("/google", response_model=Envelope[AuthOut])
async def google(data: GoogleLogin, session: AsyncSession = Depends(get_async_session)):
    return ok(await auth_service.google_login(session, data.id_token), "Login successful")


@router.get("/me", response_model=Envelope[UserOut])
async def me(user: User = Depends(get_current_user)):
    return ok(user)


@router.post("/admins", response_model=Envelope[UserOut], status_code=201)
async def create_admin(
    data: CreateAdmin,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_super_admin),
    session: AsyncSession = Depends(get_async_session),
):
    admin = await auth_service.create_admin(session, data, user)
    record_admin_action(background_tasks, user, "CREATE_ADMIN", "User", admin.id)
    return ok(admin, "Admin created successfully")


@router.patch("/users/{user_id}/deactivate", response_model=Envelope[UserOut])
async def deactivate_user(
    user_id: int,
    background_tasks: BackgroundTasks,
    user: User = Depends(require_super_admin),
    session: AsyncSession = Depends(get_async_session),
):
    target = await auth_service.deactivate_user(session, user_id)
    record_admin_action(background_tasks, user, "DEACTIVATE_USER", "User", target.id)
    return ok(target, "User deactivated")
