import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict

import httpx
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from lms import config
from lms.common.otp_guard import otp_guard
from lms.db.models import AuthProvider, OtpCode, User, UserRole
from lms.errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from lms.models.user import CreateAdmin, UserLogin, UserOut, UserRegister
from lms.security import create_access_token, get_password_hash, verify_password

from . import mail_service

logger = logging.getLogger("auth_service")


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).filter(User.email == _normalize_email(email)))
    return result.scalars().first()


def _auth_response(user: User) -> Dict[str, Any]:
    return {
        "access_token": create_access_token(user.id, user.role),
        "user": UserOut.model_validate(user),
    }


# --- OTP ---

async def send_otp(session: AsyncSession, email: str) -> Dict[str, Any]:
    email = _normalize_email(email)

    # Старые неиспользованные коды больше не действуют
    await session.execute(
        update(OtpCode)
        .where(OtpCode.email == email, OtpCode.used.is_(False))
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    code = f"{secrets.randbelow(1_000_000):06d}"
    session.add(OtpCode(
        email=email,
        code=code,
        expires_at=datetime.utcnow() + timedelta(minutes=config.OTP_EXPIRE_MINUTES),
    ))
    await session.commit()

    await mail_service.send_otp_email(email, code)
    logger.info(f"OTP sent to {email}")
    return {"email": email}


async def verify_otp(session: AsyncSession, email: str, code: str) -> Dict[str, Any]:
    email = _normalize_email(email)
    otp_guard.check(email)

    result = await session.execute(
        select(OtpCode)
        .filter(
            OtpCode.email == email,
            OtpCode.code == code,
            OtpCode.used.is_(False),
            OtpCode.expires_at > datetime.utcnow(),
        )
        .order_by(OtpCode.created_at.desc())
    )
    otp = result.scalars().first()
    if not otp:
        otp_guard.record_failed_attempt(email)
        raise BadRequestError("Invalid or expired OTP.")

    otp.used = True
    user = await get_user_by_email(session, email)
    if user:
        user.is_verified = True
    await session.commit()

    otp_guard.clear_attempts(email)
    logger.info(f"OTP verified for {email}")
    return {"email": email, "verified": True}


async def _has_verified_otp(session: AsyncSession, email: str) -> bool:
    result = await session.execute(
        select(OtpCode.id).filter(OtpCode.email == email, OtpCode.used.is_(True)).limit(1)
    )
    return result.first() is not None


# --- Accounts ---

async def _create_user(session: AsyncSession, data: UserRegister, role: UserRole, created_by_id: int | None = None) -> User:
    email = _normalize_email(data.email)
    if await get_user_by_email(session, email):
        raise ConflictError("Email already registered")

    user = User(
        name=data.name,
        email=email,
        password_hash=get_password_hash(data.password),
        phone_number=data.phone_number,
        role=role,
        provider=AuthProvider.EMAIL,
        is_verified=await _has_verified_otp(session, email),
        is_active=True,
        created_by_id=created_by_id,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        await session.rollback()
        raise ConflictError("Email already registered")
    return user


async def register(session: AsyncSession, data: UserRegister) -> Dict[str, Any]:
    user = await _create_user(session, data, UserRole.STUDENT)
    logger.info(f"User {user.id} registered ({user.email})")
    return _auth_response(user)


async def login(session: AsyncSession, data: UserLogin) -> Dict[str, Any]:
    user = await get_user_by_email(session, data.email)
    if not user or not user.password_hash or not verify_password(data.password, user.password_hash):
        raise UnauthorizedError("Invalid email or password")
    if not user.is_active:
        raise UnauthorizedError("Your account has been deactivated.")
    return _auth_response(user)


async def verify_google_token(id_token: str) -> Dict[str, Any]:
    """Ask Google to validate the ID token; returns its claims."""
    try:
        async with httpx.AsyncClient(timeout=10.0) as client:
            res = await client.get(config.GOOGLE_TOKENINFO_URL, params={"id_token": id_token})
    except httpx.HTTPError as e:
        logger.error(f"Google token verification failed: {e}")
        raise UnauthorizedError("Could not verify Google token")

    if res.status_code != 200:
        raise UnauthorizedError("Invalid Google token")
    claims = res.json()
    if config.GOOGLE_CLIENT_ID and claims.get("aud") != config.GOOGLE_CLIENT_ID:
        raise UnauthorizedError("Google token was issued for another client")
    if not claims.get("email") or str(claims.get("email_verified", "")).lower() != "true":
        raise UnauthorizedError("Google account email is not verified")
    return claims


async def google_login(session: AsyncSession, id_token: str) -> Dict[str, Any]:
    claims = await verify_google_token(id_token)
    google_id, email = claims["sub"], _normalize_email(claims["email"])

    result = await session.execute(select(User).filter(User.google_id == google_id))
    user = result.scalars().first() or await get_user_by_email(session, email)

    if user is None:
        user = User(
            name=claims.get("name"),
            email=email,
            role=UserRole.STUDENT,
            provider=AuthProvider.GOOGLE,
            google_id=google_id,
            is_verified=True,
        )
        session.add(user)
        logger.info(f"Created Google user {email}")
    elif user.google_id is None:
        # link an existing email account
        user.google_id = google_id
        user.is_verified = True

    if not user.is_active:
        raise UnauthorizedError("Your account has been deactivated.")
    await session.commit()
    return _auth_response(user)


async def create_admin(session: AsyncSession, data: CreateAdmin, creator: User) -> User:
    admin = await _create_user(session, data, UserRole.ADMIN, created_by_id=creator.id)
    logger.info(f"Admin {admin.id} created by {creator.id}")
    return admin


async def deactivate_user(session: AsyncSession, user_id: int) -> User:
    user = await session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found.")
    if user.role == UserRole.SUPER_ADMIN:
        raise ForbiddenError("A super admin cannot be deactivated.")
    if not user.is_active:
        raise BadRequestError("User is already deactivated.")
    user.is_active = False
    await session.commit()
    logger.info(f"User {user_id} deactivated")
    return user
