from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from lms.db.models import AuthProvider, UserRole

from .common import CamelModel


class SendOtpRequest(CamelModel):
    email: EmailStr


class VerifyOtpRequest(CamelModel):
    email: EmailStr
    code: str = Field(min_length=6, max_length=6, pattern=r"^\d{6}$")


class UserRegister(CamelModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    phone_number: Optional[str] = None


class UserLogin(CamelModel):
    email: EmailStr
    password: str


class GoogleLogin(CamelModel):
    id_token: str


class CreateAdmin(UserRegister):
    pass


class UserOut(CamelModel):
    id: int
    name: Optional[str] = None
    email: str
    phone_number: Optional[str] = None
    role: UserRole
    provider: AuthProvider
    is_verified: bool
    is_active: bool
    created_at: Optional[datetime] = None


class AuthOut(CamelModel):
    access_token: str
    user: UserOut
