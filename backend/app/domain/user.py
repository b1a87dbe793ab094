"""
User and Role Domain Models
"""
import re
from pydantic import BaseModel, Field, ConfigDict, EmailStr, field_validator
from typing import Optional, List, Literal
from datetime import datetime

from app.domain.common import reject_null


RoleName = Literal["admin", "manager", "staff", "viewer"]


def validate_password_strength(value: str) -> str:
    """At least 8 chars with an uppercase letter, a lowercase letter and a digit"""
    if len(value) < 8:
        raise ValueError("Password must be at least 8 characters")
    if not re.search(r"[A-Z]", value) or not re.search(r"[a-z]", value) or not re.search(r"\d", value):
        raise ValueError("Password must contain uppercase, lowercase and a number")
    return value


class User(BaseModel):
    """User as exposed by the API (never carries the password hash)"""

    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str = "staff"
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in [self.first_name, self.last_name] if part)

    def to_dict(self) -> dict:
        data = self.model_dump()
        data['full_name'] = self.full_name
        return data


class Role(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    user_count: int = 0
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., max_length=72)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def check_password(cls, v):
        return validate_password_strength(v)


class RefreshRequest(BaseModel):
    """Accepts {"refreshToken": "..."} as sent by the frontend"""
    refresh_token: str = Field(..., alias="refreshToken", min_length=10)

    model_config = ConfigDict(populate_by_name=True)


class LogoutRequest(BaseModel):
    refresh_token: Optional[str] = Field(None, alias="refreshToken")

    model_config = ConfigDict(populate_by_name=True)


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(..., max_length=72)

    @field_validator("new_password")
    @classmethod
    def check_password(cls, v):
        return validate_password_strength(v)


class UserCreate(RegisterRequest):
    """Admin-created user; the role can be chosen up front"""
    role: RoleName = "staff"


class UserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{10,15}$")
    is_active: Optional[bool] = None

    @field_validator("email", mode="before")
    @classmethod
    def lowercase_email(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("email", "first_name", "is_active")
    @classmethod
    def required_columns(cls, v):
        return reject_null(v)


class RoleAssignment(BaseModel):
    role: RoleName
