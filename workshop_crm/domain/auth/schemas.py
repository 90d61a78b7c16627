"""Auth domain schemas - login and token refresh"""

from typing import Optional

from pydantic import BaseModel, field_validator


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class RefreshRequest(BaseModel):
    refreshToken: Optional[str] = None


class UserResponse(BaseModel):
    id: str
    email: str
    role: str
    firstName: str
    lastName: str
    phone: Optional[str] = None


class TokenResponse(BaseModel):
    success: bool = True
    token: str
    refreshToken: str
    user: UserResponse
