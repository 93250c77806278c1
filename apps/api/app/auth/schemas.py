from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class RegisterRequest(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6, max_length=100)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    role: str


class RegisterResponse(BaseModel):
    success: bool = True
    message: str = "User registered successfully"


class LoginResponse(BaseModel):
    success: bool = True
    message: str = "Login successful"
    token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserRead


class MeResponse(BaseModel):
    success: bool = True
    user: UserRead
