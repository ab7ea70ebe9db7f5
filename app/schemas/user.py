from pydantic import BaseModel, EmailStr, Field
from datetime import datetime
from typing import List, Optional


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str
    firstName: str = Field(..., min_length=1, max_length=50)
    lastName: str = Field(..., min_length=1, max_length=50)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RevokeTokenRequest(BaseModel):
    refreshToken: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    currentPassword: str
    newPassword: str


class UpdateUserRequest(BaseModel):
    firstName: str = Field(..., min_length=1, max_length=50)
    lastName: str = Field(..., min_length=1, max_length=50)
    email: Optional[EmailStr] = None


class AssignRoleRequest(BaseModel):
    role: str


class UserInfoResponse(BaseModel):
    id: str
    email: str
    firstName: str
    lastName: str
    fullName: str
    roles: List[str]

    @classmethod
    def from_info(cls, info) -> "UserInfoResponse":
        return cls(
            id=info.id,
            email=info.email,
            firstName=info.first_name,
            lastName=info.last_name,
            fullName=info.full_name,
            roles=list(info.roles),
        )


class AuthResponse(BaseModel):
    success: bool
    message: str
    accessToken: Optional[str] = None
    expiresAt: Optional[datetime] = None
    user: Optional[UserInfoResponse] = None
    errors: Optional[List[str]] = None


class MessageResponse(BaseModel):
    success: bool
    message: str
    errors: Optional[List[str]] = None


class UserDataResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    data: UserInfoResponse


class UserListResponse(BaseModel):
    success: bool
    data: List[UserInfoResponse]
