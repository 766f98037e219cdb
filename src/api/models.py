"""Pydantic models for API request/response."""

from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, EmailStr, Field

from domain.model.user import UserView


def _field(name: str, camel: str, **kwargs):
    """Accept both snake_case and the camelCase names older clients send."""
    return Field(..., validation_alias=AliasChoices(name, camel), **kwargs)


# ── Requests ─────────────────────────────────────────────────


class RegisterRequest(BaseModel):
    """Request model for user registration."""
    username: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    password: str
    confirm_password: str = _field("confirm_password", "confirmPassword")


class VerifyEmailRequest(BaseModel):
    email: EmailStr
    code: str = Field(..., min_length=1, max_length=16)


class EmailRequest(BaseModel):
    """Request carrying only an email (resend code, forgot password)."""
    email: EmailStr


class LoginRequest(BaseModel):
    """Request model for user login."""
    email: EmailStr
    password: str


class ChangePasswordRequest(BaseModel):
    email: EmailStr
    current_password: str = _field("current_password", "currentPassword")
    new_password: str = _field("new_password", "newPassword")
    confirm_password: str = _field("confirm_password", "confirmPassword")


class ResetPasswordRequest(BaseModel):
    email: EmailStr
    reset_token: str = _field("reset_token", "resetToken", min_length=1, max_length=16)
    new_password: str = _field("new_password", "newPassword")
    confirm_password: str = _field("confirm_password", "confirmPassword")


class GoogleMobileRequest(BaseModel):
    id_token: str = _field("id_token", "idToken", min_length=1)


# ── Responses ────────────────────────────────────────────────


class ProfileResponse(BaseModel):
    display_name: str
    avatar_url: Optional[str] = None


class UserResponse(BaseModel):
    """Sanitized user returned to clients."""
    id: str = Field(..., description="User ID")
    username: str
    email: str
    is_verified: bool
    created_at: datetime
    oauth_provider: Optional[str] = Field(None, description="Linked identity provider")
    last_login_at: Optional[datetime] = None
    profile: Optional[ProfileResponse] = None

    @classmethod
    def from_view(cls, view: UserView) -> 'UserResponse':
        return cls(
            id=view.id,
            username=view.username,
            email=view.email,
            is_verified=view.is_verified,
            created_at=view.created_at,
            oauth_provider=view.oauth_provider.value if view.oauth_provider else None,
            last_login_at=view.last_login_at,
            profile=ProfileResponse(
                display_name=view.profile.display_name,
                avatar_url=view.profile.avatar_url,
            ) if view.profile else None,
        )


class AuthResponse(BaseModel):
    """Response model for authentication."""
    token: str
    user: UserResponse


class RegisterResponse(BaseModel):
    message: str
    user_id: str


class MessageResponse(BaseModel):
    message: str


class VerifyEmailResponse(BaseModel):
    message: str
    user: UserResponse
