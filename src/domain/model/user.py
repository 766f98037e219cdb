from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class OAuthProvider(str, Enum):
    """External identity providers an account can be linked to."""
    GOOGLE = 'google'


@dataclass
class Profile:
    """Public profile owned by a user."""
    display_name: str
    avatar_url: str | None = None


@dataclass
class User:
    """Domain model representing a user account and its credential state."""
    id: str
    username: str
    email: str
    password_hash: str
    created_at: datetime
    updated_at: datetime
    is_verified: bool = False
    verification_code: str | None = None
    verification_code_expires_at: datetime | None = None
    reset_token: str | None = None
    reset_token_expires_at: datetime | None = None
    oauth_provider: OAuthProvider | None = None
    oauth_id: str | None = None
    last_login_at: datetime | None = None
    password_changed_at: datetime | None = None
    profile: Profile | None = None


@dataclass
class UserDraft:
    """Fields required to create a user. The repository assigns id and timestamps."""
    username: str
    email: str
    password_hash: str
    profile: Profile
    is_verified: bool = False
    verification_code: str | None = None
    verification_code_expires_at: datetime | None = None
    oauth_provider: OAuthProvider | None = None
    oauth_id: str | None = None
    last_login_at: datetime | None = None


@dataclass(frozen=True)
class UserView:
    """Sanitized user representation returned to callers.

    Built field by field from a User so that secrets (password hash,
    verification code, reset token) can never leak through new fields.
    """
    id: str
    username: str
    email: str
    is_verified: bool
    created_at: datetime
    oauth_provider: OAuthProvider | None = None
    last_login_at: datetime | None = None
    profile: Profile | None = field(default=None)

    @classmethod
    def from_user(cls, user: User) -> 'UserView':
        profile = None
        if user.profile is not None:
            profile = Profile(
                display_name=user.profile.display_name,
                avatar_url=user.profile.avatar_url,
            )
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            is_verified=user.is_verified,
            created_at=user.created_at,
            oauth_provider=user.oauth_provider,
            last_login_at=user.last_login_at,
            profile=profile,
        )


def normalize_email(email: str) -> str:
    """Canonical form used for storage and every lookup."""
    return email.strip().lower()
