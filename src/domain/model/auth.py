# domain/model/auth.py

from dataclasses import dataclass
from enum import Enum

from domain.model.user import OAuthProvider, UserView


class NotificationKind(str, Enum):
    """Messages the credential service sends to account holders."""
    VERIFICATION_CODE = 'verification_code'
    RESET_CODE = 'reset_code'
    WELCOME = 'welcome'


@dataclass(frozen=True)
class Registration:
    """Result of a registration. ``resent`` is True when an unverified signup was refreshed."""
    user_id: str
    resent: bool = False


@dataclass(frozen=True)
class AuthSession:
    """Bearer token plus the sanitized view of the authenticated user."""
    token: str
    user: UserView


@dataclass(frozen=True)
class OAuthIdentity:
    """An identity already verified by an external provider."""
    provider: OAuthProvider
    provider_id: str
    email: str
    display_name: str = ''
    avatar_url: str | None = None
