"""Bearer token issuing and verification (JWT, HS256 by default)."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from domain.model.errors import AuthErrorKind, AuthResult

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_HOURS = 24


@dataclass(frozen=True)
class TokenSettings:
    """Signing configuration, loaded once at startup."""
    secret_key: str
    algorithm: str = JWT_ALGORITHM
    ttl: timedelta = timedelta(hours=JWT_EXPIRATION_HOURS)


class TokenCodec:
    """Signs and verifies bearer tokens carrying only the user id."""

    def __init__(self, settings: TokenSettings):
        if not settings.secret_key:
            raise ValueError(
                "JWT secret key is required. "
                "Generate a secure key with: openssl rand -hex 32"
            )
        self.settings = settings

    def issue(self, user_id: str, issued_at: datetime | None = None) -> str:
        """Create a signed token for ``user_id`` that expires after the configured TTL."""
        now = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "iat": now,
            "exp": now + self.settings.ttl,
        }
        return jwt.encode(payload, self.settings.secret_key, algorithm=self.settings.algorithm)

    def verify(self, token: str) -> AuthResult[str]:
        """Decode a token and return the user id it was issued for."""
        try:
            payload = jwt.decode(
                token, self.settings.secret_key, algorithms=[self.settings.algorithm],
            )
        except ExpiredSignatureError:
            return AuthResult.failure(AuthErrorKind.EXPIRED, "Token has expired")
        except JWTError as e:
            logger.debug(f"JWT verification failed: {e}")
            return AuthResult.failure(AuthErrorKind.INVALID_TOKEN, "Invalid token")

        user_id = payload.get("sub")
        if not user_id or not isinstance(user_id, str):
            return AuthResult.failure(AuthErrorKind.INVALID_TOKEN, "Invalid token")
        return AuthResult.success(user_id)
