"""Process configuration, read once from the environment at startup."""

import os
from dataclasses import dataclass
from datetime import timedelta

from adapter.email.smtp_notifier import SMTP_TIMEOUT_SECONDS, SmtpSettings
from services.codes import DEFAULT_CODE_LENGTH
from services.password_hasher import BCRYPT_ROUNDS
from services.token_codec import JWT_ALGORITHM, JWT_EXPIRATION_HOURS, TokenSettings


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() not in ("0", "false", "no", "off")


@dataclass(frozen=True)
class Settings:
    token: TokenSettings
    smtp: SmtpSettings
    code_length: int = DEFAULT_CODE_LENGTH
    code_ttl: timedelta = timedelta(hours=1)
    bcrypt_rounds: int = BCRYPT_ROUNDS
    google_client_id: str = ''
    google_client_secret: str = ''
    google_redirect_uri: str = ''

    @classmethod
    def from_env(cls) -> 'Settings':
        """Build settings from environment variables.

        Raises:
            ValueError: JWT_SECRET_KEY is missing
        """
        secret = os.getenv("JWT_SECRET_KEY")
        if not secret:
            raise ValueError(
                "JWT_SECRET_KEY environment variable is required. "
                "Generate a secure key with: openssl rand -hex 32"
            )

        return cls(
            token=TokenSettings(
                secret_key=secret,
                algorithm=os.getenv("JWT_ALGORITHM", JWT_ALGORITHM),
                ttl=timedelta(hours=int(os.getenv("JWT_EXPIRATION_HOURS", JWT_EXPIRATION_HOURS))),
            ),
            smtp=SmtpSettings(
                host=os.getenv("SMTP_HOST", "smtp.gmail.com"),
                port=int(os.getenv("SMTP_PORT", "465")),
                username=os.getenv("SMTP_USERNAME", ""),
                password=os.getenv("SMTP_PASSWORD", ""),
                from_name=os.getenv("EMAIL_FROM_NAME", "App Name"),
                use_ssl=_env_bool("SMTP_USE_SSL", True),
                timeout=float(os.getenv("SMTP_TIMEOUT_SECONDS", SMTP_TIMEOUT_SECONDS)),
            ),
            code_length=int(os.getenv("CODE_LENGTH", DEFAULT_CODE_LENGTH)),
            code_ttl=timedelta(minutes=int(os.getenv("CODE_TTL_MINUTES", "60"))),
            bcrypt_rounds=int(os.getenv("BCRYPT_ROUNDS", BCRYPT_ROUNDS)),
            google_client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
            google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", ""),
            google_redirect_uri=os.getenv("GOOGLE_CALLBACK_URL", ""),
        )


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first call."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None
