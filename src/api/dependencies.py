from fastapi import Depends, HTTPException

from adapter.email.smtp_notifier import SmtpNotifier
from adapter.external.google_oauth import GoogleOAuthVerifier
from adapter.mongodb.connection import get_database
from adapter.mongodb.user_repository import MongoUserRepository
from api.config import get_settings
from port.notifier import NotifierPort
from port.oauth_verifier import OAuthVerifierPort
from port.user_repository import UserRepository
from services.credential_service import CredentialService
from services.password_hasher import PasswordHasher
from services.token_codec import TokenCodec


def _get_db():
    """Get MongoDB database, raising 503 if unavailable."""
    db = get_database()
    if db is None:
        raise HTTPException(status_code=503, detail="Database unavailable")
    return db


def get_user_repo() -> UserRepository:
    return MongoUserRepository(_get_db())


def get_notifier() -> NotifierPort:
    return SmtpNotifier(get_settings().smtp)


def get_token_codec() -> TokenCodec:
    return TokenCodec(get_settings().token)


def get_oauth_verifier() -> OAuthVerifierPort:
    settings = get_settings()
    return GoogleOAuthVerifier(
        settings.google_client_id,
        client_secret=settings.google_client_secret,
        redirect_uri=settings.google_redirect_uri,
    )


def get_credential_service(
    repo: UserRepository = Depends(get_user_repo),
    notifier: NotifierPort = Depends(get_notifier),
    token_codec: TokenCodec = Depends(get_token_codec),
) -> CredentialService:
    settings = get_settings()
    return CredentialService(
        repo=repo,
        notifier=notifier,
        token_codec=token_codec,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        code_length=settings.code_length,
        code_ttl=settings.code_ttl,
    )
