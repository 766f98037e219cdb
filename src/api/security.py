"""Bearer token authentication dependencies."""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from api.dependencies import get_credential_service, get_token_codec
from domain.model.errors import AuthErrorKind
from domain.model.user import UserView
from services.credential_service import CredentialService
from services.token_codec import TokenCodec

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user_required(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    token_codec: TokenCodec = Depends(get_token_codec),
    service: CredentialService = Depends(get_credential_service),
) -> UserView:
    """Resolve the bearer token to a user. Raises 401 if not authenticated."""
    if not credentials:
        raise _unauthorized("Not authenticated")

    verified = token_codec.verify(credentials.credentials)
    if not verified.ok:
        raise _unauthorized("Invalid authentication credentials")

    found = service.get_user(verified.value)
    if not found.ok and found.error.kind == AuthErrorKind.INTERNAL:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=found.error.message,
        )
    if not found.ok:
        logger.info("Token subject no longer resolves to a user", extra={"userId": verified.value})
        raise _unauthorized("User not found")

    return found.value
