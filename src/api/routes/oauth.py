"""OAuth sign-in routes.

Two entry points resolve to the same account linking: mobile clients post a
Google ID token, browsers go through the authorization-code redirect.
"""

import hmac
import logging
import secrets
from typing import Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response, status
from fastapi.responses import RedirectResponse

from api.dependencies import get_credential_service, get_oauth_verifier
from api.errors import to_http_exception
from api.models import AuthResponse, GoogleMobileRequest, UserResponse
from domain.model.auth import OAuthIdentity
from port.oauth_verifier import OAuthVerifierPort
from services.credential_service import CredentialService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/google", tags=["oauth"])

OAUTH_STATE_COOKIE = "oauth_state"
OAUTH_STATE_MAX_AGE_SECONDS = 600


def _sign_in(identity: OAuthIdentity, service: CredentialService) -> AuthResponse:
    result = service.link_oauth_identity(identity)
    if not result.ok:
        raise to_http_exception(result.error)

    session = result.value
    return AuthResponse(token=session.token, user=UserResponse.from_view(session.user))


@router.post("/mobile", response_model=AuthResponse)
def google_mobile(
    request: GoogleMobileRequest,
    verifier: OAuthVerifierPort = Depends(get_oauth_verifier),
    service: CredentialService = Depends(get_credential_service),
):
    """Sign in with a Google ID token obtained by a mobile client.

    Links the Google identity to an existing account with the same email,
    or creates a verified account.

    Raises:
        HTTPException: 401 if Google rejects the token
    """
    identity = verifier.verify_id_token(request.id_token)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Google ID token",
        )
    return _sign_in(identity, service)


@router.get("")
def google_login(request: Request, verifier: OAuthVerifierPort = Depends(get_oauth_verifier)):
    """Redirect the browser to Google's consent screen.

    A random ``state`` is pinned in a short-lived cookie and checked on callback.

    Raises:
        HTTPException: 503 if web sign-in is not configured
    """
    state = secrets.token_urlsafe(16)
    url = verifier.authorization_url(state)
    if url is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Google sign-in is not configured",
        )

    response = RedirectResponse(url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        OAUTH_STATE_COOKIE,
        state,
        max_age=OAUTH_STATE_MAX_AGE_SECONDS,
        httponly=True,
        samesite="lax",
        secure=request.url.scheme == "https",
    )
    return response


@router.get("/callback", response_model=AuthResponse)
def google_callback(
    response: Response,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    oauth_state: Optional[str] = Cookie(None),
    verifier: OAuthVerifierPort = Depends(get_oauth_verifier),
    service: CredentialService = Depends(get_credential_service),
):
    """Finish web sign-in: check ``state``, redeem ``code``, link the identity.

    Raises:
        HTTPException: 400 missing code or state mismatch, 401 consent denied or code rejected
    """
    if error:
        logger.info("Google sign-in not granted", extra={"error": error})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Google sign-in was not granted")
    if not code:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Authorization code is required")
    if not state or not oauth_state or not hmac.compare_digest(state.encode(), oauth_state.encode()):
        logger.warning("OAuth state mismatch on Google callback")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid OAuth state")

    response.delete_cookie(OAUTH_STATE_COOKIE)

    identity = verifier.exchange_code(code)
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Google rejected the authorization code",
        )
    return _sign_in(identity, service)
