"""Google sign-in adapter.

Implements OAuthVerifierPort for both Google entry points:

- mobile: the client already holds an ID token, validated through Google's
  tokeninfo endpoint;
- web: the browser is redirected to Google's consent screen and comes back
  with an authorization code, exchanged at the token endpoint for an ID token
  that is then validated the same way.

Audience, issuer and email verification claims are checked locally.
"""

import logging

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from domain.model.auth import OAuthIdentity
from domain.model.user import OAuthProvider

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_TOKENINFO_URL = "https://oauth2.googleapis.com/tokeninfo"
GOOGLE_SCOPES = "openid email profile"
API_TIMEOUT_SECONDS = 5.0
_VALID_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


@retry(
    retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=4),
    reraise=True,
)
def _request_with_retry(client: httpx.Client, method: str, url: str, **kwargs) -> httpx.Response:
    """Call a Google endpoint with automatic retry on transient failures."""
    return client.request(method, url, **kwargs)


def _json_object(response: httpx.Response) -> dict | None:
    try:
        body = response.json()
    except ValueError:
        logger.warning("Google returned a non-JSON body", extra={"status_code": response.status_code})
        return None
    return body if isinstance(body, dict) else None


class GoogleOAuthVerifier:
    def __init__(
        self,
        client_id: str,
        client_secret: str = '',
        redirect_uri: str = '',
        transport: httpx.BaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self._transport = transport

    def _call(self, method: str, url: str, **kwargs) -> dict | None:
        """Perform a request and return its JSON object body, or None on any failure."""
        try:
            with httpx.Client(timeout=API_TIMEOUT_SECONDS, transport=self._transport) as client:
                response = _request_with_retry(client, method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning("Google request error", extra={"url": url, "error_type": type(e).__name__})
            return None

        if response.status_code != 200:
            logger.info("Google rejected request", extra={"url": url, "status_code": response.status_code})
            return None
        return _json_object(response)

    # ── mobile: ID token ─────────────────────────────────────

    def verify_id_token(self, id_token: str) -> OAuthIdentity | None:
        if not self.client_id:
            logger.error("GOOGLE_CLIENT_ID not configured, rejecting ID token")
            return None

        claims = self._call("GET", GOOGLE_TOKENINFO_URL, params={"id_token": id_token})
        if claims is None:
            return None
        return self._identity_from_claims(claims)

    # ── web: authorization code ──────────────────────────────

    def authorization_url(self, state: str) -> str | None:
        """Consent screen URL for the web flow, or None when it is not configured."""
        if not self.client_id or not self.redirect_uri:
            return None
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": GOOGLE_SCOPES,
            "state": state,
            "prompt": "select_account",
        }
        return str(httpx.URL(GOOGLE_AUTH_URL, params=params))

    def exchange_code(self, code: str) -> OAuthIdentity | None:
        """Redeem an authorization code and return the identity it was issued for."""
        if not self.client_id or not self.client_secret or not self.redirect_uri:
            logger.error("Google web sign-in not configured, rejecting authorization code")
            return None

        tokens = self._call("POST", GOOGLE_TOKEN_URL, data={
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        })
        id_token = (tokens or {}).get("id_token")
        if not id_token:
            return None
        return self.verify_id_token(id_token)

    def _identity_from_claims(self, claims: dict) -> OAuthIdentity | None:
        if claims.get("aud") != self.client_id:
            logger.warning("ID token audience mismatch")
            return None
        if claims.get("iss") not in _VALID_ISSUERS:
            logger.warning("ID token issuer mismatch", extra={"issuer": claims.get("iss")})
            return None
        if str(claims.get("email_verified", "")).lower() != "true":
            logger.info("Google email not verified")
            return None

        subject = claims.get("sub")
        email = claims.get("email")
        if not subject or not email:
            return None

        return OAuthIdentity(
            provider=OAuthProvider.GOOGLE,
            provider_id=subject,
            email=email,
            display_name=claims.get("name", ""),
            avatar_url=claims.get("picture"),
        )
