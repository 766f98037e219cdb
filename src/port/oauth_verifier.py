"""OAuth verifier port. Validates provider-issued ID tokens and authorization codes."""

from typing import Protocol

from domain.model.auth import OAuthIdentity


class OAuthVerifierPort(Protocol):
    def verify_id_token(self, id_token: str) -> OAuthIdentity | None:
        """Return the identity carried by a valid token, or None if rejected."""
        ...

    def authorization_url(self, state: str) -> str | None:
        """Provider consent URL carrying ``state``, or None if the web flow is not configured."""
        ...

    def exchange_code(self, code: str) -> OAuthIdentity | None:
        """Redeem an authorization code. Return None if the provider rejects it."""
        ...
