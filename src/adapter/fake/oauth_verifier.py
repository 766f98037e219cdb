"""In-memory implementation of OAuthVerifierPort for testing."""

from domain.model.auth import OAuthIdentity

FAKE_AUTH_URL = 'https://accounts.example.com/auth'


class FakeOAuthVerifier:
    def __init__(self):
        self.identities: dict[str, OAuthIdentity] = {}
        self.codes: dict[str, OAuthIdentity] = {}

    def register(self, id_token: str, identity: OAuthIdentity) -> None:
        self.identities[id_token] = identity

    def register_code(self, code: str, identity: OAuthIdentity) -> None:
        self.codes[code] = identity

    def verify_id_token(self, id_token: str) -> OAuthIdentity | None:
        return self.identities.get(id_token)

    def authorization_url(self, state: str) -> str | None:
        return f"{FAKE_AUTH_URL}?state={state}"

    def exchange_code(self, code: str) -> OAuthIdentity | None:
        # Codes are single use
        return self.codes.pop(code, None)
