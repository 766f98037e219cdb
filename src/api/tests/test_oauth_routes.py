"""Unit tests for the Google sign-in routes."""

import unittest
import sys
from pathlib import Path

import httpx

sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from fastapi.testclient import TestClient
from api.main import app
from api.dependencies import get_credential_service, get_oauth_verifier, get_token_codec
from adapter.fake.notifier import FakeNotifier
from adapter.external.google_oauth import GoogleOAuthVerifier
from adapter.fake.oauth_verifier import FAKE_AUTH_URL, FakeOAuthVerifier
from adapter.fake.user_repository import FakeUserRepository
from domain.model.auth import OAuthIdentity
from domain.model.user import OAuthProvider
from services.credential_service import CredentialService
from services.password_hasher import PasswordHasher
from services.token_codec import TokenCodec, TokenSettings


class TestGoogleMobileRoute(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)
        self.repo = FakeUserRepository()
        self.codec = TokenCodec(TokenSettings(secret_key='test-secret'))
        self.verifier = FakeOAuthVerifier()
        self.verifier.register('good-token', OAuthIdentity(
            provider=OAuthProvider.GOOGLE,
            provider_id='google-sub-1',
            email='bob@example.com',
            display_name='Bob',
        ))
        service = CredentialService(
            repo=self.repo,
            notifier=FakeNotifier(),
            token_codec=self.codec,
            hasher=PasswordHasher(rounds=4),
        )
        app.dependency_overrides[get_credential_service] = lambda: service
        app.dependency_overrides[get_token_codec] = lambda: self.codec
        app.dependency_overrides[get_oauth_verifier] = lambda: self.verifier

    def tearDown(self):
        """Clean up dependency overrides."""
        app.dependency_overrides.clear()

    def test_sign_in_creates_account(self):
        response = self.client.post('/auth/google/mobile', json={'idToken': 'good-token'})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['user']['email'], 'bob@example.com')
        self.assertEqual(data['user']['oauth_provider'], 'google')
        self.assertTrue(data['user']['is_verified'])
        self.assertEqual(self.codec.verify(data['token']).value, data['user']['id'])

    def test_second_sign_in_returns_same_user(self):
        first = self.client.post('/auth/google/mobile', json={'id_token': 'good-token'}).json()
        second = self.client.post('/auth/google/mobile', json={'id_token': 'good-token'}).json()

        self.assertEqual(first['user']['id'], second['user']['id'])
        self.assertEqual(len(self.repo.store), 1)

    def test_rejected_token_is_401(self):
        response = self.client.post('/auth/google/mobile', json={'id_token': 'forged'})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.repo.store, {})

    def test_missing_token_is_400(self):
        response = self.client.post('/auth/google/mobile', json={})

        self.assertEqual(response.status_code, 400)

class TestGoogleWebRoutes(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)
        self.repo = FakeUserRepository()
        self.codec = TokenCodec(TokenSettings(secret_key='test-secret'))
        self.verifier = FakeOAuthVerifier()
        self.verifier.register_code('auth-code-1', OAuthIdentity(
            provider=OAuthProvider.GOOGLE,
            provider_id='google-sub-2',
            email='carol@example.com',
            display_name='Carol',
        ))
        service = CredentialService(
            repo=self.repo,
            notifier=FakeNotifier(),
            token_codec=self.codec,
            hasher=PasswordHasher(rounds=4),
        )
        app.dependency_overrides[get_credential_service] = lambda: service
        app.dependency_overrides[get_oauth_verifier] = lambda: self.verifier

    def tearDown(self):
        app.dependency_overrides.clear()

    def _start(self) -> str:
        response = self.client.get('/auth/google', follow_redirects=False)
        self.assertEqual(response.status_code, 302)
        return httpx.URL(response.headers['location']).params['state']

    def test_login_redirects_with_state_cookie(self):
        response = self.client.get('/auth/google', follow_redirects=False)

        self.assertEqual(response.status_code, 302)
        location = httpx.URL(response.headers['location'])
        self.assertTrue(str(location).startswith(FAKE_AUTH_URL))
        self.assertEqual(response.cookies['oauth_state'], location.params['state'])

    def test_state_differs_per_login(self):
        self.assertNotEqual(self._start(), self._start())

    def test_callback_signs_in(self):
        state = self._start()

        response = self.client.get('/auth/google/callback', params={'code': 'auth-code-1', 'state': state})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['user']['email'], 'carol@example.com')
        self.assertEqual(data['user']['oauth_provider'], 'google')
        self.assertEqual(self.codec.verify(data['token']).value, data['user']['id'])

    def test_callback_state_mismatch_is_400(self):
        self._start()

        response = self.client.get('/auth/google/callback', params={'code': 'auth-code-1', 'state': 'forged'})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(self.repo.store, {})
        self.assertIn('auth-code-1', self.verifier.codes)

    def test_callback_without_state_cookie_is_400(self):
        response = self.client.get('/auth/google/callback', params={'code': 'auth-code-1', 'state': 'any'})

        self.assertEqual(response.status_code, 400)

    def test_callback_without_code_is_400(self):
        state = self._start()

        response = self.client.get('/auth/google/callback', params={'state': state})

        self.assertEqual(response.status_code, 400)

    def test_consent_denied_is_401(self):
        state = self._start()

        response = self.client.get('/auth/google/callback', params={'error': 'access_denied', 'state': state})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.repo.store, {})

    def test_unknown_code_is_401(self):
        state = self._start()

        response = self.client.get('/auth/google/callback', params={'code': 'replayed', 'state': state})

        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.repo.store, {})

    def test_login_not_configured_is_503(self):
        app.dependency_overrides[get_oauth_verifier] = lambda: GoogleOAuthVerifier('client-id')

        response = self.client.get('/auth/google', follow_redirects=False)

        self.assertEqual(response.status_code, 503)
        self.assertNotIn('oauth_state', response.cookies)


if __name__ == '__main__':
    unittest.main()
