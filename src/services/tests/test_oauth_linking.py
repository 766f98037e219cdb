"""Unit tests for link_oauth_identity()."""

import unittest
from unittest.mock import patch
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from adapter.fake.clock import FakeClock
from adapter.fake.notifier import FakeNotifier
from adapter.fake.user_repository import FakeUserRepository
from domain.model.auth import NotificationKind, OAuthIdentity
from domain.model.errors import AuthErrorKind
from domain.model.user import OAuthProvider, Profile, UserDraft
from services.credential_service import OAUTH_USERNAME_ATTEMPTS, CredentialService
from services.password_hasher import PasswordHasher
from services.token_codec import TokenCodec, TokenSettings


def _identity(**kwargs) -> OAuthIdentity:
    defaults = {
        'provider': OAuthProvider.GOOGLE,
        'provider_id': 'google-sub-1',
        'email': 'bob@example.com',
        'display_name': 'Bob Smith',
        'avatar_url': 'https://example.com/bob.png',
    }
    defaults.update(kwargs)
    return OAuthIdentity(**defaults)


class TestLinkOAuthIdentity(unittest.TestCase):
    def setUp(self):
        self.repo = FakeUserRepository()
        self.notifier = FakeNotifier()
        self.clock = FakeClock()
        self.codec = TokenCodec(TokenSettings(secret_key='test-secret'))
        self.service = CredentialService(
            repo=self.repo,
            notifier=self.notifier,
            token_codec=self.codec,
            hasher=PasswordHasher(rounds=4),
            clock=self.clock,
        )

    def test_creates_verified_linked_user(self):
        result = self.service.link_oauth_identity(_identity())

        self.assertTrue(result.ok)
        user = self.repo.get_by_id(result.value.user.id)
        self.assertTrue(user.is_verified)
        self.assertEqual(user.email, 'bob@example.com')
        self.assertEqual(user.oauth_provider, OAuthProvider.GOOGLE)
        self.assertEqual(user.oauth_id, 'google-sub-1')
        self.assertRegex(user.username, r'^bobsmith\d{1,3}$')
        self.assertTrue(user.password_hash.startswith('$2'))
        self.assertEqual(user.profile.display_name, 'Bob Smith')
        self.assertEqual(user.profile.avatar_url, 'https://example.com/bob.png')
        self.assertEqual(user.last_login_at, self.clock.now)
        self.assertEqual(self.codec.verify(result.value.token).value, user.id)
        self.assertEqual(self.notifier.sent, [])

    def test_same_identity_twice_resolves_to_same_user(self):
        """Second sign-in updates last_login_at, no duplicate."""
        first = self.service.link_oauth_identity(_identity())
        self.clock.advance(minutes=10)

        second = self.service.link_oauth_identity(_identity())

        self.assertEqual(second.value.user.id, first.value.user.id)
        self.assertEqual(len(self.repo.store), 1)
        self.assertEqual(self.repo.get_by_id(first.value.user.id).last_login_at, self.clock.now)

    def test_linked_identity_wins_over_changed_email(self):
        first = self.service.link_oauth_identity(_identity())

        second = self.service.link_oauth_identity(_identity(email='bob.new@example.com'))

        self.assertEqual(second.value.user.id, first.value.user.id)
        self.assertEqual(len(self.repo.store), 1)

    def test_links_existing_local_account(self):
        self.service.register('bob', 'bob@example.com', 'Passw0rd!', 'Passw0rd!')
        local = self.repo.get_by_email('bob@example.com')

        result = self.service.link_oauth_identity(_identity(email='Bob@Example.com'))

        self.assertEqual(result.value.user.id, local.id)
        user = self.repo.get_by_id(local.id)
        self.assertEqual(user.oauth_provider, OAuthProvider.GOOGLE)
        self.assertEqual(user.oauth_id, 'google-sub-1')
        self.assertEqual(user.username, 'bob')
        self.assertEqual(user.last_login_at, self.clock.now)
        self.assertEqual(len(self.repo.store), 1)

    def test_never_overwrites_existing_linkage(self):
        self.service.link_oauth_identity(_identity(provider_id='original-sub'))

        result = self.service.link_oauth_identity(_identity(provider_id='other-sub'))

        self.assertTrue(result.ok)
        user = self.repo.get_by_email('bob@example.com')
        self.assertEqual(user.oauth_id, 'original-sub')

    def test_username_collision_is_retried(self):
        self.repo.create(UserDraft(
            username='bobsmith7', email='other@example.com', password_hash='x',
            profile=Profile(display_name='other'),
        ))

        with patch('services.credential_service.secrets.randbelow', side_effect=[7, 8]):
            result = self.service.link_oauth_identity(_identity())

        self.assertTrue(result.ok)
        self.assertEqual(result.value.user.username, 'bobsmith8')

    def test_username_collisions_exhausted_conflict(self):
        self.repo.create(UserDraft(
            username='bobsmith7', email='other@example.com', password_hash='x',
            profile=Profile(display_name='other'),
        ))

        with patch('services.credential_service.secrets.randbelow', return_value=7):
            result = self.service.link_oauth_identity(_identity())

        self.assertEqual(result.error.kind, AuthErrorKind.CONFLICT)
        self.assertEqual(len(self.repo.store), 1)
        self.assertGreater(OAUTH_USERNAME_ATTEMPTS, 1)

    def test_email_registered_concurrently_conflicts(self):
        # The local account appears between the email lookup and the insert
        self.repo.create(UserDraft(
            username='bob', email='bob@example.com', password_hash='x',
            profile=Profile(display_name='bob'),
        ))

        with patch.object(self.repo, 'get_by_email', return_value=None):
            result = self.service.link_oauth_identity(_identity())

        self.assertEqual(result.error.kind, AuthErrorKind.CONFLICT)
        self.assertEqual(result.error.message, 'Email is already registered')
        self.assertEqual(len(self.repo.store), 1)
        self.assertIsNone(self.repo.get_by_email('bob@example.com').oauth_id)

    def test_empty_display_name_uses_email_local_part(self):
        result = self.service.link_oauth_identity(_identity(display_name='  '))

        self.assertRegex(result.value.user.username, r'^bob\d{1,3}$')

    def test_missing_email_is_validation_error(self):
        result = self.service.link_oauth_identity(_identity(email=''))

        self.assertEqual(result.error.kind, AuthErrorKind.VALIDATION_ERROR)

    def test_oauth_user_can_reset_password_locally(self):
        self.service.link_oauth_identity(_identity())
        self.service.forgot_password('bob@example.com')
        token = self.notifier.last(NotificationKind.RESET_CODE).payload['code']

        self.service.reset_password('bob@example.com', token, 'L0calPassword', 'L0calPassword')

        self.assertTrue(self.service.login('bob@example.com', 'L0calPassword').ok)


if __name__ == '__main__':
    unittest.main()
