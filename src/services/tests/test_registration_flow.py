"""Unit tests for registration, email verification and code resend."""

import unittest
from unittest.mock import patch
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from adapter.fake.clock import FakeClock
from adapter.fake.notifier import FakeNotifier
from adapter.fake.user_repository import FakeUserRepository
from domain.model.auth import NotificationKind
from domain.model.errors import AuthErrorKind
from services.credential_service import CredentialService
from services.password_hasher import PasswordHasher
from services.token_codec import TokenCodec, TokenSettings


def _other_code(code: str) -> str:
    return '000000' if code != '000000' else '111111'


class RegistrationTestCase(unittest.TestCase):
    def setUp(self):
        self.repo = FakeUserRepository()
        self.notifier = FakeNotifier()
        self.clock = FakeClock()
        self.hasher = PasswordHasher(rounds=4)
        self.service = CredentialService(
            repo=self.repo,
            notifier=self.notifier,
            token_codec=TokenCodec(TokenSettings(secret_key='test-secret')),
            hasher=self.hasher,
            clock=self.clock,
        )

    def register_alice(self, password='Passw0rd!', email='a@x.com'):
        return self.service.register('alice', email, password, password)

    def sent_code(self) -> str:
        return self.notifier.last(NotificationKind.VERIFICATION_CODE).payload['code']


class TestRegister(RegistrationTestCase):
    """Test register()."""

    def test_register_creates_unverified_user_and_sends_code(self):
        result = self.register_alice()

        self.assertTrue(result.ok)
        self.assertFalse(result.value.resent)
        user = self.repo.get_by_id(result.value.user_id)
        self.assertFalse(user.is_verified)
        self.assertEqual(user.username, 'alice')
        self.assertEqual(user.profile.display_name, 'alice')
        self.assertTrue(self.hasher.verify('Passw0rd!', user.password_hash))

        sent = self.notifier.last(NotificationKind.VERIFICATION_CODE)
        self.assertEqual(sent.to, 'a@x.com')
        self.assertRegex(sent.payload['code'], r'^\d{6}$')
        self.assertEqual(user.verification_code, sent.payload['code'])

    def test_verification_code_expires_after_one_hour(self):
        result = self.register_alice()

        user = self.repo.get_by_id(result.value.user_id)
        self.assertEqual(user.verification_code_expires_at, self.clock.now + self.service.code_ttl)
        self.assertEqual(self.service.code_ttl.total_seconds(), 3600)

    def test_register_normalizes_email(self):
        result = self.register_alice(email='  Alice@Example.COM ')

        user = self.repo.get_by_id(result.value.user_id)
        self.assertEqual(user.email, 'alice@example.com')

    def test_register_rejects_password_mismatch(self):
        result = self.service.register('alice', 'a@x.com', 'Passw0rd!', 'Different1!')

        self.assertEqual(result.error.kind, AuthErrorKind.VALIDATION_ERROR)
        self.assertEqual(self.repo.store, {})
        self.assertEqual(self.notifier.sent, [])

    def test_register_rejects_missing_fields(self):
        for username, email, password in [('', 'a@x.com', 'Passw0rd!'), ('alice', '', 'Passw0rd!'), ('alice', 'a@x.com', '')]:
            with self.subTest(username=username, email=email):
                result = self.service.register(username, email, password, password)
                self.assertEqual(result.error.kind, AuthErrorKind.VALIDATION_ERROR)

    def test_register_rejects_short_password(self):
        result = self.service.register('alice', 'a@x.com', 'short', 'short')

        self.assertEqual(result.error.kind, AuthErrorKind.VALIDATION_ERROR)

    def test_register_unverified_email_again_overwrites(self):
        """A second signup refreshes the same record."""
        first = self.register_alice(password="Passw0rd!")

        second = self.service.register('alice2', 'a@x.com', 'An0therPass', 'An0therPass')

        self.assertTrue(second.ok)
        self.assertTrue(second.value.resent)
        self.assertEqual(second.value.user_id, first.value.user_id)
        self.assertEqual(len(self.repo.store), 1)

        user = self.repo.get_by_id(first.value.user_id)
        self.assertEqual(user.username, 'alice2')
        self.assertTrue(self.hasher.verify('An0therPass', user.password_hash))
        self.assertFalse(self.hasher.verify('Passw0rd!', user.password_hash))
        self.assertEqual(user.verification_code, self.sent_code())
        self.assertEqual(len(self.notifier.of_kind(NotificationKind.VERIFICATION_CODE)), 2)

    def test_register_verified_email_conflicts(self):
        self.register_alice()
        self.service.verify_email('a@x.com', self.sent_code())

        result = self.register_alice()

        self.assertEqual(result.error.kind, AuthErrorKind.CONFLICT)
        self.assertEqual(len(self.repo.store), 1)

    def test_register_taken_username_conflicts(self):
        self.register_alice(email='a@x.com')

        result = self.register_alice(email='b@x.com')

        self.assertEqual(result.error.kind, AuthErrorKind.CONFLICT)
        self.assertEqual(result.error.message, 'Username is already taken')

    def test_register_succeeds_when_notification_fails(self):
        self.notifier.fail = True

        result = self.register_alice()

        self.assertTrue(result.ok)
        self.assertIsNotNone(self.repo.get_by_id(result.value.user_id))


class TestVerifyEmail(RegistrationTestCase):
    """Test verify_email()."""

    def test_wrong_then_correct_code(self):
        """Wrong code is rejected, correct code verifies and welcomes."""
        registered = self.register_alice()
        code = self.sent_code()

        wrong = self.service.verify_email('a@x.com', _other_code(code))
        self.assertEqual(wrong.error.kind, AuthErrorKind.INVALID_CODE)

        verified = self.service.verify_email('a@x.com', code)
        self.assertTrue(verified.ok)
        self.assertTrue(verified.value.is_verified)

        user = self.repo.get_by_id(registered.value.user_id)
        self.assertTrue(user.is_verified)
        self.assertIsNone(user.verification_code)
        self.assertIsNone(user.verification_code_expires_at)

        welcome = self.notifier.last(NotificationKind.WELCOME)
        self.assertEqual(welcome.to, 'a@x.com')

    def test_verify_unknown_email_not_found(self):
        result = self.service.verify_email('nobody@x.com', '123456')

        self.assertEqual(result.error.kind, AuthErrorKind.NOT_FOUND)

    def test_verify_already_verified_conflicts(self):
        self.register_alice()
        code = self.sent_code()
        self.service.verify_email('a@x.com', code)

        result = self.service.verify_email('a@x.com', code)

        self.assertEqual(result.error.kind, AuthErrorKind.CONFLICT)

    def test_verify_expired_code(self):
        self.register_alice()
        code = self.sent_code()
        self.clock.advance(hours=1)

        result = self.service.verify_email('a@x.com', code)

        self.assertEqual(result.error.kind, AuthErrorKind.EXPIRED)
        self.assertFalse(self.repo.get_by_email('a@x.com').is_verified)

    def test_verify_just_before_expiry(self):
        self.register_alice()
        code = self.sent_code()
        self.clock.advance(minutes=59, seconds=59)

        self.assertTrue(self.service.verify_email('a@x.com', code).ok)

    def test_verify_accepts_email_in_any_case(self):
        self.register_alice()

        result = self.service.verify_email('A@X.com', self.sent_code())

        self.assertTrue(result.ok)

    def test_welcome_failure_does_not_roll_back(self):
        self.register_alice()
        code = self.sent_code()
        self.notifier.fail = True

        result = self.service.verify_email('a@x.com', code)

        self.assertTrue(result.ok)
        self.assertTrue(self.repo.get_by_email('a@x.com').is_verified)

    def test_welcome_exception_does_not_roll_back(self):
        self.register_alice()
        code = self.sent_code()

        def explode(*args, **kwargs):
            raise TimeoutError("smtp timed out")

        self.notifier.notify = explode

        result = self.service.verify_email('a@x.com', code)

        self.assertTrue(result.ok)
        self.assertTrue(self.repo.get_by_email('a@x.com').is_verified)

    def test_verified_concurrently_conflicts(self):
        self.register_alice()
        code = self.sent_code()
        update = self.repo.update

        def verify_first(user_id, fields, expected=None):
            # A parallel request with the same code lands first
            update(user_id, {'is_verified': True, 'verification_code': None})
            return update(user_id, fields, expected=expected)

        with patch.object(self.repo, 'update', side_effect=verify_first):
            result = self.service.verify_email('a@x.com', code)

        self.assertEqual(result.error.kind, AuthErrorKind.CONFLICT)
        self.assertEqual(result.error.message, 'Verification state changed, please retry')
        self.assertIsNone(self.notifier.last(NotificationKind.WELCOME))


class TestResendVerificationCode(RegistrationTestCase):
    """Test resend_verification_code()."""

    @patch('services.credential_service.generate_code', side_effect=['111111', '222222', '333333'])
    def test_resend_invalidates_previous_code(self, _mock_generate):
        self.register_alice()
        self.service.resend_verification_code('a@x.com')
        self.service.resend_verification_code('a@x.com')

        self.assertEqual(self.repo.get_by_email('a@x.com').verification_code, '333333')
        result = self.service.verify_email('a@x.com', '222222')
        self.assertEqual(result.error.kind, AuthErrorKind.INVALID_CODE)
        self.assertTrue(self.service.verify_email('a@x.com', '333333').ok)

    def test_resend_refreshes_expiry(self):
        self.register_alice()
        self.clock.advance(minutes=50)

        self.service.resend_verification_code('a@x.com')

        user = self.repo.get_by_email('a@x.com')
        self.assertEqual(user.verification_code_expires_at, self.clock.now + self.service.code_ttl)

    def test_resend_unknown_email_not_found(self):
        result = self.service.resend_verification_code('nobody@x.com')

        self.assertEqual(result.error.kind, AuthErrorKind.NOT_FOUND)
        self.assertEqual(self.notifier.sent, [])

    def test_resend_verified_conflicts(self):
        self.register_alice()
        self.service.verify_email('a@x.com', self.sent_code())

        result = self.service.resend_verification_code('a@x.com')

        self.assertEqual(result.error.kind, AuthErrorKind.CONFLICT)


if __name__ == '__main__':
    unittest.main()
