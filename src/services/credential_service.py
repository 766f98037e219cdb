"""Credential lifecycle service: registration, verification, login,
password rotation and reset, OAuth identity linking.

Pure business logic with no HTTP dependencies. Every public operation
returns an ``AuthResult``: expected failures are values, not exceptions.
Unexpected errors from the repository, hasher or token codec are logged
once at the operation boundary and reported as ``INTERNAL``.

Account states: unverified -> verified. A pending verification code and a
pending reset token are independent sub-states, each cleared in the same
write that consumes it. Expiry is checked lazily when a code is used;
``expires_at <= now`` counts as expired.
"""

import functools
import hmac
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable

from tenacity import Retrying, retry_if_exception, stop_after_attempt

from domain.model.auth import (
    AuthSession,
    NotificationKind,
    OAuthIdentity,
    Registration,
)
from domain.model.errors import (
    AuthErrorKind,
    AuthResult,
    DuplicateError,
    StaleWriteError,
)
from domain.model.user import Profile, User, UserDraft, UserView, normalize_email
from port.notifier import NotifierPort
from port.user_repository import UserRepository
from services.codes import DEFAULT_CODE_LENGTH, generate_code, generate_reset_token
from services.password_hasher import BCRYPT_MAX_PASSWORD_BYTES, PasswordHasher
from services.token_codec import TokenCodec

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
CODE_TTL = timedelta(hours=1)
OAUTH_USERNAME_ATTEMPTS = 5
OAUTH_USERNAME_SUFFIX_RANGE = 1000

VERIFICATION_REQUIRED_HINT = "verification_required"
INTERNAL_ERROR_MESSAGE = "Internal server error"
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password"
USER_NOT_FOUND_MESSAGE = "User not found"

_DUPLICATE_MESSAGES = {
    "email": "Email is already registered",
    "username": "Username is already taken",
    "oauth_id": "This external account is already linked to another user",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_expired(expires_at: datetime | None, now: datetime) -> bool:
    return expires_at is None or expires_at <= now


def _secrets_match(expected: str, given: str) -> bool:
    return hmac.compare_digest(expected.encode("utf-8"), given.encode("utf-8"))


def _check_new_password(password: str, confirm_password: str | None) -> str | None:
    """Return a validation message, or None if the password is acceptable."""
    if password != confirm_password:
        return "Passwords do not match"
    if len(password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
    if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
        return f"Password must be at most {BCRYPT_MAX_PASSWORD_BYTES} bytes"
    return None


def _oauth_username_base(display_name: str, email: str) -> str:
    base = re.sub(r"\s+", "", display_name or "").lower()
    if not base:
        base = email.split("@", 1)[0].lower()
    return base or "user"


def _is_username_collision(exc: BaseException) -> bool:
    return isinstance(exc, DuplicateError) and exc.field == "username"


def _duplicate_failure(error: DuplicateError) -> AuthResult:
    message = _DUPLICATE_MESSAGES.get(error.field, "Account already exists")
    return AuthResult.failure(AuthErrorKind.CONFLICT, message)


def _operation(name: str):
    """Report unexpected collaborator failures as INTERNAL without leaking detail."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args, **kwargs):
            try:
                return func(self, *args, **kwargs)
            except Exception:
                logger.exception("Credential operation failed", extra={"operation": name})
                return AuthResult.failure(AuthErrorKind.INTERNAL, INTERNAL_ERROR_MESSAGE)
        return wrapper
    return decorator


class CredentialService:
    """Orchestrates the credential state machine over a UserRepository."""

    def __init__(
        self,
        repo: UserRepository,
        notifier: NotifierPort,
        token_codec: TokenCodec,
        hasher: PasswordHasher | None = None,
        code_length: int = DEFAULT_CODE_LENGTH,
        code_ttl: timedelta = CODE_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repo = repo
        self.notifier = notifier
        self.token_codec = token_codec
        self.hasher = hasher or PasswordHasher()
        self.code_length = code_length
        self.code_ttl = code_ttl
        self.clock = clock

    @functools.cached_property
    def _dummy_hash(self) -> str:
        # Checked against on unknown emails so login timing does not reveal accounts
        return self.hasher.hash(secrets.token_urlsafe(16))

    # ── registration & verification ──────────────────────────

    @_operation("register")
    def register(
        self, username: str, email: str, password: str, confirm_password: str,
    ) -> AuthResult[Registration]:
        """Create an unverified account, or refresh an abandoned unverified signup.

        Failures: VALIDATION_ERROR, CONFLICT (email verified elsewhere, username taken)
        """
        username = (username or "").strip()
        email = normalize_email(email or "")
        if not username or not email or not password:
            return AuthResult.failure(
                AuthErrorKind.VALIDATION_ERROR, "Username, email, and password are required",
            )
        problem = _check_new_password(password, confirm_password)
        if problem:
            return AuthResult.failure(AuthErrorKind.VALIDATION_ERROR, problem)

        existing = self.repo.get_by_email(email)
        if existing is not None and existing.is_verified:
            return AuthResult.failure(
                AuthErrorKind.CONFLICT, "Email is already registered and verified",
            )

        code = generate_code(self.code_length)
        expires_at = self.clock() + self.code_ttl
        password_hash = self.hasher.hash(password)

        if existing is None:
            draft = UserDraft(
                username=username,
                email=email,
                password_hash=password_hash,
                profile=Profile(display_name=username),
                verification_code=code,
                verification_code_expires_at=expires_at,
            )
            try:
                user = self.repo.create(draft)
            except DuplicateError as e:
                logger.warning("Registration rejected by unique constraint", extra={
                    "email": email, "field": e.field,
                })
                return _duplicate_failure(e)
            logger.info("User registered", extra={"userId": user.id, "email": email})
            self._notify(NotificationKind.VERIFICATION_CODE, email, {"code": code, "name": username})
            return AuthResult.success(Registration(user_id=user.id))

        try:
            self.repo.update(
                existing.id,
                {
                    "username": username,
                    "password_hash": password_hash,
                    "verification_code": code,
                    "verification_code_expires_at": expires_at,
                },
                expected={"is_verified": False},
            )
        except StaleWriteError:
            return AuthResult.failure(
                AuthErrorKind.CONFLICT, "Email is already registered and verified",
            )
        except DuplicateError as e:
            return _duplicate_failure(e)

        logger.info("Unverified registration refreshed", extra={"userId": existing.id, "email": email})
        self._notify(NotificationKind.VERIFICATION_CODE, email, {"code": code, "name": username})
        return AuthResult.success(Registration(user_id=existing.id, resent=True))

    @_operation("verify_email")
    def verify_email(self, email: str, code: str) -> AuthResult[UserView]:
        """Mark the account verified if ``code`` matches and is still live.

        Failures: VALIDATION_ERROR, NOT_FOUND, CONFLICT, INVALID_CODE, EXPIRED
        """
        email = normalize_email(email or "")
        code = (code or "").strip()
        if not email or not code:
            return AuthResult.failure(
                AuthErrorKind.VALIDATION_ERROR, "Email and verification code are required",
            )

        user = self.repo.get_by_email(email)
        if user is None:
            return AuthResult.failure(AuthErrorKind.NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        if user.is_verified:
            return AuthResult.failure(AuthErrorKind.CONFLICT, "Email is already verified")
        if user.verification_code is None:
            return AuthResult.failure(AuthErrorKind.EXPIRED, "Verification code has expired")
        if not _secrets_match(user.verification_code, code):
            return AuthResult.failure(AuthErrorKind.INVALID_CODE, "Invalid verification code")
        if _is_expired(user.verification_code_expires_at, self.clock()):
            return AuthResult.failure(AuthErrorKind.EXPIRED, "Verification code has expired")

        try:
            user = self.repo.update(
                user.id,
                {
                    "is_verified": True,
                    "verification_code": None,
                    "verification_code_expires_at": None,
                },
                expected={"is_verified": False, "verification_code": user.verification_code},
            )
        except StaleWriteError:
            return AuthResult.failure(
                AuthErrorKind.CONFLICT, "Verification state changed, please retry",
            )

        logger.info("Email verified", extra={"userId": user.id})
        self._notify(NotificationKind.WELCOME, user.email, {"name": user.username})
        return AuthResult.success(UserView.from_user(user))

    @_operation("resend_verification_code")
    def resend_verification_code(self, email: str) -> AuthResult[None]:
        """Replace the pending verification code with a fresh one and send it.

        Failures: VALIDATION_ERROR, NOT_FOUND, CONFLICT
        """
        email = normalize_email(email or "")
        if not email:
            return AuthResult.failure(AuthErrorKind.VALIDATION_ERROR, "Email is required")

        user = self.repo.get_by_email(email)
        if user is None:
            return AuthResult.failure(AuthErrorKind.NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        if user.is_verified:
            return AuthResult.failure(AuthErrorKind.CONFLICT, "Email is already verified")

        code = generate_code(self.code_length)
        try:
            self.repo.update(
                user.id,
                {
                    "verification_code": code,
                    "verification_code_expires_at": self.clock() + self.code_ttl,
                },
                expected={"is_verified": False},
            )
        except StaleWriteError:
            return AuthResult.failure(AuthErrorKind.CONFLICT, "Email is already verified")

        logger.info("Verification code reissued", extra={"userId": user.id})
        self._notify(NotificationKind.VERIFICATION_CODE, email, {"code": code, "name": user.username})
        return AuthResult.success()

    # ── authentication ───────────────────────────────────────

    @_operation("login")
    def login(self, email: str, password: str) -> AuthResult[AuthSession]:
        """Authenticate by email and password and issue a bearer token.

        Unknown email and wrong password return the same failure.

        Failures: VALIDATION_ERROR, INVALID_CREDENTIALS, NOT_VERIFIED
        """
        email = normalize_email(email or "")
        if not email or not password:
            return AuthResult.failure(AuthErrorKind.VALIDATION_ERROR, "Email and password are required")

        user = self.repo.get_by_email(email)
        if user is None:
            self.hasher.verify(password, self._dummy_hash)
            return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)
        if not self.hasher.verify(password, user.password_hash):
            return AuthResult.failure(AuthErrorKind.INVALID_CREDENTIALS, INVALID_CREDENTIALS_MESSAGE)
        if not user.is_verified:
            return AuthResult.failure(
                AuthErrorKind.NOT_VERIFIED,
                "Please verify your email before logging in",
                hint=VERIFICATION_REQUIRED_HINT,
            )

        user = self.repo.update(user.id, {"last_login_at": self.clock()})
        token = self.token_codec.issue(user.id)
        logger.info("User logged in", extra={"userId": user.id})
        return AuthResult.success(AuthSession(token=token, user=UserView.from_user(user)))

    @_operation("get_user")
    def get_user(self, user_id: str) -> AuthResult[UserView]:
        user = self.repo.get_by_id(user_id)
        if user is None:
            return AuthResult.failure(AuthErrorKind.NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        return AuthResult.success(UserView.from_user(user))

    # ── password rotation & reset ────────────────────────────

    @_operation("change_password")
    def change_password(
        self,
        email: str,
        current_password: str,
        new_password: str,
        confirm_password: str,
    ) -> AuthResult[None]:
        """Replace the password of an authenticated user.

        The caller must already have matched the bearer identity to ``email``.

        Failures: VALIDATION_ERROR, NOT_FOUND, INVALID_CREDENTIALS, CONFLICT
        """
        email = normalize_email(email or "")
        if not email or not current_password or not new_password:
            return AuthResult.failure(
                AuthErrorKind.VALIDATION_ERROR,
                "Email, current password, and new password are required",
            )
        problem = _check_new_password(new_password, confirm_password)
        if problem:
            return AuthResult.failure(AuthErrorKind.VALIDATION_ERROR, problem)

        user = self.repo.get_by_email(email)
        if user is None:
            return AuthResult.failure(AuthErrorKind.NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        if not self.hasher.verify(current_password, user.password_hash):
            return AuthResult.failure(
                AuthErrorKind.INVALID_CREDENTIALS, "Current password is incorrect",
            )
        if self.hasher.verify(new_password, user.password_hash):
            return AuthResult.failure(
                AuthErrorKind.CONFLICT, "New password must be different from the current password",
            )

        try:
            self.repo.update(
                user.id,
                {
                    "password_hash": self.hasher.hash(new_password),
                    "password_changed_at": self.clock(),
                },
                expected={"password_hash": user.password_hash},
            )
        except StaleWriteError:
            return AuthResult.failure(AuthErrorKind.CONFLICT, "Password was changed concurrently")

        logger.info("Password changed", extra={"userId": user.id})
        return AuthResult.success()

    @_operation("forgot_password")
    def forgot_password(self, email: str) -> AuthResult[None]:
        """Start a reset flow. Succeeds whether or not the email is registered."""
        email = normalize_email(email or "")
        if not email:
            return AuthResult.failure(AuthErrorKind.VALIDATION_ERROR, "Email is required")

        user = self.repo.get_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return AuthResult.success()

        token = generate_reset_token(self.code_length)
        self.repo.update(
            user.id,
            {
                "reset_token": token,
                "reset_token_expires_at": self.clock() + self.code_ttl,
            },
        )
        logger.info("Password reset requested", extra={"userId": user.id})
        self._notify(NotificationKind.RESET_CODE, user.email, {"code": token, "name": user.username})
        return AuthResult.success()

    @_operation("reset_password")
    def reset_password(
        self,
        email: str,
        reset_token: str,
        new_password: str,
        confirm_password: str,
    ) -> AuthResult[None]:
        """Set a new password using a pending reset token.

        Failures: VALIDATION_ERROR, NOT_FOUND, INVALID_TOKEN, EXPIRED
        """
        email = normalize_email(email or "")
        reset_token = (reset_token or "").strip()
        if not email or not reset_token or not new_password:
            return AuthResult.failure(
                AuthErrorKind.VALIDATION_ERROR,
                "Email, reset token, and new password are required",
            )
        problem = _check_new_password(new_password, confirm_password)
        if problem:
            return AuthResult.failure(AuthErrorKind.VALIDATION_ERROR, problem)

        user = self.repo.get_by_email(email)
        if user is None:
            return AuthResult.failure(AuthErrorKind.NOT_FOUND, USER_NOT_FOUND_MESSAGE)
        if user.reset_token is None:
            return AuthResult.failure(AuthErrorKind.EXPIRED, "Reset token has expired")
        if not _secrets_match(user.reset_token, reset_token):
            return AuthResult.failure(AuthErrorKind.INVALID_TOKEN, "Invalid reset token")

        now = self.clock()
        if _is_expired(user.reset_token_expires_at, now):
            return AuthResult.failure(AuthErrorKind.EXPIRED, "Reset token has expired")

        try:
            self.repo.update(
                user.id,
                {
                    "password_hash": self.hasher.hash(new_password),
                    "reset_token": None,
                    "reset_token_expires_at": None,
                    "password_changed_at": now,
                },
                expected={"reset_token": user.reset_token},
            )
        except StaleWriteError:
            return AuthResult.failure(AuthErrorKind.EXPIRED, "Reset token has already been used")

        logger.info("Password reset completed", extra={"userId": user.id})
        return AuthResult.success()

    # ── OAuth ────────────────────────────────────────────────

    @_operation("link_oauth_identity")
    def link_oauth_identity(self, identity: OAuthIdentity) -> AuthResult[AuthSession]:
        """Resolve a provider-verified identity to a local user and issue a token.

        Resolution order: existing linkage, then existing email, then a new
        verified account.

        Failures: VALIDATION_ERROR, CONFLICT
        """
        email = normalize_email(identity.email or "")
        if not identity.provider_id or not email:
            return AuthResult.failure(
                AuthErrorKind.VALIDATION_ERROR, "OAuth identity requires a provider id and email",
            )

        now = self.clock()
        try:
            user = self.repo.get_by_oauth(identity.provider, identity.provider_id)
            if user is not None:
                user = self.repo.update(user.id, {"last_login_at": now})
            else:
                user = self.repo.get_by_email(email)
                if user is not None:
                    user = self._link_existing(user, identity, now)
                else:
                    user = self._create_oauth_user(identity, email, now)
        except DuplicateError as e:
            logger.warning("OAuth sign-in rejected by unique constraint", extra={
                "email": email, "provider": identity.provider.value, "field": e.field,
            })
            return _duplicate_failure(e)

        token = self.token_codec.issue(user.id)
        logger.info("OAuth sign-in", extra={"userId": user.id, "provider": identity.provider.value})
        return AuthResult.success(AuthSession(token=token, user=UserView.from_user(user)))

    def _link_existing(self, user: User, identity: OAuthIdentity, now: datetime) -> User:
        if user.oauth_provider is None:
            try:
                return self.repo.update(
                    user.id,
                    {
                        "oauth_provider": identity.provider,
                        "oauth_id": identity.provider_id,
                        "last_login_at": now,
                    },
                    expected={"oauth_provider": None},
                )
            except StaleWriteError:
                logger.info("OAuth linkage set concurrently, keeping it", extra={"userId": user.id})
        return self.repo.update(user.id, {"last_login_at": now})

    def _create_oauth_user(self, identity: OAuthIdentity, email: str, now: datetime) -> User:
        base = _oauth_username_base(identity.display_name, email)
        password_hash = self.hasher.hash(secrets.token_urlsafe(16))

        for attempt in Retrying(
            retry=retry_if_exception(_is_username_collision),
            stop=stop_after_attempt(OAUTH_USERNAME_ATTEMPTS),
            reraise=True,
        ):
            with attempt:
                username = f"{base}{secrets.randbelow(OAUTH_USERNAME_SUFFIX_RANGE)}"
                user = self.repo.create(UserDraft(
                    username=username,
                    email=email,
                    password_hash=password_hash,
                    profile=Profile(
                        display_name=identity.display_name or username,
                        avatar_url=identity.avatar_url,
                    ),
                    is_verified=True,
                    oauth_provider=identity.provider,
                    oauth_id=identity.provider_id,
                    last_login_at=now,
                ))
        logger.info("User created from OAuth identity", extra={
            "userId": user.id, "provider": identity.provider.value,
        })
        return user

    # ── notifications ────────────────────────────────────────

    def _notify(self, kind: NotificationKind, to: str, payload: dict) -> None:
        """Dispatch a notification. Failures are logged, never propagated."""
        try:
            delivered = self.notifier.notify(kind, to, payload)
        except Exception:
            logger.warning("Notification dispatch raised", extra={
                "kind": kind.value, "email": to,
            }, exc_info=True)
            return
        if not delivered:
            logger.warning("Notification not delivered", extra={"kind": kind.value, "email": to})
