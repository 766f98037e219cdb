"""In-memory implementation of UserRepository for testing."""

import copy
import dataclasses
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from domain.model.errors import DuplicateError, NotFoundError, StaleWriteError
from domain.model.user import OAuthProvider, User, UserDraft


class FakeUserRepository:
    def __init__(self):
        self.store: dict[str, User] = {}
        self._lock = threading.Lock()

    # ── write operations ─────────────────────────────────────

    def create(self, draft: UserDraft) -> User:
        with self._lock:
            now = datetime.now(timezone.utc)
            user = User(
                id=uuid.uuid4().hex,
                created_at=now,
                updated_at=now,
                **{f.name: getattr(draft, f.name) for f in dataclasses.fields(draft)},
            )
            self._check_unique(user)
            self.store[user.id] = copy.deepcopy(user)
            return user

    def update(
        self,
        user_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> User:
        with self._lock:
            current = self.store.get(user_id)
            if current is None:
                raise NotFoundError(f"User {user_id} not found")

            for name, value in (expected or {}).items():
                if getattr(current, name) != value:
                    raise StaleWriteError(f"User {user_id} changed: {name}")

            updated = dataclasses.replace(
                current, **fields, updated_at=datetime.now(timezone.utc),
            )
            self._check_unique(updated)
            self.store[user_id] = updated
            return copy.deepcopy(updated)

    def _check_unique(self, candidate: User) -> None:
        for other in self.store.values():
            if other.id == candidate.id:
                continue
            if other.email == candidate.email:
                raise DuplicateError('email')
            if other.username == candidate.username:
                raise DuplicateError('username')
            if (
                candidate.oauth_id is not None
                and other.oauth_provider == candidate.oauth_provider
                and other.oauth_id == candidate.oauth_id
            ):
                raise DuplicateError('oauth_id')

    # ── read operations ──────────────────────────────────────

    def _find(self, matches) -> User | None:
        with self._lock:
            for user in self.store.values():
                if matches(user):
                    return copy.deepcopy(user)
        return None

    def get_by_email(self, email: str) -> User | None:
        return self._find(lambda user: user.email == email)

    def get_by_id(self, user_id: str) -> User | None:
        with self._lock:
            user = self.store.get(user_id)
            return copy.deepcopy(user) if user else None

    def get_by_oauth(self, provider: OAuthProvider, oauth_id: str) -> User | None:
        return self._find(
            lambda user: user.oauth_provider == provider and user.oauth_id == oauth_id,
        )
