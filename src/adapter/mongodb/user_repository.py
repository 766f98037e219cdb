"""MongoDB implementation of UserRepository."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from logging import getLogger
from typing import Any

from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

from adapter.mongodb import USERS_COLLECTION_NAME
from domain.model.errors import DuplicateError, NotFoundError, StaleWriteError
from domain.model.user import OAuthProvider, Profile, User, UserDraft

logger = getLogger(__name__)

# unique index name -> domain field reported in DuplicateError
_UNIQUE_INDEXES = {
    'idx_users_email': 'email',
    'idx_users_username': 'username',
    'idx_users_oauth': 'oauth_id',
}


def _aware(value: datetime | None) -> datetime | None:
    """Documents written by older clients may hold naive UTC datetimes."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_document_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Profile):
        return {'display_name': value.display_name, 'avatar_url': value.avatar_url}
    return value


def _duplicate_field(error: DuplicateKeyError) -> str:
    details = error.details or {}
    key_pattern = details.get('keyPattern') or {}
    if 'oauth_id' in key_pattern or 'oauth_provider' in key_pattern:
        return 'oauth_id'
    for field in ('email', 'username'):
        if field in key_pattern:
            return field
    message = str(error)
    for index_name, field in _UNIQUE_INDEXES.items():
        if index_name in message:
            return field
    return 'email'


class MongoUserRepository:
    def __init__(self, db: Database):
        self.collection = db[USERS_COLLECTION_NAME]

    def ensure_indexes(self) -> bool:
        """Create indexes for users collection."""
        from adapter.mongodb.indexes import create_index_safe

        try:
            create_index_safe(self.collection, [('email', 1)], 'idx_users_email', unique=True)
            create_index_safe(self.collection, [('username', 1)], 'idx_users_username', unique=True)
            create_index_safe(
                self.collection,
                [('oauth_provider', 1), ('oauth_id', 1)],
                'idx_users_oauth',
                unique=True,
                partialFilterExpression={'oauth_id': {'$type': 'string'}},
            )
            create_index_safe(self.collection, [('created_at', -1)], 'idx_users_created_at')
            return True
        except PyMongoError as e:
            logger.error("Failed to create users indexes", extra={"error": str(e)})
            return False

    def _to_domain(self, doc: dict) -> User:
        """Convert MongoDB document to User domain model."""
        profile_doc = doc.get('profile')
        provider = doc.get('oauth_provider')
        return User(
            id=doc['_id'],
            username=doc['username'],
            email=doc['email'],
            password_hash=doc['password_hash'],
            created_at=_aware(doc['created_at']),
            updated_at=_aware(doc['updated_at']),
            is_verified=doc.get('is_verified', False),
            verification_code=doc.get('verification_code'),
            verification_code_expires_at=_aware(doc.get('verification_code_expires_at')),
            reset_token=doc.get('reset_token'),
            reset_token_expires_at=_aware(doc.get('reset_token_expires_at')),
            oauth_provider=OAuthProvider(provider) if provider else None,
            oauth_id=doc.get('oauth_id'),
            last_login_at=_aware(doc.get('last_login_at')),
            password_changed_at=_aware(doc.get('password_changed_at')),
            profile=Profile(
                display_name=profile_doc.get('display_name', ''),
                avatar_url=profile_doc.get('avatar_url'),
            ) if profile_doc else None,
        )

    # ── write operations ─────────────────────────────────────

    def create(self, draft: UserDraft) -> User:
        """Insert a new user document and return the User object."""
        user_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc)
        user_doc = {
            '_id': user_id,
            'username': draft.username,
            'email': draft.email,
            'password_hash': draft.password_hash,
            'is_verified': draft.is_verified,
            'verification_code': draft.verification_code,
            'verification_code_expires_at': draft.verification_code_expires_at,
            'reset_token': None,
            'reset_token_expires_at': None,
            'oauth_provider': _to_document_value(draft.oauth_provider),
            'oauth_id': draft.oauth_id,
            'last_login_at': draft.last_login_at,
            'password_changed_at': None,
            'profile': _to_document_value(draft.profile),
            'created_at': now,
            'updated_at': now,
        }
        try:
            self.collection.insert_one(user_doc)
        except DuplicateKeyError as e:
            field = _duplicate_field(e)
            logger.warning("User creation failed: duplicate key", extra={"email": draft.email, "field": field})
            raise DuplicateError(field) from e
        except PyMongoError as e:
            logger.error("Failed to create user", extra={"email": draft.email, "error": str(e)})
            raise

        logger.info("User created", extra={"userId": user_id, "email": draft.email})
        return self._to_domain(user_doc)

    def update(
        self,
        user_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> User:
        """Apply ``fields`` atomically, only if ``expected`` still matches."""
        query = {'_id': user_id}
        for name, value in (expected or {}).items():
            query[name] = _to_document_value(value)

        changes = {name: _to_document_value(value) for name, value in fields.items()}
        changes['updated_at'] = datetime.now(timezone.utc)

        try:
            doc = self.collection.find_one_and_update(
                query,
                {'$set': changes},
                return_document=ReturnDocument.AFTER,
            )
            if doc is None:
                if self.collection.count_documents({'_id': user_id}, limit=1) == 0:
                    raise NotFoundError(f"User {user_id} not found")
                logger.info("Conditional update skipped", extra={
                    "userId": user_id, "expected": sorted(expected or {}),
                })
                raise StaleWriteError(f"User {user_id} changed concurrently")
        except DuplicateKeyError as e:
            field = _duplicate_field(e)
            logger.warning("User update failed: duplicate key", extra={"userId": user_id, "field": field})
            raise DuplicateError(field) from e
        except PyMongoError as e:
            logger.error("Failed to update user", extra={"userId": user_id, "error": str(e)})
            raise

        return self._to_domain(doc)

    # ── read operations ──────────────────────────────────────

    def _find_one(self, query: dict, context: dict) -> User | None:
        try:
            doc = self.collection.find_one(query)
        except PyMongoError as e:
            logger.error("Failed to get user", extra={**context, "error": str(e)})
            raise
        return self._to_domain(doc) if doc else None

    def get_by_email(self, email: str) -> User | None:
        """Find a user by email. Return User or None if not found."""
        return self._find_one({'email': email}, {"email": email})

    def get_by_id(self, user_id: str) -> User | None:
        """Find a user by ID. Return User or None if not found."""
        return self._find_one({'_id': user_id}, {"userId": user_id})

    def get_by_oauth(self, provider: OAuthProvider, oauth_id: str) -> User | None:
        return self._find_one(
            {'oauth_provider': provider.value, 'oauth_id': oauth_id},
            {"provider": provider.value},
        )
