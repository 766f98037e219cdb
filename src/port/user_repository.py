from typing import Any, Protocol

from domain.model.user import OAuthProvider, User, UserDraft


class UserRepository(Protocol):
    """Protocol defining the interface for user data access.

    Emails are passed already normalized. Uniqueness of email, username and
    (oauth_provider, oauth_id) is enforced here, not by callers.
    """
    def create(self, draft: UserDraft) -> User:
        """Create a new user.

        Raises:
            DuplicateError: a unique field (``field`` attribute) is already taken
        """
        ...

    def update(
        self,
        user_id: str,
        fields: dict[str, Any],
        expected: dict[str, Any] | None = None,
    ) -> User:
        """Set ``fields`` on a user and return the updated User.

        When ``expected`` is given the write only happens if every listed
        field still holds the given value.

        Raises:
            NotFoundError: no user with this id
            StaleWriteError: ``expected`` no longer matches
        """
        ...

    def get_by_email(self, email: str) -> User | None:
        """Find a user by email. Return User or None if not found."""
        ...

    def get_by_id(self, user_id: str) -> User | None:
        """Find a user by ID. Return User or None if not found."""
        ...

    def get_by_oauth(self, provider: OAuthProvider, oauth_id: str) -> User | None:
        """Find the user linked to an external identity."""
        ...
