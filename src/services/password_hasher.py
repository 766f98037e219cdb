"""bcrypt password hashing."""

import bcrypt

BCRYPT_ROUNDS = 12

# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_PASSWORD_BYTES = 72


class PasswordHasher:
    """Salted, adaptive one-way hashing of passwords.

    Errors from bcrypt (for example a malformed stored digest) propagate to
    the caller; they are never reported as a mismatch.
    """

    def __init__(self, rounds: int = BCRYPT_ROUNDS):
        self.rounds = rounds

    def hash(self, password: str) -> str:
        """Salted digest of ``password``.

        Raises:
            ValueError: password exceeds BCRYPT_MAX_PASSWORD_BYTES
        """
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            raise ValueError(f"Password exceeds {BCRYPT_MAX_PASSWORD_BYTES} bytes")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    def verify(self, password: str, hashed: str) -> bool:
        """Constant-time check of ``password`` against a stored digest.

        Passwords over the bcrypt input limit never match: ``hash`` refuses
        them, so no stored digest can come from such a password.
        """
        if len(password.encode("utf-8")) > BCRYPT_MAX_PASSWORD_BYTES:
            return False
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
