"""One-time numeric codes for email verification and password reset."""

import secrets

DEFAULT_CODE_LENGTH = 6


def _numeric_code(length: int) -> str:
    if length < 1:
        raise ValueError("Code length must be at least 1")
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def generate_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Return a zero-padded verification code, uniform over all ``length``-digit strings."""
    return _numeric_code(length)


def generate_reset_token(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Return a zero-padded password reset token."""
    return _numeric_code(length)
