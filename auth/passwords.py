"""
auth/passwords.py -- Password hashing and the password/email input policy.

Security design decisions:
  Hashing: bcrypt, used directly (no passlib wrapper). Bcrypt is the right
       choice for low-entropy secrets because its cost factor makes offline
       brute force expensive. Every hash embeds its own random salt, so the
       same password never produces the same verifier twice.

  Failure modes are kept apart: verify() returns False for a wrong password
       and raises CorruptCredential when the stored verifier itself cannot be
       parsed. A corrupt row is an operator problem, not a login failure.

  bcrypt only reads the first 72 bytes of a secret and bcrypt>=5 refuses
       longer input outright. PasswordPolicy caps passwords at 72 UTF-8 bytes
       at sign-up, and verify() treats anything longer as a non-match.

Layer rule: no imports from api/ or notify/.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

import bcrypt

from auth.exceptions import CorruptCredential, InvalidInput

BCRYPT_MAX_BYTES = 72

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s.]+$")
_EMAIL_MAX_LENGTH = 254
_NAME_MAX_LENGTH = 100


class PasswordHasher:
    """bcrypt hash/verify with a configurable cost factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        verifier = hasher.hash("Secret123!")
        hasher.verify("Secret123!", verifier)  # True
    """

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds

    def hash(self, secret: str) -> str:
        """Return a salted bcrypt verifier for secret."""
        return bcrypt.hashpw(secret.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, secret: str, verifier: str) -> bool:
        """Return True if secret matches verifier.

        Raises CorruptCredential if verifier is not a usable bcrypt hash.
        """
        if not verifier or not verifier.startswith("$2"):
            raise CorruptCredential("stored verifier is not a bcrypt hash")
        encoded = secret.encode("utf-8")
        if len(encoded) > BCRYPT_MAX_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, verifier.encode("utf-8"))
        except ValueError as exc:
            raise CorruptCredential(f"stored verifier rejected by bcrypt: {exc}") from exc


@dataclass(frozen=True)
class PasswordPolicy:
    """Sign-up input rules. Thresholds come from Settings.

    check_* methods raise InvalidInput with a message the client can act on.
    """

    min_length: int = 8
    require_upper: bool = True
    require_lower: bool = True
    require_digit: bool = True
    require_symbol: bool = False

    @classmethod
    def from_settings(cls, settings) -> PasswordPolicy:
        return cls(
            min_length=settings.password_min_length,
            require_upper=settings.password_require_upper,
            require_lower=settings.password_require_lower,
            require_digit=settings.password_require_digit,
            require_symbol=settings.password_require_symbol,
        )

    def violations(self, password: str) -> list[str]:
        """Return a human-readable list of the rules password breaks."""
        problems: list[str] = []
        if len(password) < self.min_length:
            problems.append(f"at least {self.min_length} characters")
        if len(password.encode("utf-8")) > BCRYPT_MAX_BYTES:
            problems.append(f"at most {BCRYPT_MAX_BYTES} bytes")
        if self.require_upper and not any(c.isupper() for c in password):
            problems.append("an uppercase letter")
        if self.require_lower and not any(c.islower() for c in password):
            problems.append("a lowercase letter")
        if self.require_digit and not any(c.isdigit() for c in password):
            problems.append("a digit")
        if self.require_symbol and all(c.isalnum() or c.isspace() for c in password):
            problems.append("a symbol")
        return problems

    def check_password(self, password: str) -> None:
        problems = self.violations(password)
        if problems:
            raise InvalidInput("Password must contain " + ", ".join(problems) + ".")


def normalize_email(email: str) -> str:
    """Trim and lower-case an email address. Login identity is case-insensitive."""
    return email.strip().lower()


def check_email(email: str) -> str:
    """Return the normalized email or raise InvalidInput."""
    normalized = normalize_email(email)
    if len(normalized) > _EMAIL_MAX_LENGTH or not _EMAIL_RE.match(normalized):
        raise InvalidInput("Email address is not valid.")
    return normalized


def check_name(name: str) -> str:
    """Return the trimmed display name or raise InvalidInput."""
    trimmed = name.strip()
    if not trimmed:
        raise InvalidInput("Name must not be empty.")
    if len(trimmed) > _NAME_MAX_LENGTH:
        raise InvalidInput(f"Name must be at most {_NAME_MAX_LENGTH} characters.")
    return trimmed
