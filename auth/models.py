"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and services
do the work; these only own the shape.

Layer rule: no imports from api/ or notify/.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class User:
    """An account record owned by UserStore.

    email is stored lower-cased and is unique across all users. id and
    created_at are assigned by the store on insert and never change.

    password_hash is the bcrypt verifier. It is excluded from repr() so it
    cannot leak through log lines, and the API layer never serializes it.
    """

    email: str
    name: str
    password_hash: str = field(repr=False)
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Session:
    """Decoded claims of a validated session token.

    Sessions are not stored; the signed token is the session. token_id (the
    JWT "jti") is what sign-out records in the revocation table.
    issued_at / expires_at are Unix timestamps in whole seconds.
    """

    subject: str
    token_id: str
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class AuthResult:
    """What sign-up and sign-in hand back: the account and a fresh token."""

    user: User
    token: str
    session: Session
