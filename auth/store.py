"""
auth/store.py -- SQLAlchemy Core persistence layer for auth entities.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Service and route
code never touches SQL directly.

Uniqueness:
  UNIQUE(email) is enforced by the database. create_user() does NOT look the
  email up first -- it inserts and lets the constraint decide, so two
  concurrent sign-ups with the same address cannot both succeed. The losing
  insert surfaces as IntegrityError, translated to DuplicateEmail here.

Revocation:
  revoked_tokens holds the jti of every token explicitly signed out. Rows are
  only needed until the token would have expired anyway; purge_revoked()
  removes them after that.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or notify/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.exceptions import DuplicateEmail, UserNotFound
from auth.models import User
from auth.passwords import normalize_email

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(254), nullable=False, unique=True),
    Column("name", String(100), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

_revoked_tokens = Table(
    "revoked_tokens",
    _metadata,
    Column("jti", String(64), primary_key=True),
    Column("user_id", String(36), nullable=False),
    Column("expires_at", Integer, nullable=False, index=True),  # Unix seconds
    Column("revoked_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records and token revocations.

    Usage:
        store = UserStore("sqlite:///./passgate.db")
        user = store.create_user("a@x.com", "A", hasher.hash("Secret123!"))
        same = store.find_by_email("A@X.com")
        store.close()
    """

    def __init__(self, db_url: str = "sqlite:///./passgate.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, email: str, name: str, password_hash: str) -> User:
        """Insert a new user and return it with id and created_at filled in.

        Raises DuplicateEmail if the (normalized) email is already taken.
        """
        user = User(
            id=str(uuid.uuid4()),
            email=normalize_email(email),
            name=name,
            password_hash=password_hash,
            created_at=_now_iso(),
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user.id,
                        email=user.email,
                        name=user.name,
                        password_hash=user.password_hash,
                        created_at=user.created_at,
                    )
                )
        except IntegrityError as exc:
            raise DuplicateEmail(user.email) from exc
        return user

    def find_by_email(self, email: str) -> User:
        """Look up a user by email (case-insensitive). Raises UserNotFound."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        if row is None:
            raise UserNotFound(email)
        return _row_to_user(row)

    def find_by_id(self, user_id: str) -> User:
        """Look up a user by primary key. Raises UserNotFound."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        if row is None:
            raise UserNotFound(user_id)
        return _row_to_user(row)

    def list_users(self) -> list[User]:
        """Return all users, oldest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.created_at, _users.c.email)).fetchall()
        return [_row_to_user(r) for r in rows]

    # ------------------------------------------------------------------
    # Token revocation
    # ------------------------------------------------------------------

    def revoke_token(self, jti: str, user_id: str, expires_at: int) -> None:
        """Record a signed-out token. Revoking the same jti twice is a no-op."""
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _revoked_tokens.insert().values(
                        jti=jti,
                        user_id=user_id,
                        expires_at=expires_at,
                        revoked_at=_now_iso(),
                    )
                )
        except IntegrityError:
            # Already revoked -- the primary key says so.
            return

    def is_revoked(self, jti: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_revoked_tokens.c.jti).where(_revoked_tokens.c.jti == jti)).fetchone()
        return row is not None

    def purge_revoked(self, now: int) -> int:
        """Delete revocations for tokens that expired at or before now. Returns rows removed."""
        with self.engine.begin() as conn:
            result = conn.execute(_revoked_tokens.delete().where(_revoked_tokens.c.expires_at <= now))
        return result.rowcount

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        with self.engine.connect() as conn:
            conn.execute(select(1))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        name=row.name,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )
