"""
auth/service.py -- Sign-up, sign-in, sign-out and request authorization.

Per-principal lifecycle: Anonymous -> Authenticated (sign-up or sign-in
mints a token) -> Anonymous (sign-out revokes it, or it expires).

Security design decisions:
  [C1] Sign-in runs bcrypt whether or not the email exists. Unknown emails
       are checked against a dummy verifier computed at construction, so
       response time does not reveal which addresses are registered. Both
       failure paths raise the same InvalidCredentials.

  Sign-out revokes server-side. The token's jti goes into the revocation
  table and authorize() rejects it from then on. Sign-out on a token that is
  already expired, malformed or revoked succeeds without doing anything:
  logout is idempotent.

  The welcome email is handed to the notifier AFTER the user row commits.
  The notifier is fire-and-forget; nothing it does can roll the account back.

Layer rule: auth/ may import from core/ and notify/, never from api/.
"""

from __future__ import annotations

import logging

from auth.exceptions import (
    CorruptCredential,
    DuplicateEmail,
    EmailTaken,
    InvalidCredentials,
    TokenError,
    TokenRevoked,
    UserNotFound,
)
from auth.models import AuthResult, Session, User
from auth.passwords import PasswordHasher, PasswordPolicy, check_email, check_name, normalize_email
from auth.store import UserStore
from auth.tokens import TokenService
from notify.messages import welcome_message

logger = logging.getLogger("passgate.auth")
security_logger = logging.getLogger("passgate.security")


class AuthService:
    """Orchestrates the account and session flows.

    Collaborators are injected; the service holds no state of its own beyond
    the timing-equalization dummy hash.
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        notifier,
        policy: PasswordPolicy | None = None,
        app_name: str = "passgate",
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.notifier = notifier
        self.policy = policy or PasswordPolicy()
        self.app_name = app_name
        # Computed once so the first failed sign-in costs the same as the rest.
        self._dummy_hash = hasher.hash("passgate_timing_dummy")

    # ------------------------------------------------------------------
    # Sign-up
    # ------------------------------------------------------------------

    def sign_up(self, email: str, password: str, name: str) -> AuthResult:
        """Create an account and sign it in.

        Raises InvalidInput for a bad email, name or password and EmailTaken
        when the address is already registered.
        """
        email = check_email(email)
        name = check_name(name)
        self.policy.check_password(password)

        password_hash = self.hasher.hash(password)
        try:
            user = self.store.create_user(email, name, password_hash)
        except DuplicateEmail as exc:
            logger.info("Sign-up rejected: email already registered")
            raise EmailTaken() from exc

        logger.info("User %s signed up", user.id)
        self.notifier.enqueue(welcome_message(user.email, user.name, self.app_name))

        token, session = self.tokens.issue(user.id)
        return AuthResult(user=user, token=token, session=session)

    # ------------------------------------------------------------------
    # Sign-in
    # ------------------------------------------------------------------

    def sign_in(self, email: str, password: str) -> AuthResult:
        """Verify credentials and mint a new token.

        Raises InvalidCredentials for an unknown email or a wrong password
        (one error for both) and CorruptCredential if the stored
        verifier is unreadable.
        """
        user = self._lookup(email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.verify(password, self._dummy_hash)
            security_logger.info("Sign-in failed: unknown email")
            raise InvalidCredentials()

        try:
            matched = self.hasher.verify(password, user.password_hash)
        except CorruptCredential:
            security_logger.critical("Corrupt password verifier for user %s", user.id)
            raise
        if not matched:
            security_logger.info("Sign-in failed: wrong password for user %s", user.id)
            raise InvalidCredentials()

        token, session = self.tokens.issue(user.id)
        logger.info("User %s signed in", user.id)
        return AuthResult(user=user, token=token, session=session)

    def _lookup(self, email: str) -> User | None:
        try:
            return self.store.find_by_email(normalize_email(email))
        except UserNotFound:
            return None

    # ------------------------------------------------------------------
    # Sign-out
    # ------------------------------------------------------------------

    def sign_out(self, token: str | None) -> None:
        """Revoke token. Always succeeds, whatever state the token is in."""
        if not token:
            return
        try:
            session = self.tokens.validate(token)
        except TokenError as exc:
            logger.debug("Sign-out with unusable token (%s); nothing to revoke", exc.reason)
            return
        self.store.revoke_token(session.token_id, session.subject, session.expires_at)
        logger.info("User %s signed out", session.subject)

    # ------------------------------------------------------------------
    # Authorization
    # ------------------------------------------------------------------

    def authorize(self, token: str | None) -> Session:
        """Return the Session for a live, unrevoked token.

        Raises a TokenError subclass otherwise. The reason is logged here;
        callers only ever show a generic 401.
        """
        try:
            if not token:
                raise TokenError("no session token presented")
            session = self.tokens.validate(token)
            if self.store.is_revoked(session.token_id):
                raise TokenRevoked(f"token {session.token_id} was signed out")
        except TokenError as exc:
            security_logger.info("Rejected session token (%s): %s", exc.reason, exc)
            raise
        return session

    def purge_revocations(self, now: int) -> int:
        removed = self.store.purge_revoked(now)
        if removed:
            logger.info("Purged %d expired revocation(s)", removed)
        return removed
