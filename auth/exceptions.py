"""
auth/exceptions.py -- Typed exceptions for auth failures.

Every client-facing error carries a stable machine-readable ``code`` and the
HTTP ``status_code`` the API layer renders it with. The API layer maps on
these attributes, not on exception names, so adding a subclass never needs a
route change.

Token-layer failures (expired, malformed, bad signature, revoked) keep their
distinct classes for logging and tests, but all share code "unauthorized" so
the boundary never tells a client which check failed.
"""


class AuthError(Exception):
    """Base class for authentication/authorization errors."""

    code = "auth_error"
    status_code = 400
    public_message = "Authentication error."


class InvalidInput(AuthError):
    """Client-supplied data failed validation. Recoverable by the user.

    The message describes the violated rule and is safe to show to clients.
    """

    code = "invalid_input"
    status_code = 400

    def __init__(self, message: str):
        self.public_message = message
        super().__init__(message)


class EmailTaken(AuthError):
    """Sign-up with an email that already belongs to an account."""

    code = "email_taken"
    status_code = 409
    public_message = "An account with that email already exists."


class InvalidCredentials(AuthError):
    """Sign-in failed.

    Raised for both "no such email" and "wrong password". There is exactly
    one variant so the two paths cannot drift apart in code or response shape.
    """

    code = "invalid_credentials"
    status_code = 401
    public_message = "Invalid email or password."


class CorruptCredential(AuthError):
    """A stored password verifier could not be parsed.

    Data-integrity fault, not a client error: rendered as a generic 500 and
    logged at CRITICAL so operators notice.
    """

    code = "internal_error"
    status_code = 500
    public_message = "An unexpected error occurred."


class TokenError(AuthError):
    """Session token rejected. Subclasses record why, for logs only."""

    code = "unauthorized"
    status_code = 401
    public_message = "Authentication required."
    reason = "invalid"


class TokenExpired(TokenError):
    reason = "expired"


class TokenMalformed(TokenError):
    reason = "malformed"


class TokenBadSignature(TokenError):
    reason = "bad_signature"


class TokenRevoked(TokenError):
    """Token was valid but its holder signed out."""

    reason = "revoked"


# ---------------------------------------------------------------------------
# Store-level lookups. Internal only -- the service translates these before
# anything reaches the API layer.
# ---------------------------------------------------------------------------


class DuplicateEmail(Exception):
    """UNIQUE(email) rejected an insert."""


class UserNotFound(Exception):
    """No user matches the lookup key."""
