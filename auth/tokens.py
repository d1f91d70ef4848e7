"""
auth/tokens.py -- Session token issue and validation (JWT, HS256).

Security design decisions:
  JWT: python-jose with HS256. Tokens carry sub (user id), jti (unique token
       id), iat and exp. The signing key is handed to TokenService once, at
       construction, by the app lifespan. Nothing here reads settings or
       module globals, and the key is never mutated afterwards. Rotating it
       means restarting with a new SECRET_KEY, which invalidates every
       outstanding token.

  Validation reports WHY a token failed (TokenMalformed, TokenBadSignature,
       TokenExpired) so logs and tests can tell them apart. The API layer
       flattens all of them to one "unauthorized" response.

  Expiry is checked here rather than by jose so the window is exactly the
       half-open interval [iat, exp), widened on both sides by the configured
       leeway, and so tests can drive time through an injected clock.

  Only HS256 is accepted. A header naming any other algorithm (including
       "none") is malformed before any key is touched.

Layer rule: no imports from api/ or notify/.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError
from jose.utils import base64url_decode, base64url_encode

from auth.exceptions import TokenBadSignature, TokenExpired, TokenMalformed
from auth.models import Session

_ALGORITHM = "HS256"

# Signature and claim-shape checks only; time is handled by TokenService.
_DECODE_OPTIONS = {"verify_exp": False, "verify_iat": False, "verify_nbf": False}


class TokenService:
    """Mint and validate signed, time-bounded session tokens.

    Usage:
        tokens = TokenService(secret_key, lifetime_seconds=86400)
        token, session = tokens.issue(user.id)
        session = tokens.validate(token)   # raises a TokenError subclass on failure
    """

    def __init__(
        self,
        secret_key: str,
        lifetime_seconds: int,
        leeway_seconds: int = 0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key is required")
        if lifetime_seconds <= 0:
            raise ValueError("lifetime_seconds must be positive")
        self._secret_key = secret_key
        self.lifetime_seconds = lifetime_seconds
        self.leeway_seconds = leeway_seconds
        self._clock = clock

    def issue(self, user_id: str) -> tuple[str, Session]:
        """Return a signed token for user_id and the Session it encodes."""
        issued_at = int(self._clock())
        session = Session(
            subject=user_id,
            token_id=uuid.uuid4().hex,
            issued_at=issued_at,
            expires_at=issued_at + self.lifetime_seconds,
        )
        claims = {
            "sub": session.subject,
            "jti": session.token_id,
            "iat": session.issued_at,
            "exp": session.expires_at,
        }
        return jwt.encode(claims, self._secret_key, algorithm=_ALGORITHM), session

    def decode(self, token: str) -> Session:
        """Verify structure and signature only. Does not look at the clock.

        Raises TokenMalformed or TokenBadSignature.
        """
        if not token or token.count(".") != 2:
            raise TokenMalformed("token is not a compact JWS")
        header_segment, payload_segment, signature_segment = token.split(".")
        if not (_is_canonical(header_segment) and _is_canonical(payload_segment)):
            raise TokenMalformed("header or payload is not canonical base64url")
        try:
            header = jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise TokenMalformed(str(exc)) from exc
        if header.get("alg") != _ALGORITHM:
            raise TokenMalformed(f"unexpected algorithm {header.get('alg')!r}")
        if not _is_canonical(signature_segment):
            raise TokenBadSignature("signature is not canonical base64url")

        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[_ALGORITHM], options=_DECODE_OPTIONS)
        except JWTClaimsError as exc:
            raise TokenMalformed(str(exc)) from exc
        except JWTError as exc:
            raise TokenBadSignature(str(exc)) from exc

        return _payload_to_session(payload)

    def validate(self, token: str) -> Session:
        """Return the Session for a token that is authentic and current.

        Raises TokenMalformed, TokenBadSignature or TokenExpired. A token whose
        iat lies in the future (beyond leeway) is treated as malformed.
        """
        session = self.decode(token)
        now = self._clock()
        if now < session.issued_at - self.leeway_seconds:
            raise TokenMalformed("token issued in the future")
        if now >= session.expires_at + self.leeway_seconds:
            raise TokenExpired(f"token expired at {session.expires_at}")
        return session


def _is_canonical(segment: str) -> bool:
    """True if segment is the one base64url spelling of the bytes it decodes to.

    The last character of a segment can carry spare bits that decoding
    ignores, so several spellings map to the same bytes. Only the one the
    encoder produces is accepted.
    """
    try:
        raw = base64url_decode(segment.encode("ascii"))
    except ValueError:
        return False
    return base64url_encode(raw).decode("ascii") == segment


def _payload_to_session(payload: dict) -> Session:
    sub = payload.get("sub")
    jti = payload.get("jti")
    iat = payload.get("iat")
    exp = payload.get("exp")
    if not isinstance(sub, str) or not sub or not isinstance(jti, str) or not jti:
        raise TokenMalformed("token is missing sub or jti")
    # bool is an int subclass; reject it explicitly.
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (iat, exp)):
        raise TokenMalformed("token is missing iat or exp")
    if exp <= iat:
        raise TokenMalformed("token window is empty")
    return Session(subject=sub, token_id=jti, issued_at=iat, expires_at=exp)
