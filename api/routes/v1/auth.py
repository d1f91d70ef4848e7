"""
api/routes/v1/auth.py -- Account and session endpoints.

Routes:
  POST /api/v1/auth/sign-up   -- create account; 201 {user, token}; sets cookie
  POST /api/v1/auth/sign-in   -- password login; 200 {user, token}; sets cookie
  POST /api/v1/auth/sign-out  -- revoke token; always 200; clears cookie
  GET  /api/v1/auth/me        -- caller's public profile (requires session)

Errors are raised as AuthError subclasses and rendered by the handlers in
api/main.py, so every route returns the same envelope for the same failure.

Security:
  [H2] sign-in and sign-up are rate-limited per client IP.
  [C1] AuthService.sign_in() provides timing equalization -- never inline
       find_by_email() + verify().
  [M5] Cache-Control: no-store on every response that carries a token.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, signin_limit, signup_limit
from api.models import AuthResponse, SignInRequest, SignOutRequest, SignOutResponse, SignUpRequest, UserPublic
from auth.dependencies import COOKIE_NAME, extract_token, get_auth_service, get_current_user
from auth.models import AuthResult, User

# Auth policy:
# - POST /api/v1/auth/sign-up:   public -- creates the account
# - POST /api/v1/auth/sign-in:   public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/sign-out:  public -- must succeed even for dead tokens
# - GET  /api/v1/auth/me:        requires session (get_current_user)
router = APIRouter()


def _auth_response(request: Request, result: AuthResult, status_code: int) -> JSONResponse:
    """Serialize an AuthResult and set the httpOnly session cookie.

    Cookie max_age matches the token lifetime so both expire together.
    samesite="lax" keeps the cookie off cross-site POSTs.
    """
    expires_in = result.session.expires_at - result.session.issued_at
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            user=UserPublic.from_user(result.user),
            token=result.token,
            expires_in=expires_in,
        ).model_dump(),
    )
    resp.set_cookie(
        COOKIE_NAME,
        value=result.token,
        httponly=True,
        samesite="lax",
        secure=request.app.state.settings.secure_cookies,
        max_age=expires_in,
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/sign-up", response_model=AuthResponse, status_code=201)
@limiter.limit(signup_limit)  # directly on the function: the router must register the wrapper
def sign_up(request: Request, body: SignUpRequest) -> JSONResponse:
    """Register a new account and return it with a fresh session token.

    400 invalid_input for a bad email, name or weak password; 409 email_taken
    when the address is already registered. The welcome email is queued in the
    background and cannot fail this request.
    """
    result = get_auth_service(request).sign_up(body.email, body.password, body.name)
    return _auth_response(request, result, status_code=201)


@router.post("/auth/sign-in", response_model=AuthResponse)
@limiter.limit(signin_limit)  # [H2] brute-force mitigation
def sign_in(request: Request, body: SignInRequest) -> JSONResponse:
    """Authenticate with email and password.

    Unknown email and wrong password both return 401 invalid_credentials with
    an identical body.
    """
    result = get_auth_service(request).sign_in(body.email, body.password)
    return _auth_response(request, result, status_code=200)


@router.post("/auth/sign-out", response_model=SignOutResponse)
def sign_out(request: Request, body: SignOutRequest | None = None) -> JSONResponse:
    """Revoke the session token and clear the cookie.

    Every token presented is revoked: the one in the body, the bearer header
    and the cookie. Always 200: expired, invalid or already revoked tokens
    are skipped.
    """
    candidates = (
        body.token if body is not None else None,
        extract_token(request),
        request.cookies.get(COOKIE_NAME),
    )
    auth_service = get_auth_service(request)
    for token in dict.fromkeys(t for t in candidates if t):
        auth_service.sign_out(token)
    resp = JSONResponse(content=SignOutResponse().model_dump())
    resp.delete_cookie(COOKIE_NAME)
    return resp


@router.get("/auth/me", response_model=UserPublic)
def me(current_user: User = Depends(get_current_user)) -> UserPublic:
    """Return the public profile of the authenticated caller."""
    return UserPublic.from_user(current_user)
