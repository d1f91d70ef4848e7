"""
API request and response models for passgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models only bound sizes. Format and policy checks (email shape,
password strength) belong to AuthService so they apply to every caller, not
just HTTP ones.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class SignUpRequest(BaseModel):
    """Request body for POST /api/v1/auth/sign-up."""

    email: str = Field(max_length=320)
    password: str = Field(max_length=255)
    name: str = Field(max_length=255)


class SignInRequest(BaseModel):
    """Request body for POST /api/v1/auth/sign-in."""

    email: str = Field(max_length=320)
    password: str = Field(max_length=255)


class SignOutRequest(BaseModel):
    """Request body for POST /api/v1/auth/sign-out.

    token is optional: when absent the bearer header or cookie is used.
    """

    token: Optional[str] = Field(default=None, max_length=4096)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserPublic(BaseModel):
    """Public projection of a User. The password verifier is never part of it."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    created_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserPublic":
        return cls(id=user.id, email=user.email, name=user.name, created_at=user.created_at or "")


class AuthResponse(BaseModel):
    """Response for sign-up (201) and sign-in (200)."""

    model_config = ConfigDict(frozen=True)

    user: UserPublic
    token: str
    token_type: str = "bearer"
    expires_in: int


class SignOutResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str = "Signed out."


class UserDetailResponse(BaseModel):
    """Response for GET /api/v1/users/{id}.

    requested_by is the user id the authorization gate resolved from the
    caller's token.
    """

    model_config = ConfigDict(frozen=True)

    user: UserPublic
    requested_by: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
