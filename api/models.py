"""
API request and response models for Buildkit auth REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Emails and passwords are NOT stripped or case-folded: the credential store
matches emails exactly as submitted and the password digest covers every
character.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.errors import ValidationError as AuthValidationError
from auth.models import User
from auth.service import validate_email

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Request body for POST /api/v1/auth/signup and POST /api/v1/auth/login."""

    email: str = Field(max_length=255)
    password: str = Field(min_length=1, max_length=255)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        """Apply the same email syntax rule the orchestrator enforces."""
        try:
            return validate_email(value)
        except AuthValidationError as exc:
            raise ValueError(exc.message) from exc


class VerificationRequest(BaseModel):
    """Request body for POST /api/v1/auth/email-verification."""

    code: str = Field(min_length=1, max_length=32)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. Never includes the password digest."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    email_verified: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(id=user.id, email=user.email, email_verified=user.email_verified)


class AuthResponse(BaseModel):
    """Response for signup, login and successful email verification."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    session_expires_at: datetime


class MeResponse(BaseModel):
    """Response for GET /api/v1/auth/me."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    session_expires_at: datetime
    active_sessions: int


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


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
