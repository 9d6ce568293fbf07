"""
API request and response models for the backend template REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in users/dto.py, which
own the service-level representation. Route handlers map between the two.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.tokens import MAX_PASSWORD_BYTES, password_too_long
from users.dto import UserDto, UserInputDto

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]+$"
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
AUTHORITY_PATTERN = r"^[A-Za-z0-9_]+$"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class AuthenticationRequest(BaseModel):
    """Request body for POST /users/authenticate."""

    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=MAX_PASSWORD_BYTES)

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, v: str) -> str:
        if password_too_long(v):
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v


class UserCreate(BaseModel):
    """Request body for POST /users (registration).

    username and email are stripped; password is passed through exactly as
    sent. The password limit is in UTF-8 bytes, since that is what bcrypt counts.
    """

    username: str = Field(min_length=2, max_length=64, pattern=USERNAME_PATTERN)
    password: str = Field(min_length=4, max_length=MAX_PASSWORD_BYTES)
    email: str = Field(min_length=5, max_length=255, pattern=EMAIL_PATTERN)

    @field_validator("username", "email", mode="before")
    @classmethod
    def _strip(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("password")
    @classmethod
    def _password_fits_bcrypt(cls, v: str) -> str:
        if password_too_long(v):
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return v

    def to_input_dto(self) -> UserInputDto:
        return UserInputDto(username=self.username, password=self.password, email=self.email)


class AuthorityAssign(BaseModel):
    """Request body for POST /users/{username}/authorities."""

    model_config = ConfigDict(str_strip_whitespace=True)

    authority: str = Field(min_length=1, max_length=100, pattern=AUTHORITY_PATTERN)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AuthenticationResponse(BaseModel):
    """Response for a successful POST /users/authenticate. Carries only the token."""

    model_config = ConfigDict(frozen=True)

    token: str


class UserResponse(BaseModel):
    """Public view of an account. There is no password field on purpose."""

    model_config = ConfigDict(frozen=True)

    username: str
    email: str
    authorities: list[str]

    @classmethod
    def from_dto(cls, dto: UserDto) -> "UserResponse":
        return cls(
            username=dto.username,
            email=dto.email,
            authorities=sorted(dto.authorities),
        )


class MessageResponse(BaseModel):
    """Confirmation text for deletes and authority removals."""

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
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
