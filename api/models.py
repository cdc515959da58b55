"""
API request and response models for CredVault REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
org/models.py, which own the internal domain representation. Route handlers
map between the two.

JSON field names are camelCase (unitId, requireReLogin). Python attributes
stay snake_case; the alias generator does the translation and
populate_by_name lets route code construct models with either spelling.
"""

from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from org.models import Credential, Division, OrganizationalUnit

# bcrypt accepts at most 72 bytes of input.
_MAX_PASSWORD_BYTES = 72


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# Names, labels and usernames are trimmed; passwords are taken byte-for-byte.
_Text = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    normal = "normal"
    management = "management"
    admin = "admin"


# ---------------------------------------------------------------------------
# Auth -- request models
# ---------------------------------------------------------------------------


class RegisterRequest(_ApiModel):
    """Request body for POST /api/v1/register."""

    name: _Text
    email: Annotated[str, StringConstraints(strip_whitespace=True, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")]
    password: str = Field(min_length=1)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        if len(value.encode("utf-8")) > _MAX_PASSWORD_BYTES:
            raise ValueError(f"password must be at most {_MAX_PASSWORD_BYTES} bytes")
        return value


class LoginRequest(_ApiModel):
    """Request body for POST /api/v1/login."""

    email: _Text
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Auth -- response models
# ---------------------------------------------------------------------------


class PublicUser(_ApiModel):
    """The only user projection that ever leaves the server. No password hash."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    email: str
    role: str
    unit_id: Optional[int] = None
    division_id: Optional[int] = None

    @classmethod
    def from_user(cls, user: User) -> "PublicUser":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            unit_id=user.unit_id,
            division_id=user.division_id,
        )


class AuthResponse(_ApiModel):
    """Response for POST /register and POST /login."""

    message: str
    token: str
    user: PublicUser


class MeResponse(_ApiModel):
    user: PublicUser


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------


class DivisionSummary(_ApiModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str

    @classmethod
    def from_division(cls, division: Division) -> "DivisionSummary":
        return cls(id=division.id, name=division.name)


class UnitSummary(_ApiModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    divisions: list[DivisionSummary] = Field(default_factory=list)

    @classmethod
    def from_unit(cls, unit: OrganizationalUnit) -> "UnitSummary":
        return cls(
            id=unit.id,
            name=unit.name,
            divisions=[DivisionSummary.from_division(d) for d in unit.divisions],
        )


class StructureResponse(_ApiModel):
    """Response for GET /api/v1/structure. Never carries credentials."""

    units: list[UnitSummary]


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class CredentialCreate(_ApiModel):
    """Request body for POST /api/v1/divisions/{division_id}/credentials."""

    system: _Text
    username: _Text
    password: str = Field(min_length=1)


class CredentialPatch(_ApiModel):
    """Request body for PUT .../credentials/{credential_id}.

    Every field is optional. Only fields present and non-null are written.
    """

    system: Optional[_Text] = None
    username: Optional[_Text] = None
    password: Optional[str] = Field(default=None, min_length=1)


class CredentialOut(_ApiModel):
    model_config = ConfigDict(frozen=True)

    id: int
    system: str
    username: str
    password: str

    @classmethod
    def from_credential(cls, cred: Credential) -> "CredentialOut":
        return cls(id=cred.id, system=cred.system, username=cred.username, password=cred.password)


class DivisionCredentialsResponse(_ApiModel):
    division: DivisionSummary
    credentials: list[CredentialOut]


class CredentialListResponse(_ApiModel):
    message: str
    credentials: list[CredentialOut]


class CredentialResponse(_ApiModel):
    message: str
    credential: CredentialOut


# ---------------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------------


class UserListResponse(_ApiModel):
    items: list[PublicUser]


class AssignRequest(_ApiModel):
    """Request body for POST /api/v1/users/{user_id}/assign."""

    unit_id: int
    division_id: int


class RoleChangeRequest(_ApiModel):
    """Request body for PUT /api/v1/users/{user_id}/role."""

    role: RoleEnum


class UserResponse(_ApiModel):
    message: str
    user: PublicUser


class RoleChangeResponse(_ApiModel):
    """requireReLogin is true when the caller changed their own role.

    Their current token still carries the old role claim; authorization is
    already using the new role, but the client should log in again.
    """

    message: str
    user: PublicUser
    require_re_login: bool


# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


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
    components: dict[str, str]
