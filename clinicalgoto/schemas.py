from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    PlainSerializer,
    ValidationError,
    constr,
    field_validator,
)
from pydantic.alias_generators import to_camel


def _utc_isoformat(value: datetime) -> str:
    """Columns hold naive UTC; send them with an explicit Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


UtcDatetime = Annotated[datetime, PlainSerializer(_utc_isoformat, return_type=str, when_used="json")]


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ValidationResult(BaseModel):
    loc: str
    msg: str


# ----- Registration input -----


class RegistrationForm(CamelModel):
    full_name: constr(strip_whitespace=True, min_length=1, max_length=255)
    email: EmailStr
    phone: constr(strip_whitespace=True, min_length=1, max_length=64)
    condition: Optional[constr(strip_whitespace=True, max_length=500)] = None
    location: Optional[constr(strip_whitespace=True, max_length=500)] = None
    address: Optional[constr(strip_whitespace=True, max_length=500)] = None
    consent: bool = False

    @field_validator("email", mode="before")
    @classmethod
    def reject_display_name(cls, value):
        # EmailStr would accept "Name <addr>" and keep only the address.
        if isinstance(value, str) and ("<" in value or ">" in value):
            raise ValueError("Email must be a plain address")
        return value


class NewRegistrant(BaseModel):
    """Sanitized record handed to the store."""

    full_name: str
    email: str
    phone: str
    condition: str
    location: str
    consent: bool = False


# ----- Registrant output -----


class SubscriberOut(CamelModel):
    full_name: str
    email: str
    registered_at: UtcDatetime


class SearchSubscriberOut(SubscriberOut):
    condition: str
    location: str


class RegistrantOut(CamelModel):
    id: int
    full_name: str
    email: str
    phone: str
    condition: str
    location: str
    consent: bool
    registered_at: UtcDatetime
    is_active: bool
    updated_at: UtcDatetime


class RegistrantStats(CamelModel):
    total: int
    recent: int
    consented: int


# ----- Trials -----


class TrialSummary(CamelModel):
    id: Optional[str] = None
    title: str
    description: str
    location: str
    status: Optional[str] = None
    phase: Optional[str] = None
    condition: Optional[str] = None


class TrialSearchResponse(CamelModel):
    total_count: int
    studies: List[TrialSummary] = []


# ----- Responses -----


class RegisterResponse(CamelModel):
    success: bool = True
    message: str
    subscriber: SubscriberOut


class RegisterAndSearchResponse(CamelModel):
    success: bool = True
    message: str
    subscriber: SearchSubscriberOut
    trials: List[TrialSummary] = []


class ErrorResponse(BaseModel):
    success: bool = False
    error: str


class AdminLoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class DeleteUserRequest(BaseModel):
    email: Optional[str] = None


class MessageResponse(CamelModel):
    success: bool = True
    message: str


class AdminUsersResponse(CamelModel):
    success: bool = True
    users: List[RegistrantOut] = []
    total: int


class DeleteUserResponse(CamelModel):
    success: bool = True
    message: str
    remaining_users: int


class AdminStatsResponse(CamelModel):
    success: bool = True
    stats: RegistrantStats


def format_errors(exc: ValidationError) -> List[ValidationResult]:
    return [
        ValidationResult(loc=".".join(str(p) for p in error["loc"]), msg=error["msg"])
        for error in exc.errors()
    ]
