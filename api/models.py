"""
API request and response models for the student portal's JSON endpoints.

These Pydantic v2 models define the HTTP transport contract. Request models
validate incoming bodies; response models are frozen. They are separate from
the dataclasses in auth/models.py, which own the internal domain
representation. Route handlers map between the two.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ---------------------------------------------------------------------------
# Profile update
# ---------------------------------------------------------------------------


class ProfileUpdateRequest(BaseModel):
    """Request body for POST /dashboard/update (JSON or form-encoded).

    enrollmentNo, department and semester are required non-blank strings;
    semester also accepts a JSON integer. cgpa is optional: blank means unset,
    otherwise it must be a finite number >= 0. Lists, objects and booleans
    are rejected rather than stringified.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    enrollment_no: str = Field(alias="enrollmentNo", min_length=1, max_length=50)
    department: str = Field(min_length=1, max_length=100)
    semester: str = Field(min_length=1, max_length=20)
    cgpa: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)

    @field_validator("semester", mode="before")
    @classmethod
    def semester_from_int(cls, value: Any) -> Any:
        """Accept a JSON integer semester ("semester": 3) as its decimal string."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("cgpa", mode="before")
    @classmethod
    def blank_cgpa_is_unset(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        if isinstance(value, bool):
            raise ValueError("cgpa must be a number")
        return value


class ProfileUpdateResponse(BaseModel):
    """Response for POST /dashboard/update, consumed by the profile page script."""

    model_config = ConfigDict(frozen=True)

    success: bool
    message: str


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Envelope for every JSON error response."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
