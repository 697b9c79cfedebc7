"""
Pydantic schemas for input validation across the application.

These schemas validate assessment context, rating rows and findings before
anything reaches the persistence gateway.
"""

from __future__ import annotations

import re
from datetime import date
from html import unescape
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..infrastructure.config import get_settings
from .models import RatingLevel
from .taxonomy import PILLAR_TITLES

# Null bytes and control characters, keeping newlines and tabs
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")

# Free text stored verbatim apart from control characters and outer whitespace
FREE_TEXT_FIELDS = frozenset({"findings"})


class BaseValidationSchema(BaseModel):
    """Base schema with common validation utilities."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        use_enum_values=True,
    )

    @field_validator("*", mode="before")
    def sanitize_strings(cls, v, info):
        """Sanitize string inputs to prevent XSS and injection attacks."""
        if not isinstance(v, str):
            return v
        if info.field_name in FREE_TEXT_FIELDS:
            return CONTROL_CHARS.sub("", v).strip()
        cleaned = unescape(v.strip())
        # Strip script tags entirely
        cleaned = re.sub(
            r"<\s*script[^>]*>.*?<\s*/\s*script\s*>",
            "",
            cleaned,
            flags=re.IGNORECASE | re.DOTALL,
        )
        cleaned = re.sub(r"<[^>]+>", "", cleaned)
        return CONTROL_CHARS.sub("", cleaned)


def _check_findings_length(value: str | None) -> str | None:
    if value is None:
        return None
    limit = get_settings().app.max_findings_length
    if len(value) > limit:
        raise ValueError(f"Findings cannot exceed {limit} characters")
    return value


class AssessmentContextInput(BaseValidationSchema):
    """Project name and assessment date that scope every read and write."""

    project_name: str | None = Field(None, max_length=255, validate_default=True)
    assessment_date: str | None = Field(None, validate_default=True)

    @field_validator("project_name")
    def validate_project_name(cls, v):
        if not v or not v.strip():
            raise ValueError("Project name is required")
        limit = get_settings().app.project_name_max_length
        if len(v) > limit:
            raise ValueError(f"Project name cannot exceed {limit} characters")
        return v.strip()

    @field_validator("assessment_date")
    def validate_assessment_date(cls, v):
        """Accept ISO dates only and store them in canonical YYYY-MM-DD form."""
        if not v:
            raise ValueError("Assessment date is required")
        try:
            return date.fromisoformat(v).isoformat()
        except ValueError:
            raise ValueError("Assessment date must be an ISO date (YYYY-MM-DD)") from None


class RatingRowInput(BaseValidationSchema):
    """One directly rated practice or aspect row."""

    pillar_title: str = Field(..., min_length=1, max_length=255)
    practice_name: str = Field(..., min_length=1, max_length=255)
    rating: str | None = None
    findings: str | None = None

    @field_validator("pillar_title")
    def validate_pillar_title(cls, v):
        if v not in PILLAR_TITLES:
            raise ValueError(f"Pillar must be one of {', '.join(PILLAR_TITLES)}")
        return v

    @field_validator("rating", mode="after")
    def validate_rating(cls, v):
        if v is None or v == "":
            return None
        level = RatingLevel.parse(v)
        if level is None:
            raise ValueError(
                f"Rating must be one of {', '.join(level.value for level in RatingLevel)}"
            )
        return level.value

    @field_validator("findings", mode="after")
    def validate_findings(cls, v):
        return _check_findings_length(v)


class FindingsInput(BaseValidationSchema):
    findings: str | None = None

    @field_validator("findings", mode="after")
    def validate_findings(cls, v):
        return _check_findings_length(v)


class PracticeRatingsBatchInput(AssessmentContextInput):
    """Dashboard "save all" payload."""

    ratings: list[RatingRowInput] = Field(..., min_length=1, max_length=500)

    @field_validator("ratings")
    def validate_unique_rows(cls, v):
        seen: set[tuple[str, str]] = set()
        for row in v:
            key = (row.pillar_title, row.practice_name)
            if key in seen:
                raise ValueError(f"Duplicate rating for {row.pillar_title} / {row.practice_name}")
            seen.add(key)
        return v


class ValidationErrorDetail(BaseModel):
    """Schema for validation error details."""

    field: str
    message: str
    value: Any = None


class ValidationResponse(BaseModel):
    """Schema for validation responses."""

    success: bool
    errors: list[ValidationErrorDetail] = []
    data: dict[str, Any] | None = None


def validate_input(schema_class: type[BaseModel], data: dict[str, Any]) -> ValidationResponse:
    """
    Centralized validation function that returns structured validation results.

    Args:
        schema_class: Pydantic model class to use for validation
        data: Input data to validate

    Returns:
        ValidationResponse with success status and any errors

    Example:
        >>> result = validate_input(
        ...     AssessmentContextInput, {"project_name": "Acme", "assessment_date": "2024-01-01"}
        ... )
        >>> if not result.success:
        ...     for error in result.errors:
        ...         print(f"Error in {error.field}: {error.message}")
    """
    try:
        validated = schema_class(**data)
        return ValidationResponse(success=True, data=validated.model_dump())
    except Exception as e:
        errors = []
        if hasattr(e, "errors"):  # Pydantic validation errors
            for error in e.errors():
                message = error["msg"]
                if message.startswith("Value error, "):
                    message = message[len("Value error, ") :]
                errors.append(
                    ValidationErrorDetail(
                        field=".".join(str(x) for x in error["loc"]),
                        message=message,
                        value=error.get("input"),
                    )
                )
        else:
            errors.append(ValidationErrorDetail(field="general", message=str(e)))

        return ValidationResponse(success=False, errors=errors)
