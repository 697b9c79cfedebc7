"""
Custom exception classes for the AI robustness rating service.

Provides structured error handling with user-friendly messages and proper
error categorization for different failure scenarios.
"""

from __future__ import annotations

from typing import Any


class RobustnessRatingError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.user_message = user_message or self._get_default_user_message()

    def _get_default_user_message(self) -> str:
        """Provide a user-friendly version of the error message."""
        return "An unexpected error occurred. Please try again."

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"


class ValidationError(RobustnessRatingError):
    """Raised when input validation fails."""

    def __init__(
        self, field: str, message: str, value: Any = None, details: dict[str, Any] | None = None
    ):
        self.field = field
        self.value = value
        self.reason = message
        super().__init__(
            message=f"Validation failed for field '{field}': {message}",
            details=details or {"field": field, "value": value},
            user_message=f"Invalid {field.replace('_', ' ')}: {message}",
        )

    def _get_default_user_message(self) -> str:
        return f"Please check your input for {self.field.replace('_', ' ')} and try again."


class MultipleValidationError(RobustnessRatingError):
    """Raised when multiple validation errors occur."""

    def __init__(self, errors: list[ValidationError]):
        self.validation_errors = errors
        messages = [f"{e.field}: {e.reason}" for e in errors]
        super().__init__(
            message=f"Multiple validation errors: {'; '.join(messages)}",
            details={
                "errors": [
                    {"field": e.field, "message": e.reason, "value": e.value} for e in errors
                ]
            },
            user_message="; ".join(e.user_message for e in errors),
        )


class DatabaseError(RobustnessRatingError):
    """Raised when database operations fail."""

    def __init__(self, message: str, operation: str, details: dict[str, Any] | None = None):
        self.operation = operation
        super().__init__(
            message=f"Database error during {operation}: {message}",
            details=details or {"operation": operation},
            user_message=self._get_default_user_message(),
        )

    def _get_default_user_message(self) -> str:
        return "Unable to save your changes. Please try again."


class ConnectionError(DatabaseError):
    """Raised when the database cannot be reached."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message=message, operation="connection", details=details)

    def _get_default_user_message(self) -> str:
        return "Unable to connect to the database. Please check your connection and try again."


class IntegrityError(DatabaseError):
    """Raised when database integrity constraints are violated."""

    def __init__(
        self,
        message: str,
        constraint: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.constraint = constraint
        super().__init__(
            message=message,
            operation="integrity_check",
            details=details or {"constraint": constraint},
        )

    def _get_default_user_message(self) -> str:
        constraint = getattr(self, "constraint", None)
        if constraint == "not_null":
            return "A required value is missing. Please check your input and try again."
        return "Data integrity error. Please check your input and try again."


class TaxonomyError(RobustnessRatingError):
    """Raised when a request names an item outside the assessment taxonomy."""

    def __init__(self, message: str, item: str | None = None, details: dict[str, Any] | None = None):
        self.item = item
        super().__init__(message=message, details=details or {"item": item})


class UnknownPillarError(TaxonomyError):
    def __init__(self, pillar_title: str):
        super().__init__(message=f"Unknown pillar: {pillar_title}", item=pillar_title)

    def _get_default_user_message(self) -> str:
        return f"'{self.item}' is not one of the assessment pillars."


class UnknownPracticeError(TaxonomyError):
    def __init__(self, practice: str, pillar_title: str | None = None):
        self.pillar_title = pillar_title
        where = f" in pillar {pillar_title}" if pillar_title else ""
        super().__init__(
            message=f"Unknown practice: {practice}{where}",
            item=practice,
            details={"practice": practice, "pillar_title": pillar_title},
        )

    def _get_default_user_message(self) -> str:
        return f"'{self.item}' is not a known key practice."


class UnknownAspectError(TaxonomyError):
    def __init__(self, aspect_name: str, practice_name: str):
        self.practice_name = practice_name
        super().__init__(
            message=f"Unknown aspect {aspect_name!r} for practice {practice_name!r}",
            item=aspect_name,
            details={"aspect": aspect_name, "practice": practice_name},
        )

    def _get_default_user_message(self) -> str:
        return f"'{self.item}' is not an aspect of {self.practice_name}."


class SaveInProgressError(RobustnessRatingError):
    """Raised when a save is already running for the same practice scope."""

    def __init__(self, scope: tuple[str, ...]):
        self.scope = scope
        super().__init__(
            message=f"Save already in progress for {' / '.join(scope)}",
            details={"scope": list(scope)},
        )

    def _get_default_user_message(self) -> str:
        return "A save for this practice is already in progress. Please wait and try again."


class ConfigurationError(RobustnessRatingError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.config_key = config_key
        super().__init__(
            message=message,
            details=details or {"config_key": config_key},
            user_message="Configuration error. Please check your settings.",
        )


def handle_database_error(e: Exception, operation: str = "database operation") -> DatabaseError:
    """
    Convert generic database exceptions to appropriate custom exceptions.

    Args:
        e: The original exception
        operation: Description of the operation that failed

    Returns:
        Appropriate DatabaseError subclass

    Example:
        >>> try:
        ...     session.commit()
        >>> except Exception as e:
        ...     raise handle_database_error(e, "commit transaction")
    """
    if isinstance(e, DatabaseError):
        return e

    error_msg = str(e).lower()

    if "connection" in error_msg or "timeout" in error_msg or "unable to open" in error_msg:
        return ConnectionError(str(e))
    elif "unique constraint" in error_msg or "duplicate" in error_msg:
        return IntegrityError(str(e), constraint="unique")
    elif "not null" in error_msg:
        return IntegrityError(str(e), constraint="not_null")
    elif "check constraint" in error_msg:
        return IntegrityError(str(e), constraint="check")
    else:
        return DatabaseError(str(e), operation)


def create_user_friendly_error_message(error: Exception) -> str:
    """
    Create a user-friendly error message from any exception.

    Example:
        >>> error = ValidationError("project_name", "is required")
        >>> create_user_friendly_error_message(error)
        'Invalid project name: is required'
    """
    if isinstance(error, RobustnessRatingError):
        return error.user_message

    error_type = type(error).__name__
    messages = {
        "ValueError": "Invalid input provided. Please check your data and try again.",
        "KeyError": "Required information is missing. Please check your input.",
        "TypeError": "Incorrect data type provided. Please check your input format.",
    }
    return messages.get(
        error_type, "An unexpected error occurred. Please try again or contact support."
    )


def log_error_details(error: Exception, context: dict[str, Any] | None = None) -> dict[str, Any]:
    """
    Create structured error details for logging.

    Example:
        >>> error = DatabaseError("Connection failed", "connect")
        >>> details = log_error_details(error, {"project_name": "Acme"})
        >>> details["error_type"]
        'DatabaseError'
    """
    details = {
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context or {},
    }

    if isinstance(error, RobustnessRatingError):
        details.update({"user_message": error.user_message, "error_details": error.details})

    return details
