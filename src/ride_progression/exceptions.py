"""
Custom exceptions for the ride progression tracker.

Every user-triggered action resolves either to a success result or to one
of these errors. Each exception includes:
- A descriptive message
- An error code for consistent reporting
- Optional details for debugging
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Error codes for consistent error reporting."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"

    # Workout errors
    WORKOUT_NOT_FOUND = "WORKOUT_NOT_FOUND"
    WORKOUT_VALIDATION_ERROR = "WORKOUT_VALIDATION_ERROR"
    WORKOUT_ALREADY_CLASSIFIED = "WORKOUT_ALREADY_CLASSIFIED"

    # Import errors
    IMPORT_INVALID_FORMAT = "IMPORT_INVALID_FORMAT"
    IMPORT_IN_PROGRESS = "IMPORT_IN_PROGRESS"

    # Storage errors
    STORAGE_ERROR = "STORAGE_ERROR"


class RideProgressionError(Exception):
    """
    Base exception for all ride progression errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for display or logging."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# ============================================================================
# Validation Errors
# ============================================================================

class ValidationError(RideProgressionError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            details=error_details,
        )


class WorkoutValidationError(ValidationError):
    """Raised when workout data validation fails."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, field=field, details=details)
        self.code = ErrorCode.WORKOUT_VALIDATION_ERROR


class ImportFormatError(ValidationError):
    """Raised when pasted or uploaded import data cannot be parsed."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, details=details)
        self.code = ErrorCode.IMPORT_INVALID_FORMAT


# ============================================================================
# Not Found Errors
# ============================================================================

class NotFoundError(RideProgressionError):
    """Raised when a requested resource is not found."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        message = f"{resource_type} with ID '{resource_id}' not found"
        error_details = details or {}
        error_details["resource_type"] = resource_type
        error_details["resource_id"] = resource_id
        super().__init__(
            message=message,
            code=ErrorCode.NOT_FOUND,
            details=error_details,
        )


class WorkoutNotFoundError(NotFoundError):
    """Raised when a workout is not found in history."""

    def __init__(self, workout_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            resource_type="Workout",
            resource_id=workout_id,
            details=details,
        )
        self.code = ErrorCode.WORKOUT_NOT_FOUND


# ============================================================================
# Conflict Errors
# ============================================================================

class ConflictError(RideProgressionError):
    """Raised when an operation conflicts with current state."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=ErrorCode.CONFLICT,
            details=details,
        )


class WorkoutAlreadyClassifiedError(ConflictError):
    """Raised when classifying a workout that already has a zone."""

    def __init__(self, workout_id: str, zone: str) -> None:
        super().__init__(
            message=f"Workout '{workout_id}' is already classified as {zone}",
            details={"workout_id": workout_id, "zone": zone},
        )
        self.code = ErrorCode.WORKOUT_ALREADY_CLASSIFIED


class ImportInProgressError(ConflictError):
    """Raised when an import is triggered while another one is running."""

    def __init__(self) -> None:
        super().__init__(message="An import is already in progress. Please wait for it to finish.")
        self.code = ErrorCode.IMPORT_IN_PROGRESS


# ============================================================================
# Storage Errors
# ============================================================================

class StorageError(RideProgressionError):
    """Raised when the local data file cannot be read or written."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if path:
            error_details["path"] = path
        super().__init__(
            message=message,
            code=ErrorCode.STORAGE_ERROR,
            details=error_details,
        )
