"""Custom exception hierarchy for the Config API."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Configuration errors
    CONFIG_NOT_FOUND = "CONFIG_NOT_FOUND"
    INVALID_LEVEL = "INVALID_LEVEL"

    # Metadata errors
    FILE_SPEC_NOT_FOUND = "FILE_SPEC_NOT_FOUND"
    SECTION_SPEC_NOT_FOUND = "SECTION_SPEC_NOT_FOUND"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Auth
    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    UNKNOWN_USER = "UNKNOWN_USER"
    FORBIDDEN = "FORBIDDEN"
    MFA_REQUIRED = "MFA_REQUIRED"

    # Collaborators
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ConfigApiException(Exception):
    """
    Base exception for all Config API errors.

    Provides structured error responses with:
    - Human-readable message
    - Machine-readable error code
    - HTTP status code
    - Optional additional details
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            status_code: HTTP status code to return
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary for JSON response.

        Returns:
            Dictionary with error, message, and details fields
        """
        return {
            "error": self.error_code.value,
            "message": self.message,
            "details": self.details
        }


class ValidationError(ConfigApiException):
    """Validation failed for user input."""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message,
            ErrorCode.VALIDATION_ERROR,
            status_code=400,
            details=details
        )


class InvalidLevelError(ValidationError):
    """Scope level is not one of GLOBAL, CUSTOMER, ORG, SITE, AGENT."""

    def __init__(self, level: Any):
        super().__init__(f"Invalid level: {level}", field="level")
        self.error_code = ErrorCode.INVALID_LEVEL
        self.details["level"] = str(level)


class ConfigNotFoundError(ConfigApiException):
    """Configuration override row not found."""

    def __init__(self, config_id: Any):
        super().__init__(
            f"Configuration not found: {config_id}",
            ErrorCode.CONFIG_NOT_FOUND,
            status_code=404,
            details={"config_id": config_id}
        )


class FileSpecNotFoundError(ConfigApiException):
    """File spec (category metadata) not found."""

    def __init__(self, file_spec_id: Any):
        super().__init__(
            f"File spec not found: {file_spec_id}",
            ErrorCode.FILE_SPEC_NOT_FOUND,
            status_code=404,
            details={"file_spec_id": file_spec_id}
        )


class SectionSpecNotFoundError(ConfigApiException):
    """Section spec not found."""

    def __init__(self, section_spec_id: Any):
        super().__init__(
            f"Section spec not found: {section_spec_id}",
            ErrorCode.SECTION_SPEC_NOT_FOUND,
            status_code=404,
            details={"section_spec_id": section_spec_id}
        )


class AuthenticationError(ConfigApiException):
    """Request lacks valid authentication credentials."""

    def __init__(
        self,
        message: str = "Invalid or missing authentication token",
        error_code: ErrorCode = ErrorCode.UNAUTHORIZED,
    ):
        super().__init__(
            message,
            error_code,
            status_code=401,
        )


class InvalidExternalTokenError(AuthenticationError):
    """MojoPortal token failed signature or expiry checks."""

    def __init__(self):
        super().__init__("Invalid MojoPortal token", ErrorCode.INVALID_TOKEN)


class UnknownUserError(AuthenticationError):
    """No active directory user matches the token subject."""

    def __init__(self):
        super().__init__("Invalid user", ErrorCode.UNKNOWN_USER)


class ForbiddenError(ConfigApiException):
    """Authenticated user lacks permission for the requested action."""

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(
            message,
            ErrorCode.FORBIDDEN,
            status_code=403,
        )


class MfaRequiredError(ConfigApiException):
    """Second factor missing, expired, or bound to another user."""

    def __init__(self, message: str = "MFA required"):
        super().__init__(
            message,
            ErrorCode.MFA_REQUIRED,
            status_code=403,
            details={"requireMfa": True},
        )

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["requireMfa"] = True
        return body


class UpstreamError(ConfigApiException):
    """An external collaborator (MFA secret service) failed.

    The original error is kept on the exception for logging and never
    rendered to the client.
    """

    def __init__(self, service: str, original_error: Optional[Exception] = None):
        super().__init__(
            "Upstream service unavailable",
            ErrorCode.UPSTREAM_ERROR,
            status_code=502,
            details={"service": service},
        )
        self.original_error = original_error


class StorageUnavailableError(ConfigApiException):
    """No database connection became available before the pool timeout."""

    def __init__(self, message: str = "Storage temporarily unavailable"):
        super().__init__(
            message,
            ErrorCode.STORAGE_UNAVAILABLE,
            status_code=503,
        )

