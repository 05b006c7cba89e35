"""Domain exceptions for mailcascade.

Exceptions that represent failures of the email delivery core (missing
configuration, invalid input, revoked authorization, transport problems).
They are independent of the web layer; exception handlers map them to
HTTP responses via error_code.
"""

from typing import Any


class MailCascadeException(Exception):
    """Base exception for all mailcascade errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error code.
        details: Additional error context (e.g. field, provider).
    """

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error description.
            error_code: Optional machine-readable code; defaults to class name.
            details: Optional dict of extra context.
        """
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON error responses."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(MailCascadeException):
    """Raised when a required setting (key, secret, client id) is missing."""

    def __init__(self, message: str, setting: str | None = None) -> None:
        details = {"setting": setting} if setting else {}
        super().__init__(message, "CONFIGURATION_ERROR", details)


class ValidationException(MailCascadeException):
    """Raised when input validation fails (e.g. invalid format or range)."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize with message and optional field name.

        Args:
            message: Description of the validation failure.
            field: Optional field or attribute that failed validation.
        """
        details = {"field": field} if field else {}
        super().__init__(message, "VALIDATION_ERROR", details)


class AuthenticationException(MailCascadeException):
    """Raised when authentication with a provider fails."""

    def __init__(
        self,
        message: str = "Authentication failed",
        error_code: str = "AUTHENTICATION_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, details)


class ReauthRequiredError(AuthenticationException):
    """Raised when the user must reconnect (refresh token revoked or missing)."""

    def __init__(self, provider: str, message: str | None = None) -> None:
        super().__init__(
            message
            or f"{provider} authorization was revoked. Please reconnect your account.",
            "REAUTH_REQUIRED",
            {"provider": provider},
        )


class OAuthStateError(AuthenticationException):
    """Raised when an OAuth callback carries an invalid, expired or reused state."""

    def __init__(self, message: str = "Invalid or expired OAuth state") -> None:
        super().__init__(message, "OAUTH_STATE_INVALID")


class SmtpVerificationError(AuthenticationException):
    """Raised when SMTP connect/login verification fails."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            f"SMTP verification failed: {reason}",
            "SMTP_VERIFICATION_FAILED",
            {"reason": reason},
        )


class NotConnectedError(MailCascadeException):
    """Raised when the user has no connected integration for a provider."""

    def __init__(self, provider: str, user_id: str | None = None) -> None:
        details: dict[str, Any] = {"provider": provider}
        if user_id:
            details["user_id"] = user_id
        super().__init__(f"{provider} is not connected", "NOT_CONNECTED", details)


class TransientNetworkError(MailCascadeException):
    """Raised for retryable provider failures (timeouts, 5xx, bad payloads)."""

    def __init__(
        self,
        message: str,
        error_code: str = "TRANSIENT_NETWORK_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code, details)


class RefreshFailedError(TransientNetworkError):
    """Raised when token refresh exhausted its retries."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(
            f"Failed to refresh {provider} token after retries: {reason}",
            "REFRESH_FAILED",
            {"provider": provider, "reason": reason},
        )


class ResourceNotFoundException(MailCascadeException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: str) -> None:
        """Initialize with resource type and id.

        Args:
            resource_type: Type of resource (e.g. 'email_integration').
            resource_id: The ID that was not found.
        """
        super().__init__(
            f"{resource_type} not found: {resource_id}",
            "RESOURCE_NOT_FOUND",
            {"resource_type": resource_type, "resource_id": resource_id},
        )
