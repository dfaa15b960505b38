from __future__ import annotations


class ProviderException(Exception):
    """Base exception for all provider-level errors.

    Attributes:
        message: Human-readable error description.
        error_code: Machine-readable error identifier.
        detail: Optional additional context.
    """

    def __init__(
        self,
        message: str = "An unexpected provider error occurred",
        error_code: str = "PROVIDER_ERROR",
        detail: dict[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.detail = detail or {}

    def to_dict(self) -> dict[str, object]:
        """Serialise the exception to a JSON-friendly dict."""
        payload: dict[str, object] = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.detail:
            payload["detail"] = self.detail
        return payload


class ValidationException(ProviderException):
    """Raised when a configuration document fails validation."""

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[dict[str, object]] | None = None,
        detail: dict[str, object] | None = None,
        error_code: str = "VALIDATION_ERROR",
    ) -> None:
        self.errors: list[dict[str, object]] = list(errors or [])
        merged_detail: dict[str, object] = dict(detail) if detail else {}
        if self.errors:
            merged_detail["errors"] = self.errors
        super().__init__(
            message=message,
            error_code=error_code,
            detail=merged_detail,
        )

    @property
    def fields(self) -> list[str]:
        """Dotted paths of the offending fields, in report order."""
        return [str(error.get("field", "")) for error in self.errors]


class ShapeConflictException(ValidationException):
    """Raised when a condition is both metric- and NRQL-shaped, or neither."""

    def __init__(
        self,
        message: str = "Alert condition shape conflict",
        errors: list[dict[str, object]] | None = None,
        detail: dict[str, object] | None = None,
    ) -> None:
        super().__init__(
            message=message,
            errors=errors,
            detail=detail,
            error_code="SHAPE_CONFLICT",
        )


class MalformedIdentifierException(ProviderException):
    """Raised when an identifier does not decode into the expected integers."""

    def __init__(self, identifier: str, reason: str = "") -> None:
        message = f"Unable to parse identifier '{identifier}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message=message,
            error_code="MALFORMED_IDENTIFIER",
            detail={"identifier": identifier},
        )
        self.identifier = identifier


class RemoteException(ProviderException):
    """Raised when a call to the New Relic API fails."""

    def __init__(
        self,
        message: str = "New Relic API request failed",
        status_code: int | None = None,
        error_code: str = "REMOTE_ERROR",
        detail: dict[str, object] | None = None,
    ) -> None:
        merged_detail: dict[str, object] = dict(detail) if detail else {}
        if status_code is not None:
            merged_detail["status_code"] = status_code
        super().__init__(
            message=message,
            error_code=error_code,
            detail=merged_detail,
        )
        self.status_code = status_code


class RemoteNotFoundException(RemoteException):
    """Raised when the requested remote resource does not exist."""

    def __init__(
        self,
        resource: str = "Resource",
        identifier: str = "",
        detail: dict[str, object] | None = None,
    ) -> None:
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} '{identifier}' not found"
        super().__init__(
            message=message,
            status_code=404,
            error_code="NOT_FOUND",
            detail=detail,
        )
